"""
Order metrics: aggregate weight and item count for a list of order lines.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

# Conservative per-unit estimate used when a line carries no weight (kg)
DEFAULT_UNIT_WEIGHT_KG = 0.2


@dataclass(frozen=True)
class OrderLine:
    """Minimal order line. Any object with quantity and unit_weight works."""
    quantity: int
    unit_weight: Optional[float] = None


@dataclass(frozen=True)
class OrderMetrics:
    total_weight: float = 0.0
    total_items: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0


def calculate_order_metrics(order_lines: Iterable) -> OrderMetrics:
    """
    Sum quantities and weights.

    Missing or zero unit weight falls back to DEFAULT_UNIT_WEIGHT_KG.
    Empty input yields zero metrics; rejecting that is the caller's job.
    """
    total_weight = 0.0
    total_items = 0

    for line in order_lines:
        quantity = line.quantity
        unit_weight = line.unit_weight or DEFAULT_UNIT_WEIGHT_KG
        total_weight += unit_weight * quantity
        total_items += quantity

    return OrderMetrics(total_weight=total_weight, total_items=total_items)
