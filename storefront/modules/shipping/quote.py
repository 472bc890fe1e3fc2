"""
Shipping quote value type and final ranking.
"""
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, List, Optional

from storefront.modules.shipping.delivery import project_delivery_date


@dataclass(frozen=True)
class ShippingQuote:
    """One shipping option offered to the shopper."""
    carrier_name: str
    rate: float
    currency: str
    estimated_days: int
    service_label: str
    tracking_supported: bool
    packaging_tier_name: str
    total_weight: float
    total_items: int
    method: str = "Standard"
    priority: Optional[int] = None  # None for the fallback quote
    delivery_date: Optional[date] = None


def _rank_key(quote: ShippingQuote):
    # cheapest first; ties by carrier priority, fallback last, then name
    return (
        quote.rate,
        quote.priority is None,
        quote.priority or 0,
        quote.carrier_name,
    )


def assemble_quotes(quotes: Iterable[ShippingQuote], today: Optional[date] = None) -> List[ShippingQuote]:
    """Attach projected delivery dates and sort ascending by rate."""
    start = today or date.today()
    dated = [
        replace(quote, delivery_date=project_delivery_date(quote.estimated_days, start))
        for quote in quotes
    ]
    return sorted(dated, key=_rank_key)
