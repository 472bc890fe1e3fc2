"""
Shared rate arithmetic for carrier and fallback quotes.

Transit days are a fixed heuristic (3 domestic, 7 international), not
carrier-reported data.
"""
from decimal import Decimal, ROUND_HALF_UP

# Weight at which carrier base rates are quoted (kg)
REFERENCE_WEIGHT_KG = 2.5

DOMESTIC_TRANSIT_DAYS = 3
INTERNATIONAL_TRANSIT_DAYS = 7

_CENTS = Decimal("0.01")


def weight_multiplier(total_weight: float) -> float:
    """Scale factor relative to the reference weight, never below 1."""
    return max(1.0, total_weight / REFERENCE_WEIGHT_KG)


def apply_markup(raw_rate: float, markup_percentage: float) -> float:
    """Multiplicative markup: raw x (1 + pct/100)."""
    return raw_rate * (1 + markup_percentage / 100)


def round_currency(amount: float) -> float:
    return float(Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def round_weight(weight: float) -> float:
    return float(Decimal(str(weight)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _country_key(country) -> str:
    return (country or "").strip().upper()


def is_domestic(origin, destination) -> bool:
    """Same country on both ends (case-insensitive)."""
    return _country_key(origin.country) == _country_key(destination.country)


def base_transit_days(domestic: bool) -> int:
    return DOMESTIC_TRANSIT_DAYS if domestic else INTERNATIONAL_TRANSIT_DAYS
