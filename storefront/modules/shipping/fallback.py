"""
Fallback quote, offered only when no carrier produced a usable rate.
"""
import logging

from storefront.modules.shipping.metrics import OrderMetrics
from storefront.modules.shipping.quote import ShippingQuote
from storefront.modules.shipping.rating import (
    base_transit_days,
    is_domestic,
    round_currency,
    round_weight,
    weight_multiplier,
)
from storefront.schemas.shipping_settings import PackagingTier, ShippingSettings

logger = logging.getLogger(__name__)

FALLBACK_CARRIER_NAME = "Standard Shipping"
EXPRESS_SERVICE_LABEL = "Express Shipping"


def calculate_fallback_quote(
    settings: ShippingSettings,
    origin,
    destination,
    tier: PackagingTier,
    order_metrics: OrderMetrics,
    express: bool = False,
) -> ShippingQuote:
    """
    Flat-rate quote from the configured fallback rates.

    Domestic or international base rate (or the express rate when
    requested), scaled by weight. No markup, no tracking.
    """
    domestic = is_domestic(origin, destination)
    rates = settings.fallback_rates

    if express:
        base_rate = rates.express
        service_label = EXPRESS_SERVICE_LABEL
        method = "Express"
    else:
        base_rate = rates.domestic if domestic else rates.international
        service_label = FALLBACK_CARRIER_NAME
        method = "Standard"

    rate = round_currency(base_rate * weight_multiplier(order_metrics.total_weight))

    logger.info(
        f"Using fallback shipping rate {rate} {settings.currency} "
        f"(domestic={domestic}, express={express})"
    )

    return ShippingQuote(
        carrier_name=FALLBACK_CARRIER_NAME,
        rate=rate,
        currency=settings.currency,
        estimated_days=base_transit_days(domestic),
        service_label=service_label,
        tracking_supported=False,
        packaging_tier_name=tier.name,
        total_weight=round_weight(order_metrics.total_weight),
        total_items=order_metrics.total_items,
        method=method,
        priority=None,
    )
