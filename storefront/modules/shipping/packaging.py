"""
Packaging tier selection by item count.
"""
import logging
from typing import Sequence

from storefront.core.exceptions import ShippingConfigurationError
from storefront.schemas.shipping_settings import PackagingTier

logger = logging.getLogger(__name__)


def select_packaging_tier(total_items: int, tiers: Sequence[PackagingTier]) -> PackagingTier:
    """
    Return the smallest tier whose max_items covers total_items.

    Orders larger than every threshold get the largest tier.

    Raises:
        ShippingConfigurationError: no tiers are configured
    """
    if not tiers:
        logger.error("Shipping settings have no packaging tiers")
        raise ShippingConfigurationError(
            "No packaging tiers configured",
            code="NO_PACKAGING_TIERS",
        )

    ordered = sorted(tiers, key=lambda tier: tier.max_items)
    for tier in ordered:
        if total_items <= tier.max_items:
            return tier
    return ordered[-1]
