"""
Shipping Quote Service

Entry point for rate quotes:
line items + destination -> metrics -> packaging tier ->
(carrier rates | fallback) -> delivery dates -> options sorted by rate.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from storefront.core.config import settings
from storefront.core.exceptions import ShippingValidationError
from storefront.core.monitoring import record_quote
from storefront.modules.shipping.carriers.base import AddressInput
from storefront.modules.shipping.fallback import calculate_fallback_quote
from storefront.modules.shipping.metrics import calculate_order_metrics
from storefront.modules.shipping.packaging import select_packaging_tier
from storefront.modules.shipping.quote import ShippingQuote, assemble_quotes
from storefront.modules.shipping.rating import is_domestic, round_weight
from storefront.schemas.shipping import AddressIn, RateQuoteRequest
from storefront.schemas.shipping_settings import PackagingTier
from storefront.services.rate_aggregator import CarrierFailure, CarrierRateAggregator
from storefront.services.settings_store import ShippingSettingsStore

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = (
    ("address", "address"),
    ("city", "city"),
    ("postal_code", "postalCode"),
    ("country", "country"),
)


@dataclass
class QuoteResult:
    options: List[ShippingQuote]
    packaging_tier: PackagingTier
    total_weight: float
    total_items: int
    is_domestic: bool
    used_fallback: bool
    failures: List[CarrierFailure] = field(default_factory=list)


def store_origin() -> AddressIn:
    """Ship-from address configured for the store."""
    return AddressIn(
        address=settings.SHIPPING_ORIGIN_ADDRESS,
        city=settings.SHIPPING_ORIGIN_CITY,
        province=settings.SHIPPING_ORIGIN_PROVINCE,
        postal_code=settings.SHIPPING_ORIGIN_POSTAL_CODE,
        country=settings.SHIPPING_ORIGIN_COUNTRY,
    )


def _missing_address_fields(address: Optional[AddressIn], prefix: str) -> List[str]:
    if address is None:
        return [prefix]
    return [
        f"{prefix}.{wire_name}"
        for attr, wire_name in REQUIRED_ADDRESS_FIELDS
        if not (getattr(address, attr) or "").strip()
    ]


class ShippingQuoteService:
    """Computes ranked shipping options for an order."""

    def __init__(
        self,
        store: ShippingSettingsStore,
        aggregator: Optional[CarrierRateAggregator] = None,
    ):
        self.store = store
        self.aggregator = aggregator or CarrierRateAggregator()

    def validate_request(self, request: RateQuoteRequest) -> None:
        """
        Reject requests that cannot be quoted.

        Raises:
            ShippingValidationError: no shippable items or incomplete addresses
        """
        total_quantity = sum(item.quantity for item in request.order_items)
        if not request.order_items or total_quantity <= 0:
            raise ShippingValidationError("Order contains no shippable items", fields=["orderItems"])

        missing = _missing_address_fields(request.destination, "destination")
        if request.origin is not None:
            missing += _missing_address_fields(request.origin, "origin")
        if missing:
            raise ShippingValidationError(
                f"Missing required address fields: {', '.join(missing)}",
                fields=missing,
            )

    async def quote(self, request: RateQuoteRequest, today: Optional[date] = None) -> QuoteResult:
        """
        Produce shipping options for a quote request.

        Always returns at least one option. Only validation and
        configuration problems raise.
        """
        self.validate_request(request)

        snapshot = await self.store.get()

        origin = AddressInput.from_schema(request.origin or store_origin())
        destination = AddressInput.from_schema(request.destination)

        order_metrics = calculate_order_metrics(request.order_items)
        tier = select_packaging_tier(order_metrics.total_items, snapshot.box_tiers)
        domestic = is_domestic(origin, destination)

        aggregation = await self.aggregator.aggregate(
            snapshot.carriers,
            origin,
            destination,
            tier,
            order_metrics,
            snapshot.currency,
        )

        candidates = aggregation.quotes
        used_fallback = not candidates
        if used_fallback:
            candidates = [
                calculate_fallback_quote(
                    snapshot, origin, destination, tier, order_metrics, express=request.express
                )
            ]

        options = assemble_quotes(candidates, today)
        record_quote(fallback=used_fallback)

        logger.info(
            f"Quoted {len(options)} shipping option(s) for {order_metrics.total_items} item(s), "
            f"tier={tier.name}, fallback={used_fallback}"
        )

        return QuoteResult(
            options=options,
            packaging_tier=tier,
            total_weight=round_weight(order_metrics.total_weight),
            total_items=order_metrics.total_items,
            is_domestic=domestic,
            used_fallback=used_fallback,
            failures=aggregation.failures,
        )
