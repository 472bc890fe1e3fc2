"""
Carrier Rate Aggregator

Fans a quote request out to every enabled carrier concurrently and collects
whatever comes back. One carrier failing (timeout, bad credentials, bad
payload, unknown adapter) removes only that carrier's option.

Concurrency:
- One asyncio task per enabled carrier
- At most max_concurrency carrier calls in flight (semaphore)
- Each call bounded by its own timeout
- Cancelling the caller cancels every in-flight carrier task
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from storefront.core.config import settings
from storefront.core.exceptions import CarrierError, CarrierResponseError, CarrierTimeoutError
from storefront.core.monitoring import record_carrier_failure, record_carrier_latency
from storefront.modules.shipping.carriers import CarrierFactory
from storefront.modules.shipping.carriers.base import AddressInput, CarrierRate
from storefront.modules.shipping.metrics import OrderMetrics
from storefront.modules.shipping.quote import ShippingQuote
from storefront.modules.shipping.rating import (
    apply_markup,
    base_transit_days,
    is_domestic,
    round_currency,
    round_weight,
    weight_multiplier,
)
from storefront.schemas.shipping_settings import CarrierConfig, PackagingTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarrierFailure:
    carrier: str
    code: str
    message: str


@dataclass
class AggregationResult:
    quotes: List[ShippingQuote] = field(default_factory=list)
    failures: List[CarrierFailure] = field(default_factory=list)


class CarrierRateAggregator:
    """Concurrent, failure-isolated rate collection across carriers."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        factory=CarrierFactory,
    ):
        self._timeout = timeout if timeout is not None else settings.SHIPPING_CARRIER_TIMEOUT_SECONDS
        self._max_concurrency = max(1, max_concurrency or settings.SHIPPING_CARRIER_MAX_CONCURRENCY)
        self._factory = factory

    async def aggregate(
        self,
        carriers: Iterable[CarrierConfig],
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        order_metrics: OrderMetrics,
        currency: str,
    ) -> AggregationResult:
        """
        Collect one candidate quote per enabled carrier that answers in time.

        Never raises for carrier problems; the result may hold zero quotes.
        """
        enabled = sorted((c for c in carriers if c.enabled), key=lambda c: c.priority)
        if not enabled:
            logger.info("No carriers enabled; skipping carrier rating")
            return AggregationResult()

        semaphore = asyncio.Semaphore(self._max_concurrency)
        domestic = is_domestic(origin, destination)

        tasks = [
            asyncio.create_task(
                self._attempt(config, semaphore, origin, destination, tier, order_metrics, domestic, currency),
                name=f"carrier-rate:{config.name}",
            )
            for config in enabled
        ]

        try:
            outcomes = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            logger.info("Carrier rating cancelled")
            raise

        result = AggregationResult()
        for outcome in outcomes:
            if isinstance(outcome, CarrierFailure):
                result.failures.append(outcome)
            else:
                result.quotes.append(outcome)

        logger.debug(
            f"Carrier rating finished: {len(result.quotes)} quotes, {len(result.failures)} failures"
        )
        return result

    async def _attempt(
        self,
        config: CarrierConfig,
        semaphore: asyncio.Semaphore,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        order_metrics: OrderMetrics,
        domestic: bool,
        currency: str,
    ) -> Union[ShippingQuote, CarrierFailure]:
        carrier = None
        started = time.monotonic()
        try:
            async with semaphore:
                carrier = self._factory.create(config)
                try:
                    raw = await asyncio.wait_for(
                        carrier.get_rate(origin, destination, tier, order_metrics.total_weight),
                        timeout=self._timeout,
                    )
                except asyncio.TimeoutError:
                    raise CarrierTimeoutError(
                        f"{config.name} did not respond within {self._timeout}s",
                        carrier=config.name,
                    )
            return self._build_quote(config, raw, tier, order_metrics, domestic, currency)

        except CarrierError as e:
            return self._failure(config, e.code, e.message)
        except Exception as e:
            logger.warning(f"Unexpected error rating {config.name}: {type(e).__name__}: {e}", exc_info=True)
            return self._failure(config, "UNEXPECTED_ERROR", str(e))
        finally:
            record_carrier_latency(config.name, time.monotonic() - started)
            if carrier is not None:
                await carrier.close()

    def _build_quote(
        self,
        config: CarrierConfig,
        raw: CarrierRate,
        tier: PackagingTier,
        order_metrics: OrderMetrics,
        domestic: bool,
        currency: str,
    ) -> ShippingQuote:
        amount = raw.amount if raw is not None else None
        if not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount <= 0:
            raise CarrierResponseError(f"{config.name} returned an unusable rate: {amount!r}", carrier=config.name)
        if raw.currency and raw.currency.strip().upper() != currency.upper():
            raise CarrierResponseError(
                f"{config.name} quoted in {raw.currency}, expected {currency}",
                carrier=config.name,
                details={"currency": raw.currency},
            )

        if not raw.weight_adjusted:
            amount = amount * weight_multiplier(order_metrics.total_weight)

        # Markup is applied exactly once, here
        rate = round_currency(apply_markup(amount, config.markup_percentage))

        return ShippingQuote(
            carrier_name=config.name,
            rate=rate,
            currency=currency,
            estimated_days=base_transit_days(domestic) + config.delay_days,
            service_label=f"{config.name} Standard",
            tracking_supported=True,
            packaging_tier_name=tier.name,
            total_weight=round_weight(order_metrics.total_weight),
            total_items=order_metrics.total_items,
            method="Standard",
            priority=config.priority,
        )

    def _failure(self, config: CarrierConfig, code: str, message: str) -> CarrierFailure:
        logger.warning(f"Carrier {config.name} failed [{code}]: {message}")
        record_carrier_failure(config.name, code)
        return CarrierFailure(carrier=config.name, code=code, message=message)
