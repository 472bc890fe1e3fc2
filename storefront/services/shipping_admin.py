"""
Shipping Admin Service

Administrative operations on shipping configuration:
- Masked settings view and partial updates
- Carrier connectivity checks
- Configuration and quote statistics
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional

from storefront.core.config import settings
from storefront.core.exceptions import CarrierError
from storefront.core.monitoring import (
    CARRIER_FAILURES_TOTAL,
    CARRIER_LATENCY_SECONDS,
    FALLBACK_TOTAL,
    QUOTES_TOTAL,
    metrics,
)
from storefront.modules.shipping.carriers import CarrierFactory
from storefront.schemas.shipping import (
    CarrierLatencyOut,
    CarrierTestRequest,
    CarrierTestResponse,
    PublicCarrierOut,
    ShippingStatsResponse,
)
from storefront.schemas.shipping_settings import (
    CarrierConfig,
    PackagingTier,
    ShippingSettings,
    ShippingSettingsUpdate,
)
from storefront.services.encryption import MASK, mask_credentials
from storefront.services.settings_store import ShippingSettingsStore

logger = logging.getLogger(__name__)


def mask_settings(snapshot: ShippingSettings) -> ShippingSettings:
    """Copy of the settings with every credential value masked."""
    carriers = tuple(
        carrier.model_copy(update={"credentials": mask_credentials(carrier.credentials)})
        for carrier in snapshot.carriers
    )
    return snapshot.model_copy(update={"carriers": carriers})


def _failure_counts_by_carrier(counters: Dict[str, int]) -> Dict[str, int]:
    # keys look like: shipping_carrier_failures_total{carrier=UPS,code=CARRIER_TIMEOUT}
    totals: Dict[str, int] = {}
    for key, value in counters.items():
        labels = key[key.find("{") + 1:key.rfind("}")]
        for label in labels.split(","):
            name, _, label_value = label.partition("=")
            if name == "carrier":
                totals[label_value] = totals.get(label_value, 0) + value
    return totals


def _latency_by_carrier(carriers) -> Dict[str, CarrierLatencyOut]:
    latency = {}
    for carrier in carriers:
        stats = metrics.get_histogram_stats(CARRIER_LATENCY_SECONDS, labels={"carrier": carrier.name})
        if stats["count"]:
            latency[carrier.name] = CarrierLatencyOut(
                count=stats["count"],
                avg=round(stats["avg"] * 1000, 1),
                p95=round(stats["p95"] * 1000, 1),
            )
    return latency


class ShippingAdminService:
    """Admin-facing shipping operations."""

    def __init__(self, store: ShippingSettingsStore, factory=CarrierFactory, timeout: Optional[float] = None):
        self.store = store
        self._factory = factory
        self._timeout = timeout if timeout is not None else settings.SHIPPING_CARRIER_TIMEOUT_SECONDS

    async def get_settings(self) -> ShippingSettings:
        return mask_settings(await self.store.get())

    async def update_settings(self, changes: ShippingSettingsUpdate) -> ShippingSettings:
        updated = await self.store.update(changes)
        return mask_settings(updated)

    async def list_public_carriers(self) -> List[PublicCarrierOut]:
        snapshot = await self.store.get()
        return [
            PublicCarrierOut(
                name=carrier.name,
                description=carrier.description,
                priority=carrier.priority,
                delay_days=carrier.delay_days,
            )
            for carrier in snapshot.enabled_carriers()
        ]

    async def list_box_tiers(self) -> List[PackagingTier]:
        snapshot = await self.store.get()
        return list(snapshot.box_tiers)

    async def _resolve_test_config(self, request: CarrierTestRequest) -> CarrierConfig:
        snapshot = await self.store.get()
        stored = snapshot.get_carrier(request.name)
        stored_credentials = (stored.credentials if stored else None) or {}

        if request.credentials is None:
            credentials = stored_credentials
        else:
            credentials = {
                key: stored_credentials.get(key, "") if value == MASK else value
                for key, value in request.credentials.items()
            }

        return CarrierConfig(
            name=stored.name if stored else request.name,
            adapter=request.adapter or (stored.adapter if stored else "simulated"),
            credentials=credentials or None,
            account_number=request.account_number or (stored.account_number if stored else None),
        )

    async def test_carrier_connection(self, request: CarrierTestRequest) -> CarrierTestResponse:
        """
        Make one live call to a carrier and report the outcome.

        Never produces a quote and never raises for carrier problems.
        """
        config = await self._resolve_test_config(request)
        started = time.monotonic()
        carrier = None

        try:
            carrier = self._factory.create(config)
            message = await asyncio.wait_for(carrier.test_connection(), timeout=self._timeout)
            success = True
        except asyncio.TimeoutError:
            success = False
            message = f"{config.name} did not respond within {self._timeout}s"
        except CarrierError as e:
            success = False
            message = e.message
        except Exception as e:
            logger.warning(
                f"Unexpected error testing {config.name}: {type(e).__name__}: {e}", exc_info=True
            )
            success = False
            message = f"Unexpected error: {type(e).__name__}: {e}"
        finally:
            if carrier is not None:
                await carrier.close()

        latency_ms = round((time.monotonic() - started) * 1000, 1)
        log = logger.info if success else logger.warning
        log(f"Carrier connection test for {config.name} ({config.adapter}): success={success}, {latency_ms}ms")

        return CarrierTestResponse(
            success=success,
            carrier=config.name,
            adapter=config.adapter,
            message=message,
            latency_ms=latency_ms,
        )

    async def get_stats(self) -> ShippingStatsResponse:
        snapshot = await self.store.get()
        carriers = snapshot.carriers
        average_markup = (
            sum(carrier.markup_percentage for carrier in carriers) / len(carriers)
            if carriers else 0.0
        )

        return ShippingStatsResponse(
            total_carriers=len(carriers),
            enabled_carriers=len(snapshot.enabled_carriers()),
            total_box_tiers=len(snapshot.box_tiers),
            average_markup=average_markup,
            quotes_total=metrics.get_counter(QUOTES_TOTAL),
            fallback_total=metrics.get_counter(FALLBACK_TOTAL),
            carrier_failures=_failure_counts_by_carrier(metrics.get_counters(CARRIER_FAILURES_TOTAL)),
            carrier_latency_ms=_latency_by_carrier(carriers),
            uptime_seconds=round(metrics.uptime_seconds(), 1),
        )
