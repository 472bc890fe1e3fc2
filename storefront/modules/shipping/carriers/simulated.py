"""
Simulated carrier.

Deterministic base rates per carrier name, quoted at the reference weight,
with a configurable artificial latency. Used for development and for
carriers without live integration.
"""
import asyncio
import logging
from typing import Optional

from storefront.core.config import settings
from storefront.modules.shipping.carriers import register_carrier
from storefront.modules.shipping.carriers.base import AddressInput, BaseCarrier, CarrierRate
from storefront.schemas.shipping_settings import CarrierConfig, PackagingTier

logger = logging.getLogger(__name__)

SIMULATED_BASE_RATES = {
    "canada post": 12.99,
    "ups": 18.99,
    "purolator": 15.99,
    "fedex": 22.99,
}
DEFAULT_SIMULATED_RATE = 15.99


@register_carrier("simulated")
class SimulatedCarrier(BaseCarrier):

    def __init__(self, config: CarrierConfig, latency_seconds: Optional[float] = None):
        super().__init__(config)
        if latency_seconds is None:
            latency_seconds = settings.SHIPPING_SIMULATED_LATENCY_MS / 1000
        self._latency = latency_seconds

    async def get_rate(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> CarrierRate:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

        amount = SIMULATED_BASE_RATES.get(self.carrier_name.strip().lower(), DEFAULT_SIMULATED_RATE)
        logger.debug(f"Simulated rate for {self.carrier_name}: {amount}")
        return CarrierRate(amount=amount, service_name=f"{self.carrier_name} Standard")

    async def test_connection(self) -> str:
        return f"{self.carrier_name} uses simulated rates; no remote connection required"
