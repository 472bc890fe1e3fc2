"""
Base Carrier Interface

All carrier adapters implement this interface. An adapter answers one
question: what does this carrier charge to move one box from origin to
destination. Markup, delay days and date projection are applied by the
rate aggregator, not by adapters.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from storefront.core.exceptions import CarrierAuthError
from storefront.schemas.shipping_settings import CarrierConfig, PackagingTier

logger = logging.getLogger(__name__)


# =============================================================================
# Carrier-Agnostic Data Classes
# =============================================================================

@dataclass
class AddressInput:
    """Address as passed to carrier adapters."""
    address: str
    city: str
    postal_code: str
    country: str
    province: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_schema(cls, address) -> "AddressInput":
        return cls(
            address=address.address or "",
            city=address.city or "",
            postal_code=address.postal_code or "",
            country=address.country or "",
            province=address.province,
            name=address.name,
        )


@dataclass
class CarrierRate:
    """
    Raw carrier rate, before markup.

    weight_adjusted is False for rates quoted at the reference weight; the
    aggregator scales those by the order weight. Live carriers price the
    actual parcel and set it to True.
    """
    amount: float
    currency: Optional[str] = None
    service_name: Optional[str] = None
    weight_adjusted: bool = False


# =============================================================================
# Base Carrier Interface
# =============================================================================

class BaseCarrier(ABC):
    """Abstract base class for all shipping carriers."""

    # Default HTTP timeout; the aggregator enforces its own per-call budget
    http_timeout: float = 30.0

    def __init__(self, config: CarrierConfig):
        self._config = config
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def config(self) -> CarrierConfig:
        return self._config

    @property
    def carrier_name(self) -> str:
        return self._config.name

    @abstractmethod
    async def get_rate(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> CarrierRate:
        """
        Get the base rate for one parcel.

        Raises:
            CarrierError (or a subclass) when no rate can be produced
        """
        pass

    async def test_connection(self) -> str:
        """
        Verify the adapter can talk to its carrier.

        Default implementation requests a sample rate between two
        fixed domestic addresses. Returns a human-readable summary.
        """
        sample = AddressInput(address="1 Sample St", city="Ottawa", postal_code="K1A0B1", country="CA")
        tier = PackagingTier(
            name="Sample",
            max_items=1,
            dimensions={"length": 25, "width": 20, "height": 2},
            weight_estimate=0.3,
        )
        rate = await self.get_rate(sample, sample, tier, 0.3)
        return f"{self.carrier_name} responded with a rate of {rate.amount:.2f}"

    def _credential(self, key: str) -> str:
        credentials = self._config.credentials or {}
        return credentials.get(key) or ""

    def _require_credentials(self, *keys: str) -> None:
        """Raise CarrierAuthError unless every key has a non-empty value."""
        missing = [key for key in keys if not self._credential(key)]
        if missing:
            raise CarrierAuthError(
                f"{self.carrier_name} is missing credentials: {', '.join(missing)}",
                carrier=self.carrier_name,
            )

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.http_timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
