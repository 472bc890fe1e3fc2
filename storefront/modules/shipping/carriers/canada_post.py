"""
Canada Post Carrier Implementation

Live rating through the Canada Post price endpoint (JSON gateway).
Credentials: api_key / api_secret (HTTP basic auth). The account number
is sent as the customer number when present.
"""
import logging
import math

import httpx

from storefront.core.config import settings
from storefront.core.exceptions import (
    CarrierAuthError,
    CarrierError,
    CarrierResponseError,
    CarrierTimeoutError,
)
from storefront.modules.shipping.carriers import register_carrier
from storefront.modules.shipping.carriers.base import AddressInput, BaseCarrier, CarrierRate
from storefront.schemas.shipping_settings import PackagingTier

logger = logging.getLogger(__name__)

CANADA_POST_SERVICE_CODE = "DOM.RP"  # Regular Parcel


def _postal(code: str) -> str:
    return code.replace(" ", "").upper()


@register_carrier("canada_post")
class CanadaPostCarrier(BaseCarrier):
    """Canada Post rating adapter."""

    @property
    def base_url(self) -> str:
        if settings.CANADA_POST_USE_SANDBOX:
            return settings.CANADA_POST_SANDBOX_URL
        return settings.CANADA_POST_API_URL

    def _build_request(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> dict:
        return {
            "customerNumber": self._config.account_number or None,
            "originPostalCode": _postal(origin.postal_code),
            "destination": {
                "postalCode": _postal(destination.postal_code),
                "countryCode": destination.country.strip().upper(),
            },
            "parcel": {
                "weight": round(weight, 3),
                "length": tier.dimensions.length,
                "width": tier.dimensions.width,
                "height": tier.dimensions.height,
            },
            "serviceCode": CANADA_POST_SERVICE_CODE,
        }

    async def get_rate(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> CarrierRate:
        self._require_credentials("api_key", "api_secret")

        client = await self._get_http_client()
        payload = self._build_request(origin, destination, tier, weight)

        try:
            response = await client.post(
                self.base_url,
                json=payload,
                auth=(self._credential("api_key"), self._credential("api_secret")),
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise CarrierTimeoutError(f"Canada Post request timed out: {e}", carrier=self.carrier_name)
        except httpx.RequestError as e:
            logger.error(f"Canada Post request failed: {e}")
            raise CarrierError(
                f"Network error: {e}",
                carrier=self.carrier_name,
                code="NETWORK_ERROR",
            )

        logger.debug(f"Canada Post POST {self.base_url} -> {response.status_code}")

        if response.status_code in (401, 403):
            raise CarrierAuthError(
                "Canada Post rejected the credentials",
                carrier=self.carrier_name,
                details={"status": response.status_code},
            )
        if response.status_code >= 400:
            raise CarrierResponseError(
                f"Canada Post API error: {response.status_code}",
                carrier=self.carrier_name,
                details={"status": response.status_code, "raw": response.text[:500]},
            )

        try:
            data = response.json()
            amount = float(data["price"])
        except (ValueError, KeyError, TypeError) as e:
            raise CarrierResponseError(
                f"Malformed Canada Post response: {e}",
                carrier=self.carrier_name,
            )

        if not math.isfinite(amount) or amount <= 0:
            raise CarrierResponseError(
                f"Canada Post returned an unusable price: {amount}",
                carrier=self.carrier_name,
            )

        return CarrierRate(
            amount=amount,
            currency=data.get("currency"),
            service_name=data.get("serviceName"),
            weight_adjusted=True,
        )
