"""
UPS Carrier Implementation

OAuth 2.0 client-credentials token, then a single-service Rate request.
Credentials: client_id / client_secret; account_number is the shipper number.
"""
import base64
import logging
import math
from datetime import datetime, timezone, timedelta
from typing import Dict, Optional

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
from storefront.schemas.shipping_settings import CarrierConfig, PackagingTier

logger = logging.getLogger(__name__)

OAUTH_TOKEN_PATH = "/security/v1/oauth/token"
RATING_PATH = "/api/rating/v2403/Rate"

UPS_STANDARD_SERVICE = "11"  # UPS Standard


def _address_block(address: AddressInput) -> Dict:
    block = {
        "AddressLine": [address.address],
        "City": address.city,
        "PostalCode": address.postal_code.replace(" ", ""),
        "CountryCode": address.country.strip().upper(),
    }
    if address.province:
        block["StateProvinceCode"] = address.province
    return {"Name": address.name or "Recipient", "Address": block}


@register_carrier("ups")
class UPSCarrier(BaseCarrier):
    """UPS rating adapter."""

    def __init__(self, config: CarrierConfig):
        super().__init__(config)
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @property
    def base_url(self) -> str:
        return settings.UPS_SANDBOX_URL if settings.UPS_USE_SANDBOX else settings.UPS_API_URL

    async def _ensure_token(self) -> str:
        """Ensure we have a valid OAuth token."""
        if self._access_token and self._token_expires_at:
            # Refresh 5 minutes before expiry
            if datetime.now(timezone.utc) < self._token_expires_at - timedelta(minutes=5):
                return self._access_token

        self._require_credentials("client_id", "client_secret")

        client = await self._get_http_client()
        auth_string = f"{self._credential('client_id')}:{self._credential('client_secret')}"
        auth_header = base64.b64encode(auth_string.encode()).decode()

        try:
            response = await client.post(
                f"{self.base_url}{OAUTH_TOKEN_PATH}",
                headers={
                    "Authorization": f"Basic {auth_header}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials"},
            )
        except httpx.TimeoutException as e:
            raise CarrierTimeoutError(f"UPS authentication timed out: {e}", carrier=self.carrier_name)
        except httpx.RequestError as e:
            logger.error(f"UPS OAuth request failed: {e}")
            raise CarrierError(
                f"Network error during authentication: {e}",
                carrier=self.carrier_name,
                code="NETWORK_ERROR",
            )

        if response.status_code != 200:
            logger.error(f"UPS OAuth failed: {response.status_code} - {response.text[:500]}")
            raise CarrierAuthError(
                "Failed to authenticate with UPS",
                carrier=self.carrier_name,
                details={"status": response.status_code},
            )

        try:
            data = response.json()
            self._access_token = data["access_token"]
            expires_in = int(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise CarrierResponseError(f"Malformed UPS token response: {e}", carrier=self.carrier_name)

        self._token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        logger.info(f"UPS OAuth token obtained, expires in {expires_in}s")
        return self._access_token

    def _build_rate_request(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> Dict:
        shipper = _address_block(origin)
        if self._config.account_number:
            shipper["ShipperNumber"] = self._config.account_number

        dimensions = tier.dimensions
        return {
            "RateRequest": {
                "Request": {"SubVersion": "2403", "RequestOption": "Rate"},
                "Shipment": {
                    "Shipper": shipper,
                    "ShipFrom": _address_block(origin),
                    "ShipTo": _address_block(destination),
                    "Service": {"Code": UPS_STANDARD_SERVICE},
                    "Package": {
                        "PackagingType": {"Code": "02"},
                        "Dimensions": {
                            "UnitOfMeasurement": {"Code": "CM"},
                            "Length": str(dimensions.length),
                            "Width": str(dimensions.width),
                            "Height": str(dimensions.height),
                        },
                        "PackageWeight": {
                            "UnitOfMeasurement": {"Code": "KGS"},
                            "Weight": f"{max(weight, 0.1):.2f}",
                        },
                    },
                },
            }
        }

    async def get_rate(
        self,
        origin: AddressInput,
        destination: AddressInput,
        tier: PackagingTier,
        weight: float,
    ) -> CarrierRate:
        token = await self._ensure_token()
        client = await self._get_http_client()

        try:
            response = await client.post(
                f"{self.base_url}{RATING_PATH}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "transId": f"sf_{datetime.now().strftime('%Y%m%d%H%M%S%f')}",
                    "transactionSrc": settings.APP_NAME,
                },
                json=self._build_rate_request(origin, destination, tier, weight),
            )
        except httpx.TimeoutException as e:
            raise CarrierTimeoutError(f"UPS rate request timed out: {e}", carrier=self.carrier_name)
        except httpx.RequestError as e:
            logger.error(f"UPS API request failed: {e}")
            raise CarrierError(f"Network error: {e}", carrier=self.carrier_name, code="NETWORK_ERROR")

        logger.debug(f"UPS API POST {RATING_PATH} -> {response.status_code}")

        if response.status_code in (401, 403):
            # Token was rejected; force a refresh next time
            self._access_token = None
            raise CarrierAuthError("UPS rejected the access token", carrier=self.carrier_name)
        if response.status_code >= 400:
            error_msg = "UPS API error"
            try:
                body = response.json()
            except ValueError:
                body = None
            block = body.get("response") if isinstance(body, dict) else None
            errors = block.get("errors") if isinstance(block, dict) else None
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                error_msg = errors[0].get("message", error_msg)
            raise CarrierResponseError(
                error_msg,
                carrier=self.carrier_name,
                details={"status": response.status_code},
            )

        try:
            rated = response.json()["RateResponse"]["RatedShipment"]
            if isinstance(rated, list):
                rated = rated[0]
            total = rated["TotalCharges"]
            amount = float(total["MonetaryValue"])
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise CarrierResponseError(f"Malformed UPS rate response: {e}", carrier=self.carrier_name)

        if not math.isfinite(amount) or amount <= 0:
            raise CarrierResponseError(
                f"UPS returned an unusable charge: {amount}",
                carrier=self.carrier_name,
            )

        return CarrierRate(
            amount=amount,
            currency=total.get("CurrencyCode"),
            service_name="UPS Standard",
            weight_adjusted=True,
        )

    async def test_connection(self) -> str:
        """A token exchange is enough to prove the credentials work."""
        await self._ensure_token()
        return "UPS authentication succeeded"
