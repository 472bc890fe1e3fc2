"""
API dependencies
"""
import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from storefront.core.config import settings
from storefront.services.quote_service import ShippingQuoteService
from storefront.services.settings_store import ShippingSettingsStore, get_settings_store
from storefront.services.shipping_admin import ShippingAdminService


def get_store() -> ShippingSettingsStore:
    return get_settings_store()


def get_quote_service(store: ShippingSettingsStore = Depends(get_store)) -> ShippingQuoteService:
    return ShippingQuoteService(store)


def get_admin_service(store: ShippingSettingsStore = Depends(get_store)) -> ShippingAdminService:
    return ShippingAdminService(store)


async def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    """
    Require admin access.

    Authentication is handled upstream; when ADMIN_API_TOKEN is set the
    X-Admin-Token header must match it.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        return

    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
