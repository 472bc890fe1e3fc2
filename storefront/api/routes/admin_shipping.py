"""
Admin API Routes for Shipping Configuration

- Read and update shipping settings (credentials are always masked)
- Test a carrier connection
- Run a diagnostic quote
- Configuration and quote statistics
"""
import logging

from fastapi import APIRouter, Depends

from storefront.api.deps import get_admin_service, get_quote_service, require_admin
from storefront.api.routes.shipping import to_rate_response
from storefront.schemas.shipping import (
    CarrierFailureOut,
    CarrierTestRequest,
    CarrierTestResponse,
    RateQuoteRequest,
    RateTestInfo,
    RateTestResponse,
    ShippingStatsResponse,
)
from storefront.schemas.shipping_settings import ShippingSettings, ShippingSettingsUpdate
from storefront.services.quote_service import ShippingQuoteService
from storefront.services.shipping_admin import ShippingAdminService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/shipping",
    tags=["admin-shipping"],
    dependencies=[Depends(require_admin)],
)


@router.get("/settings", response_model=ShippingSettings)
async def get_shipping_settings(service: ShippingAdminService = Depends(get_admin_service)):
    """Current shipping settings with credentials masked."""
    return await service.get_settings()


@router.put("/settings", response_model=ShippingSettings)
async def update_shipping_settings(
    changes: ShippingSettingsUpdate,
    service: ShippingAdminService = Depends(get_admin_service),
):
    """
    Partially update shipping settings.

    boxTiers and carriers replace the stored lists. Send "***" for a
    credential to keep its stored value.
    """
    return await service.update_settings(changes)


@router.post("/carriers/test", response_model=CarrierTestResponse)
async def test_carrier(
    test_request: CarrierTestRequest,
    service: ShippingAdminService = Depends(get_admin_service),
):
    return await service.test_carrier_connection(test_request)


@router.post("/test-rates", response_model=RateTestResponse)
async def test_rates(
    quote_request: RateQuoteRequest,
    quote_service: ShippingQuoteService = Depends(get_quote_service),
):
    """Run a quote and return it with diagnostic details."""
    result = await quote_service.quote(quote_request)

    return RateTestResponse(
        rates=to_rate_response(result),
        test_info=RateTestInfo(
            total_weight=result.total_weight,
            total_items=result.total_items,
            packaging_tier=result.packaging_tier,
            is_domestic=result.is_domestic,
            used_fallback=result.used_fallback,
            carrier_failures=[
                CarrierFailureOut(carrier=f.carrier, code=f.code, message=f.message)
                for f in result.failures
            ],
        ),
    )


@router.get("/stats", response_model=ShippingStatsResponse)
async def shipping_stats(service: ShippingAdminService = Depends(get_admin_service)):
    return await service.get_stats()
