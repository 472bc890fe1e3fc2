"""
Shipping API Routes

Public endpoints for rate quotes, available carriers and packaging tiers.
"""
import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, Request

from storefront.api.deps import get_admin_service, get_quote_service
from storefront.core.config import settings
from storefront.core.rate_limit import limiter
from storefront.schemas.shipping import (
    PublicCarrierOut,
    RateQuoteRequest,
    RateQuoteResponse,
    ShippingQuoteOut,
)
from storefront.schemas.shipping_settings import PackagingTier
from storefront.services.quote_service import QuoteResult, ShippingQuoteService
from storefront.services.shipping_admin import ShippingAdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping", tags=["shipping"])


def to_rate_response(result: QuoteResult) -> RateQuoteResponse:
    return RateQuoteResponse(
        options=[ShippingQuoteOut(**asdict(quote)) for quote in result.options],
        packaging_tier=result.packaging_tier,
        total_weight=result.total_weight,
        total_items=result.total_items,
    )


@router.post("/rates", response_model=RateQuoteResponse)
@limiter.limit(settings.RATE_LIMIT_SHIPPING)
async def get_shipping_rates(
    request: Request,
    quote_request: RateQuoteRequest,
    service: ShippingQuoteService = Depends(get_quote_service),
):
    """
    Get shipping options for an order, cheapest first.

    Always returns at least one option; when no carrier answers a flat
    fallback rate is offered.
    """
    result = await service.quote(quote_request)
    return to_rate_response(result)


@router.get("/carriers", response_model=List[PublicCarrierOut])
async def list_carriers(service: ShippingAdminService = Depends(get_admin_service)):
    """Enabled carriers, in display order."""
    return await service.list_public_carriers()


@router.get("/boxes", response_model=List[PackagingTier])
async def list_boxes(service: ShippingAdminService = Depends(get_admin_service)):
    return await service.list_box_tiers()
