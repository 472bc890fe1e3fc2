"""
Shipping Schemas

Pydantic models for shipping API requests and responses.
Wire format is camelCase; attributes are snake_case.
"""
from datetime import date
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from storefront.schemas.shipping_settings import CamelModel, PackagingTier


# ==================== Request Schemas ====================


class AddressIn(CamelModel):
    """
    Shipping address.

    address, city, postalCode and country are required; presence is checked
    by the quote service so every missing field is reported at once.
    """
    address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=56)
    province: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, max_length=100)


class OrderItemIn(CamelModel):
    """A single order line."""
    product_ref: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=0)
    unit_price: Optional[float] = Field(None, ge=0)
    unit_weight: Optional[float] = Field(None, ge=0, description="kg per unit")


class RateQuoteRequest(CamelModel):
    """Request shipping options for a set of order lines."""
    order_items: List[OrderItemIn] = Field(default_factory=list)
    origin: Optional[AddressIn] = None  # defaults to the store origin
    destination: Optional[AddressIn] = None
    express: bool = False


class CarrierTestRequest(CamelModel):
    """
    Admin connectivity check for one carrier.

    When credentials are omitted the stored credentials of the named carrier are used.
    """
    name: str = Field(..., min_length=1, max_length=100)
    adapter: Optional[str] = Field(None, max_length=50)
    credentials: Optional[Dict[str, str]] = None
    account_number: Optional[str] = None


# ==================== Response Schemas ====================


class ShippingQuoteOut(CamelModel):
    """A single shipping option."""
    carrier_name: str
    rate: float
    currency: str
    estimated_days: int
    delivery_date: Optional[date] = None
    service_label: str
    tracking_supported: bool
    packaging_tier_name: str
    total_weight: float
    total_items: int
    method: str = "Standard"


class RateQuoteResponse(CamelModel):
    """Ranked shipping options for an order."""
    options: List[ShippingQuoteOut]
    packaging_tier: PackagingTier
    total_weight: float
    total_items: int


class CarrierFailureOut(CamelModel):
    carrier: str
    code: str
    message: str


class RateTestInfo(CamelModel):
    total_weight: float
    total_items: int
    packaging_tier: PackagingTier
    is_domestic: bool
    used_fallback: bool
    carrier_failures: List[CarrierFailureOut] = Field(default_factory=list)


class RateTestResponse(CamelModel):
    rates: RateQuoteResponse
    test_info: RateTestInfo


class CarrierTestResponse(CamelModel):
    success: bool
    carrier: str
    adapter: str
    message: str
    latency_ms: Optional[float] = None


class PublicCarrierOut(CamelModel):
    name: str
    description: str
    priority: int
    delay_days: int


class CarrierLatencyOut(CamelModel):
    """Latency of recent rate calls (last five minutes)."""
    count: int
    avg: float
    p95: float


class ShippingStatsResponse(CamelModel):
    total_carriers: int
    enabled_carriers: int
    total_box_tiers: int
    average_markup: float
    quotes_total: int
    fallback_total: int
    carrier_failures: Dict[str, int] = Field(default_factory=dict)
    carrier_latency_ms: Dict[str, CarrierLatencyOut] = Field(default_factory=dict)
    uptime_seconds: float = 0.0

    @field_validator("average_markup")
    @classmethod
    def round_markup(cls, v):
        return round(v, 2)
