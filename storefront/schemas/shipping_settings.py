"""
Shipping Settings Schemas

Pydantic models for the shipping configuration record: packaging tiers,
carrier definitions, fallback rates and global defaults.

ShippingSettings is immutable. The settings store replaces the whole value
on every admin update, so a request never observes a half-applied change.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ==================== Settings Components ====================


class Dimensions(FrozenCamelModel):
    """Box dimensions in the configured dimension unit."""
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class PackagingTier(FrozenCamelModel):
    """Packaging class chosen by item count. max_items is an inclusive upper bound."""
    name: str = Field(..., min_length=1, max_length=50)
    max_items: int = Field(..., gt=0)
    dimensions: Dimensions
    weight_estimate: float = Field(..., gt=0, description="kg")
    description: str = ""


class CarrierConfig(FrozenCamelModel):
    """
    A configured shipping provider.

    adapter selects the registered carrier implementation; credentials are
    opaque and adapter-specific (e.g. api_key/api_secret, client_id/client_secret).
    """
    name: str = Field(..., min_length=1, max_length=100)
    enabled: bool = True
    adapter: str = Field("simulated", min_length=1, max_length=50)
    credentials: Optional[Dict[str, str]] = None
    account_number: Optional[str] = None
    markup_percentage: float = Field(0.0, ge=0, le=100)
    delay_days: int = Field(0, ge=0)
    priority: int = 0  # display order and tie-break only
    description: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials) and any(self.credentials.values())


class FallbackRates(FrozenCamelModel):
    """Base rates used only when no carrier produces a quote."""
    domestic: float = Field(12.99, gt=0)
    international: float = Field(29.99, gt=0)
    express: float = Field(24.99, gt=0)


# ==================== Settings Record ====================


def _unique_names(items, label: str) -> None:
    seen = set()
    for item in items:
        key = item.name.strip().lower()
        if key in seen:
            raise ValueError(f"Duplicate {label} name: {item.name}")
        seen.add(key)


class ShippingSettings(FrozenCamelModel):
    """Singleton shipping configuration snapshot."""
    box_tiers: Tuple[PackagingTier, ...] = ()
    carriers: Tuple[CarrierConfig, ...] = ()
    fallback_rates: FallbackRates = FallbackRates()
    default_markup_percentage: float = Field(10.0, ge=0, le=100)
    default_delay_days: int = Field(1, ge=0)
    currency: str = Field("CAD", min_length=3, max_length=3)
    weight_unit: Literal["kg", "lbs"] = "kg"
    dimension_unit: Literal["cm", "in"] = "cm"
    updated_at: Optional[datetime] = None

    @field_validator("box_tiers")
    @classmethod
    def sort_tiers(cls, v):
        return tuple(sorted(v, key=lambda tier: tier.max_items))

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()

    @model_validator(mode="after")
    def check_unique_names(self):
        _unique_names(self.box_tiers, "packaging tier")
        _unique_names(self.carriers, "carrier")
        return self

    def enabled_carriers(self) -> List[CarrierConfig]:
        """Enabled carriers ordered by priority."""
        return sorted(
            (carrier for carrier in self.carriers if carrier.enabled),
            key=lambda carrier: carrier.priority,
        )

    def get_carrier(self, name: str) -> Optional[CarrierConfig]:
        key = name.strip().lower()
        for carrier in self.carriers:
            if carrier.name.lower() == key:
                return carrier
        return None


class ShippingSettingsUpdate(CamelModel):
    """
    Partial admin update.

    Tiers and carriers replace the stored arrays wholesale; fallback rates
    are merged over the stored ones; scalar defaults are applied individually.
    """
    box_tiers: Optional[List[PackagingTier]] = Field(None, min_length=1)
    carriers: Optional[List[CarrierConfig]] = None
    fallback_rates: Optional[FallbackRates] = None
    default_markup_percentage: Optional[float] = Field(None, ge=0, le=100)
    default_delay_days: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    weight_unit: Optional[Literal["kg", "lbs"]] = None
    dimension_unit: Optional[Literal["cm", "in"]] = None


# ==================== Defaults ====================


DEFAULT_BOX_TIERS = (
    PackagingTier(
        name="Small",
        max_items=1,
        dimensions=Dimensions(length=25, width=20, height=2),
        weight_estimate=0.3,
        description="Perfect for single items",
    ),
    PackagingTier(
        name="Medium",
        max_items=10,
        dimensions=Dimensions(length=35, width=25, height=10),
        weight_estimate=2.5,
        description="Ideal for 2-10 items",
    ),
    PackagingTier(
        name="Large",
        max_items=20,
        dimensions=Dimensions(length=45, width=35, height=15),
        weight_estimate=4.5,
        description="Suitable for 11-20 items",
    ),
    PackagingTier(
        name="XL",
        max_items=35,
        dimensions=Dimensions(length=55, width=45, height=20),
        weight_estimate=7.5,
        description="For large orders (21-35 items)",
    ),
)

DEFAULT_CARRIERS = (
    CarrierConfig(
        name="Canada Post",
        enabled=True,
        markup_percentage=10,
        delay_days=1,
        priority=1,
        description="Reliable domestic shipping",
    ),
    CarrierConfig(
        name="UPS",
        enabled=True,
        markup_percentage=15,
        delay_days=0,
        priority=2,
        description="Fast international shipping",
    ),
    CarrierConfig(
        name="Purolator",
        enabled=True,
        markup_percentage=12,
        delay_days=1,
        priority=3,
        description="Express delivery options",
    ),
    CarrierConfig(
        name="FedEx",
        enabled=False,
        markup_percentage=20,
        delay_days=0,
        priority=4,
        description="Premium shipping service",
    ),
)


def default_shipping_settings() -> ShippingSettings:
    return ShippingSettings(
        box_tiers=DEFAULT_BOX_TIERS,
        carriers=DEFAULT_CARRIERS,
        fallback_rates=FallbackRates(),
    )
