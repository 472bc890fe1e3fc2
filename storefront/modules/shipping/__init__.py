"""
Shipping Module

- Order metrics, packaging tier selection and rate arithmetic
- BaseCarrier interface for all carrier adapters
- CarrierFactory builds adapters from carrier configuration
"""
from storefront.modules.shipping.carriers import CarrierFactory, register_carrier
from storefront.modules.shipping.carriers.base import AddressInput, BaseCarrier, CarrierRate
from storefront.modules.shipping.quote import ShippingQuote, assemble_quotes

__all__ = [
    "AddressInput",
    "BaseCarrier",
    "CarrierFactory",
    "CarrierRate",
    "ShippingQuote",
    "assemble_quotes",
    "register_carrier",
]
