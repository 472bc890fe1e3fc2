# Database models
from storefront.models.shipping_settings import ShippingSettingsRecord

__all__ = ["ShippingSettingsRecord"]
