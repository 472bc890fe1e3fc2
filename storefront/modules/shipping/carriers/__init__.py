"""
Carrier Registry and Factory

- Adapters register themselves under an adapter key
- CarrierFactory builds one adapter instance per CarrierConfig
- Instances are per request; they must not be shared between quotes
"""
from typing import Dict, List, Type
import logging

from storefront.core.exceptions import CarrierNotRegisteredError
from storefront.modules.shipping.carriers.base import BaseCarrier
from storefront.schemas.shipping_settings import CarrierConfig

logger = logging.getLogger(__name__)

# Registry of carrier implementations
_CARRIER_REGISTRY: Dict[str, Type[BaseCarrier]] = {}


def register_carrier(adapter_key: str):
    """
    Decorator to register a carrier implementation.

    Usage:
        @register_carrier("ups")
        class UPSCarrier(BaseCarrier):
            ...
    """
    def decorator(cls: Type[BaseCarrier]):
        _CARRIER_REGISTRY[adapter_key.lower()] = cls
        logger.debug(f"Registered carrier adapter: {adapter_key} -> {cls.__name__}")
        return cls
    return decorator


class CarrierFactory:
    """Factory for creating carrier instances from configuration."""

    @classmethod
    def create(cls, config: CarrierConfig) -> BaseCarrier:
        """
        Build the adapter for a carrier configuration.

        Raises:
            CarrierNotRegisteredError: config.adapter has no implementation
        """
        carrier_cls = _CARRIER_REGISTRY.get(config.adapter.lower())
        if not carrier_cls:
            logger.warning(f"No implementation registered for adapter: {config.adapter}")
            raise CarrierNotRegisteredError(
                f"Unknown carrier adapter '{config.adapter}'",
                carrier=config.name,
            )
        return carrier_cls(config)

    @classmethod
    def get_registered_adapters(cls) -> List[str]:
        """Get list of all registered adapter keys."""
        return sorted(_CARRIER_REGISTRY.keys())


# Import carriers to trigger registration
# These imports must be at the bottom to avoid circular imports
from storefront.modules.shipping.carriers.simulated import SimulatedCarrier  # noqa: E402, F401
from storefront.modules.shipping.carriers.canada_post import CanadaPostCarrier  # noqa: E402, F401
from storefront.modules.shipping.carriers.ups import UPSCarrier  # noqa: E402, F401
