"""
Storefront Exception Hierarchy

Structured exception classes for the shipping subsystem.
All exceptions include code, message, and details for logging and API responses.

Exception Hierarchy:
    StorefrontError
    ├── ShippingError
    │   ├── ShippingConfigurationError
    │   ├── ShippingValidationError
    │   └── SettingsValidationError
    └── CarrierError
        ├── CarrierAuthError
        ├── CarrierTimeoutError
        ├── CarrierResponseError
        └── CarrierNotRegisteredError
"""
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """
    Base exception for all storefront custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "STOREFRONT_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(StorefrontError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"


class ShippingConfigurationError(ShippingError):
    """Shipping settings are unusable (e.g. no packaging tiers)."""
    default_code = "SHIPPING_CONFIGURATION_ERROR"
    default_severity = "P0"


class ShippingValidationError(ShippingError):
    """Quote request rejected before any computation."""
    default_code = "SHIPPING_VALIDATION_FAILED"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        fields: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["fields"] = fields or []
        super().__init__(message, details=details, **kwargs)

    @property
    def fields(self) -> List[str]:
        return self.details.get("fields", [])


class SettingsValidationError(ShippingValidationError):
    """Admin settings update rejected."""
    default_code = "SHIPPING_SETTINGS_INVALID"


# =============================================================================
# CARRIER ERRORS
# =============================================================================

class CarrierError(StorefrontError):
    """
    A single carrier could not produce a rate.

    Recovered inside the rate aggregator; never surfaced to quote callers.
    """
    default_code = "CARRIER_ERROR"
    default_severity = "P2"

    def __init__(
        self,
        message: str,
        carrier: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["carrier"] = carrier
        self.carrier = carrier
        super().__init__(message, details=details, **kwargs)


class CarrierAuthError(CarrierError):
    """Credentials missing or rejected by the carrier."""
    default_code = "CARRIER_AUTH_FAILED"


class CarrierTimeoutError(CarrierError):
    """Carrier did not answer within its time budget."""
    default_code = "CARRIER_TIMEOUT"


class CarrierResponseError(CarrierError):
    """Carrier answered with an error or an unparseable payload."""
    default_code = "CARRIER_BAD_RESPONSE"


class CarrierNotRegisteredError(CarrierError):
    """No implementation registered for the configured adapter."""
    default_code = "CARRIER_NOT_REGISTERED"
    default_severity = "P1"
