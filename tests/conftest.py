"""
Pytest configuration and fixtures for storefront shipping tests.
"""
import asyncio
import os
import pytest
from unittest.mock import MagicMock, AsyncMock

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SHIPPING_SIMULATED_LATENCY_MS"] = "0"
os.environ["ADMIN_API_TOKEN"] = ""
os.environ.pop("DATABASE_URL", None)

from storefront.core.monitoring import metrics  # noqa: E402
from storefront.modules.shipping.carriers.base import BaseCarrier, CarrierRate  # noqa: E402
from storefront.schemas.shipping import AddressIn, OrderItemIn  # noqa: E402
from storefront.schemas.shipping_settings import (  # noqa: E402
    CarrierConfig,
    ShippingSettings,
    default_shipping_settings,
)
from storefront.services.settings_store import (  # noqa: E402
    InMemorySettingsBackend,
    ShippingSettingsStore,
)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are process-global; start every test from zero."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    db.get = AsyncMock(return_value=None)
    return db


@pytest.fixture
def sample_origin() -> AddressIn:
    return AddressIn(
        address="123 Main St",
        city="Montreal",
        province="QC",
        postal_code="H2X1Y1",
        country="CA",
    )


@pytest.fixture
def sample_destination() -> AddressIn:
    return AddressIn(
        name="Jane Doe",
        address="500 King St W",
        city="Toronto",
        province="ON",
        postal_code="M5V1L9",
        country="CA",
    )


@pytest.fixture
def international_destination() -> AddressIn:
    return AddressIn(
        address="350 5th Ave",
        city="New York",
        province="NY",
        postal_code="10118",
        country="US",
    )


@pytest.fixture
def sample_items() -> list:
    """Three unweighted items (3 x 0.2 kg)."""
    return [OrderItemIn(product_ref="SKU-001", quantity=3, unit_price=19.99)]


@pytest.fixture
def make_settings():
    """Build validated ShippingSettings from the defaults plus overrides."""
    def _make(**overrides) -> ShippingSettings:
        data = default_shipping_settings().model_dump()
        data.update(overrides)
        return ShippingSettings.model_validate(data)
    return _make


@pytest.fixture
def single_carrier_settings(make_settings) -> ShippingSettings:
    return make_settings(
        carriers=[
            CarrierConfig(name="Test Post", markup_percentage=10, delay_days=1, priority=1),
        ]
    )


@pytest.fixture
def settings_store() -> ShippingSettingsStore:
    return ShippingSettingsStore(InMemorySettingsBackend())


@pytest.fixture
def make_store():
    def _make(snapshot: ShippingSettings) -> ShippingSettingsStore:
        return ShippingSettingsStore(InMemorySettingsBackend(snapshot))
    return _make


class StubCarrier(BaseCarrier):
    """Carrier with scripted behaviour."""

    def __init__(self, config, amount=10.0, delay=0.0, error=None, weight_adjusted=False, tracker=None,
                 currency=None):
        super().__init__(config)
        self.amount = amount
        self.currency = currency
        self.delay = delay
        self.error = error
        self.weight_adjusted = weight_adjusted
        self.tracker = tracker if tracker is not None else {}

    async def get_rate(self, origin, destination, tier, weight):
        self.tracker["active"] = self.tracker.get("active", 0) + 1
        self.tracker["peak"] = max(self.tracker.get("peak", 0), self.tracker["active"])
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return CarrierRate(amount=self.amount, currency=self.currency, weight_adjusted=self.weight_adjusted)
        except asyncio.CancelledError:
            self.tracker.setdefault("cancelled", []).append(self.carrier_name)
            raise
        finally:
            self.tracker["active"] -= 1

    async def test_connection(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return f"{self.carrier_name} ok"

    async def close(self):
        self.tracker.setdefault("closed", []).append(self.carrier_name)


class StubFactory:
    """Stands in for CarrierFactory; behaviour keyed by carrier name."""

    def __init__(self, behaviours=None, tracker=None):
        self.behaviours = behaviours or {}
        self.tracker = tracker if tracker is not None else {}
        self.created = []

    def create(self, config):
        self.created.append(config.name)
        behaviour = self.behaviours.get(config.name, {})
        if isinstance(behaviour, Exception):
            raise behaviour
        return StubCarrier(config, tracker=self.tracker, **behaviour)


@pytest.fixture
def stub_factory():
    """Carrier factory with scripted per-carrier behaviour: stub_factory({name: kwargs})."""
    return StubFactory
