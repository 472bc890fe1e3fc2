"""
Shipping Settings Store

Owns the single shipping configuration record.

- get() returns the current immutable snapshot, creating and persisting
  defaults on first access
- update() validates a partial change, builds a new snapshot, persists it
  and swaps it in; writers are serialized, readers never wait
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from storefront.core.database import database_configured, get_session_factory
from storefront.core.exceptions import SettingsValidationError, ShippingConfigurationError
from storefront.models.shipping_settings import SINGLETON_ID, ShippingSettingsRecord
from storefront.schemas.shipping_settings import (
    ShippingSettings,
    ShippingSettingsUpdate,
    default_shipping_settings,
)
from storefront.services.encryption import (
    MASK,
    decrypt_credentials,
    encrypt_credentials,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_fields(exc: ValidationError) -> List[str]:
    """Dotted camelCase paths for every failing field."""
    fields = []
    for error in exc.errors():
        parts = [
            to_camel(part) if isinstance(part, str) and "_" in part else str(part)
            for part in error["loc"]
        ]
        fields.append(".".join(parts) or "__root__")
    return fields


# =============================================================================
# Persistence backends
# =============================================================================

class SettingsBackend(ABC):
    """Where the settings record lives."""

    @abstractmethod
    async def load(self) -> Optional[ShippingSettings]:
        """Return the stored settings, or None if nothing has been stored yet."""
        pass

    @abstractmethod
    async def save(self, snapshot: ShippingSettings) -> None:
        pass


class InMemorySettingsBackend(SettingsBackend):
    """Process-local storage. Used when no database is configured and in tests."""

    def __init__(self, initial: Optional[ShippingSettings] = None):
        self._stored = initial

    async def load(self) -> Optional[ShippingSettings]:
        return self._stored

    async def save(self, snapshot: ShippingSettings) -> None:
        self._stored = snapshot


class SqlSettingsBackend(SettingsBackend):
    """
    Single JSON row in the shipping_settings table.

    Credential values are encrypted before writing and decrypted on read.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def load(self) -> Optional[ShippingSettings]:
        async with self._session_factory() as session:
            record = await session.get(ShippingSettingsRecord, SINGLETON_ID)

        if record is None:
            return None

        try:
            data = dict(record.data)
            data["carriers"] = [
                {**carrier, "credentials": decrypt_credentials(carrier.get("credentials"))}
                for carrier in data.get("carriers", [])
            ]
            return ShippingSettings.model_validate(data)
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Stored shipping settings are unreadable: {e}")
            raise ShippingConfigurationError(
                "Stored shipping settings are malformed",
                code="SHIPPING_SETTINGS_CORRUPT",
            )

    async def save(self, snapshot: ShippingSettings) -> None:
        data = snapshot.model_dump(mode="json")
        data["carriers"] = [
            {**carrier, "credentials": encrypt_credentials(carrier.get("credentials"))}
            for carrier in data["carriers"]
        ]

        async with self._session_factory() as session:
            record = await session.get(ShippingSettingsRecord, SINGLETON_ID)
            if record is None:
                session.add(ShippingSettingsRecord(id=SINGLETON_ID, data=data))
            else:
                record.data = data
            await session.commit()


# =============================================================================
# Store
# =============================================================================

class ShippingSettingsStore:
    """
    Holder of the current settings snapshot.

    Snapshots are frozen; callers take one reference per request and never
    see a partially applied update.
    """

    def __init__(self, backend: Optional[SettingsBackend] = None):
        self._backend = backend or InMemorySettingsBackend()
        self._snapshot: Optional[ShippingSettings] = None
        self._lock = asyncio.Lock()

    async def get(self) -> ShippingSettings:
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        async with self._lock:
            return await self._load_or_create()

    async def update(self, changes: Union[ShippingSettingsUpdate, Dict[str, Any]]) -> ShippingSettings:
        """
        Apply a partial update.

        Tiers and carriers replace the stored lists. Fallback rates present in
        the change override the stored ones and the rest are kept. Scalars
        are applied one by one. Credential values equal to the display mask
        keep the stored secret.

        Raises:
            SettingsValidationError: the change or the merged result is invalid
        """
        if not isinstance(changes, ShippingSettingsUpdate):
            try:
                changes = ShippingSettingsUpdate.model_validate(changes)
            except ValidationError as e:
                raise SettingsValidationError(
                    "Invalid shipping settings update",
                    fields=_error_fields(e),
                )

        patch = {
            key: value
            for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None
        }

        async with self._lock:
            current = await self._load_or_create()

            if "carriers" in patch:
                patch["carriers"] = [
                    self._retain_masked_credentials(carrier, current)
                    for carrier in patch["carriers"]
                ]

            merged = current.model_dump()
            if "fallback_rates" in patch:
                patch["fallback_rates"] = {**merged["fallback_rates"], **patch["fallback_rates"]}
            merged.update(patch)
            merged["updated_at"] = utcnow()

            try:
                updated = ShippingSettings.model_validate(merged)
            except ValidationError as e:
                raise SettingsValidationError(
                    "Invalid shipping settings",
                    fields=_error_fields(e),
                )

            await self._backend.save(updated)
            self._snapshot = updated

        logger.info(f"Shipping settings updated: {', '.join(sorted(patch)) or 'no changes'}")
        return updated

    async def _load_or_create(self) -> ShippingSettings:
        # Caller holds self._lock
        if self._snapshot is not None:
            return self._snapshot

        loaded = await self._backend.load()
        if loaded is None:
            loaded = default_shipping_settings().model_copy(update={"updated_at": utcnow()})
            await self._backend.save(loaded)
            logger.info("Created default shipping settings")

        self._snapshot = loaded
        return loaded

    @staticmethod
    def _retain_masked_credentials(carrier: Dict[str, Any], current: ShippingSettings) -> Dict[str, Any]:
        credentials = carrier.get("credentials")
        if not credentials:
            return carrier

        existing = current.get_carrier(carrier["name"])
        stored = (existing.credentials if existing else None) or {}

        resolved = {}
        for key, value in credentials.items():
            if value == MASK:
                if key in stored:
                    resolved[key] = stored[key]
            else:
                resolved[key] = value
        return {**carrier, "credentials": resolved}


_store: Optional[ShippingSettingsStore] = None


def get_settings_store() -> ShippingSettingsStore:
    """Process-wide settings store."""
    global _store

    if _store is None:
        if database_configured():
            backend = SqlSettingsBackend(get_session_factory())
        else:
            logger.warning("DATABASE_URL not set; shipping settings are kept in memory")
            backend = InMemorySettingsBackend()
        _store = ShippingSettingsStore(backend)
    return _store
