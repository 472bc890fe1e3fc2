"""
Shipping Settings Model

Single-row table holding the shipping configuration as a JSON document.
Carrier credential values inside the document are Fernet-encrypted.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON

from storefront.core.database import Base

SINGLETON_ID = 1


def utcnow():
    return datetime.now(timezone.utc)


class ShippingSettingsRecord(Base):
    """The one shipping settings row."""
    __tablename__ = "shipping_settings"

    id = Column(Integer, primary_key=True, default=SINGLETON_ID)
    data = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ShippingSettingsRecord(id={self.id}, updated_at={self.updated_at})>"
