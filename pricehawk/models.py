# pricehawk/models.py
"""SQLAlchemy ORM models for tracked listings, their price history and alerts.

A Listing owns its history entries and alerts; deleting it cascades to both.
"""
from sqlalchemy import (
    Boolean, Column, ForeignKey, Index, Integer, Numeric, Text, TIMESTAMP, func,
)
from sqlalchemy.orm import relationship
from .db import Base

LISTING_ACTIVE = "active"
LISTING_STATUSES = ("active", "inactive", "removed")
ALERT_PRICE_DROP = "price_drop"

class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True, index=True)
    url = Column(Text, nullable=False, unique=True, index=True)
    title = Column(Text)
    price = Column(Numeric(12, 2), nullable=False)
    location = Column(Text)
    category = Column(Text)
    status = Column(Text, nullable=False, default=LISTING_ACTIVE, server_default=LISTING_ACTIVE)
    last_checked_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    history = relationship(
        "PriceHistory", back_populates="listing",
        cascade="all, delete-orphan",
        order_by="PriceHistory.recorded_at",
    )
    alerts = relationship(
        "Alert", back_populates="listing",
        cascade="all, delete-orphan",
    )

class PriceHistory(Base):
    __tablename__ = "price_history"
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    recorded_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    listing = relationship("Listing", back_populates="history")

class Alert(Base):
    __tablename__ = "alerts"
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    user_email = Column(Text, nullable=False)
    target_price = Column(Numeric(12, 2), nullable=False)
    alert_type = Column(Text, nullable=False, default=ALERT_PRICE_DROP)
    is_active = Column(Boolean, nullable=False, default=True)
    triggered_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    listing = relationship("Listing", back_populates="alerts")

    @property
    def title(self):
        return self.listing.title if self.listing else None

    @property
    def current_price(self):
        return self.listing.price if self.listing else None

Index("idx_listings_status", Listing.status)
Index("idx_price_history_listing", PriceHistory.listing_id, PriceHistory.recorded_at)
Index("idx_alerts_listing_active", Alert.listing_id, Alert.is_active)
