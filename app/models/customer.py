"""Customer, customer note and customer timeline models"""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class CustomerTier(str, enum.Enum):
    """Customer-level tier, derived from successful bookings"""
    REGULAR = "REGULAR"
    VIP = "VIP"


class TimelineEventType(str, enum.Enum):
    """Customer timeline event kinds"""
    PROFILE_CREATED = "PROFILE_CREATED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    NOTE_ADDED = "NOTE_ADDED"
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    NO_SHOW = "NO_SHOW"
    CHECKED_IN = "CHECKED_IN"
    COMPLETED = "COMPLETED"
    WAITLIST_JOINED = "WAITLIST_JOINED"
    WAITLIST_PROMOTED = "WAITLIST_PROMOTED"
    BLACKLISTED = "BLACKLISTED"
    BLACKLIST_REMOVED = "BLACKLIST_REMOVED"
    LOYALTY_UPDATED = "LOYALTY_UPDATED"
    MERGED = "MERGED"


class Customer(Base):
    """Guest profile.

    ``tier``, ``is_blacklisted`` and the counters are derived from booking
    history by ``CustomerStatsService.update_stats``; staff can only set the
    blacklist flag through the explicit blacklist actions.
    """
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), index=True)
    phone = Column(String(20), index=True)
    notes = Column(Text)
    preferences = Column(JSON, default=dict)

    tier = Column(Enum(CustomerTier), default=CustomerTier.REGULAR, nullable=False)
    is_blacklisted = Column(Boolean, default=False, nullable=False)
    blacklist_reason = Column(Text)

    # Counters
    total_bookings = Column(Integer, default=0, nullable=False)
    successful_bookings = Column(Integer, default=0, nullable=False)
    cancellations = Column(Integer, default=0, nullable=False)
    no_shows = Column(Integer, default=0, nullable=False)

    # Referral and merge linkage
    referred_by_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    merged_into_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bookings = relationship("Booking", back_populates="customer")
    timeline = relationship("CustomerTimeline", back_populates="customer")
    loyalty_account = relationship("LoyaltyAccount", back_populates="customer", uselist=False)


class CustomerTimeline(Base):
    """Append-only customer activity log"""
    __tablename__ = "customer_timeline"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    event_type = Column(Enum(TimelineEventType), nullable=False)
    description = Column(Text, nullable=False)
    metadata_json = Column(JSON, default=dict)
    actor_id = Column(UUID(as_uuid=True))  # User ID or null for system
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="timeline")


class CustomerNote(Base):
    """Internal staff note attached to a customer"""
    __tablename__ = "customer_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
