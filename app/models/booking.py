"""Booking, booking history and waitlist models"""

import uuid
from datetime import datetime
from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a table for their time window
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)

TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


class BookingSource(str, enum.Enum):
    """Where the booking came from"""
    ADMIN = "ADMIN"
    ONLINE = "ONLINE"
    PHONE = "PHONE"
    WALK_IN = "WALK_IN"


class WaitlistStatus(str, enum.Enum):
    """Waitlist entry states"""
    PENDING = "PENDING"
    NOTIFIED = "NOTIFIED"
    CONVERTED = "CONVERTED"
    EXPIRED = "EXPIRED"


class Booking(Base):
    """Table reservation at a branch"""
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("party_size > 0", name="ck_bookings_party_size"),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration"),
        Index("ix_bookings_branch_date_status", "branch_id", "booking_date", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_code = Column(String(6), unique=True, nullable=False)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"))
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), index=True)

    # Slot
    booking_date = Column(Date, nullable=False)
    time_slot = Column(Time, nullable=False)
    duration_minutes = Column(Integer, default=120)
    party_size = Column(Integer, nullable=False)

    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    source = Column(Enum(BookingSource), default=BookingSource.ADMIN)

    # Notes
    special_requests = Column(Text)
    internal_notes = Column(Text)

    # Lifecycle stamps
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    confirmed_at = Column(DateTime)
    checked_in_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancelled_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    cancellation_reason = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    branch = relationship("Branch")
    table = relationship("Table")
    customer = relationship("Customer", back_populates="bookings")
    history = relationship("BookingHistory", back_populates="booking", order_by="BookingHistory.created_at")

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.time_slot)


class BookingHistory(Base):
    """Append-only audit trail of booking changes"""
    __tablename__ = "booking_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    action = Column(String(50), nullable=False)  # BOOKING_CREATED, AUTO_CONFIRMED, ...
    old_status = Column(Enum(BookingStatus))
    new_status = Column(Enum(BookingStatus))
    changed_by_id = Column(UUID(as_uuid=True))  # null for system actions
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="history")


class WaitlistEntry(Base):
    """Queued request for a slot that had no availability"""
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index("ix_waitlist_slot", "branch_id", "booking_date", "time_slot", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    booking_date = Column(Date, nullable=False)
    time_slot = Column(Time, nullable=False)
    party_size = Column(Integer, nullable=False)
    status = Column(Enum(WaitlistStatus), default=WaitlistStatus.PENDING, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    notified_at = Column(DateTime)
