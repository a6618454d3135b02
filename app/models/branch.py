"""Branch-related models"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class TableType(str, enum.Enum):
    """Physical table kinds"""
    REGULAR = "REGULAR"
    BOOTH = "BOOTH"
    BAR = "BAR"
    OUTDOOR = "OUTDOOR"
    PRIVATE = "PRIVATE"


class Branch(Base):
    """Restaurant branch"""
    __tablename__ = "branches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    phone = Column(String(20))
    email = Column(String(255))
    timezone = Column(String(50), default="UTC")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tables = relationship("Table", back_populates="branch")
    operating_hours = relationship("OperatingHour", back_populates="branch")
    blocked_slots = relationship("BlockedSlot", back_populates="branch")
    users = relationship("User", back_populates="branch")


class OperatingHour(Base):
    """Weekly opening hours, one row per (branch, day of week). 0 = Sunday."""
    __tablename__ = "operating_hours"
    __table_args__ = (
        UniqueConstraint("branch_id", "day_of_week", name="uq_operating_hours_branch_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_operating_hours_day"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    open_time = Column(Time)
    close_time = Column(Time)
    break_start = Column(Time)
    break_end = Column(Time)
    is_closed = Column(Boolean, default=False)

    branch = relationship("Branch", back_populates="operating_hours")


class Table(Base):
    """Physical table belonging to one branch"""
    __tablename__ = "tables"
    __table_args__ = (
        CheckConstraint("min_capacity <= capacity", name="ck_tables_min_capacity"),
        UniqueConstraint("branch_id", "table_number", name="uq_tables_branch_number"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)
    table_number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False)
    min_capacity = Column(Integer, default=1)
    table_type = Column(Enum(TableType), default=TableType.REGULAR)

    # Floor plan position
    position_x = Column(Integer)
    position_y = Column(Integer)
    floor = Column(Integer, default=1)

    is_combinable = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    branch = relationship("Branch", back_populates="tables")


class BlockedSlot(Base):
    """Administrator-declared unavailability window. Immutable once created."""
    __tablename__ = "blocked_slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_blocked_slots_window"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(Text)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    branch = relationship("Branch", back_populates="blocked_slots")
