"""Booking schemas"""

from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from app.models.booking import BookingSource, BookingStatus, WaitlistStatus


class CustomerDetailsIn(BaseModel):
    """Guest details for find-or-create"""
    full_name: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)


class BookingCreate(BaseModel):
    """Create booking request"""
    branch_id: UUID
    booking_date: date
    time_slot: time
    party_size: int = Field(ge=1)
    table_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    customer: Optional[CustomerDetailsIn] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None
    source: BookingSource = BookingSource.ADMIN
    join_waitlist: bool = False


class BookingUpdate(BaseModel):
    """Partial reschedule; omitted fields keep their current value"""
    booking_date: Optional[date] = None
    time_slot: Optional[time] = None
    party_size: Optional[int] = Field(default=None, ge=1)
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    table_id: Optional[UUID] = None
    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None


class BookingCancel(BaseModel):
    """Cancel request"""
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    """Booking response"""
    id: UUID
    booking_code: str
    branch_id: UUID
    table_id: Optional[UUID]
    customer_id: Optional[UUID]
    booking_date: date
    time_slot: time
    duration_minutes: int
    party_size: int
    status: BookingStatus
    source: Optional[BookingSource]
    special_requests: Optional[str]
    internal_notes: Optional[str]
    created_by_id: Optional[UUID]
    confirmed_at: Optional[datetime]
    checked_in_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class WaitlistEntryResponse(BaseModel):
    """Waitlist entry"""
    id: UUID
    branch_id: UUID
    customer_id: Optional[UUID]
    booking_date: date
    time_slot: time
    party_size: int
    status: WaitlistStatus
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class BookingCreateResponse(BaseModel):
    """Outcome of a create request"""
    status: str  # "booked" | "waitlisted"
    booking: Optional[BookingResponse] = None
    suggestions: List[time] = []
    waitlist_entry: Optional[WaitlistEntryResponse] = None


class BookingListResponse(BaseModel):
    """Paginated booking list"""
    items: List[BookingResponse]
    total: int
    page: int
    page_size: int


class AvailabilityResponse(BaseModel):
    """Availability check response"""
    branch_id: UUID
    booking_date: date
    time_slot: time
    party_size: int
    available: bool
    is_open: bool
    available_tables: int
    suggestions: List[time] = []
