"""Booking API endpoints"""

from datetime import date, time
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.auth import get_current_user
from app.api.deps import get_booking_service
from app.models.booking import BookingStatus
from app.models.user import User
from app.schemas.booking import (
    AvailabilityResponse,
    BookingCancel,
    BookingCreate,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    WaitlistEntryResponse,
)
from app.services.bookings import BookingService, CustomerDetails

router = APIRouter()


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    branch_id: Optional[UUID] = None,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings visible to the caller with pagination"""
    items, total = await service.list_bookings(
        current_user,
        branch_id=branch_id,
        status=status_filter,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        page_size=page_size,
    )
    return BookingListResponse(items=items, total=total, page=page, page_size=page_size)


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking, or report the slot as taken with alternatives"""
    details = None
    if booking_data.customer is not None:
        details = CustomerDetails(
            full_name=booking_data.customer.full_name,
            email=booking_data.customer.email,
            phone=booking_data.customer.phone,
        )

    result = await service.create(
        current_user,
        branch_id=booking_data.branch_id,
        booking_date=booking_data.booking_date,
        time_slot=booking_data.time_slot,
        party_size=booking_data.party_size,
        table_id=booking_data.table_id,
        customer_id=booking_data.customer_id,
        customer=details,
        duration_minutes=booking_data.duration_minutes,
        special_requests=booking_data.special_requests,
        internal_notes=booking_data.internal_notes,
        source=booking_data.source,
        join_waitlist=booking_data.join_waitlist,
    )

    if not result.is_booked:
        response.status_code = status.HTTP_200_OK
    return BookingCreateResponse(
        status=result.status,
        booking=BookingResponse.model_validate(result.booking) if result.booking else None,
        suggestions=result.suggestions,
        waitlist_entry=(
            WaitlistEntryResponse.model_validate(result.waitlist_entry)
            if result.waitlist_entry
            else None
        ),
    )


@router.get("/upcoming", response_model=List[BookingResponse])
async def upcoming_bookings(
    branch_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Pending and confirmed bookings from today onwards"""
    return await service.get_upcoming(current_user, branch_id, limit)


@router.get("/availability", response_model=bool)
async def check_availability(
    branch_id: UUID,
    booking_date: date,
    time_slot: time,
    table_id: Optional[UUID] = None,
    duration_minutes: Optional[int] = Query(None, ge=1),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Staff availability check for a branch or a specific table"""
    return await service.check_availability(
        current_user, branch_id, booking_date, time_slot, table_id, duration_minutes
    )


@router.get("/public/availability", response_model=AvailabilityResponse)
async def check_availability_public(
    branch_id: UUID,
    booking_date: date,
    time_slot: time,
    party_size: int = Query(..., ge=1),
    service: BookingService = Depends(get_booking_service),
):
    """Guest-facing availability check"""
    result = await service.check_availability_public(branch_id, booking_date, time_slot, party_size)
    return AvailabilityResponse(
        branch_id=branch_id,
        booking_date=booking_date,
        time_slot=time_slot,
        party_size=party_size,
        **result,
    )


@router.get("/code/{booking_code}", response_model=BookingResponse)
async def get_booking_by_code(
    booking_code: str,
    service: BookingService = Depends(get_booking_service),
):
    """Look up a booking by its short code"""
    return await service.get_booking_by_code(booking_code)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Get booking details"""
    return await service.get(current_user, booking_id)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    booking_data: BookingUpdate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Reschedule or edit a booking"""
    return await service.update(current_user, booking_id, booking_data.model_dump(exclude_unset=True))


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.confirm(current_user, booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    cancel_data: Optional[BookingCancel] = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    reason = cancel_data.reason if cancel_data else None
    return await service.cancel(current_user, booking_id, reason)


@router.post("/{booking_id}/no-show", response_model=BookingResponse)
async def mark_no_show(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.mark_no_show(current_user, booking_id)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.check_in(current_user, booking_id)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.complete(current_user, booking_id)
