"""Customer management API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.auth import get_current_user
from app.api.deps import get_customer_service
from app.models.user import User
from app.schemas.booking import BookingResponse
from app.schemas.customer import (
    BlacklistRequest,
    CustomerCreate,
    CustomerExportResponse,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    LoyaltyAdjustRequest,
    LoyaltyRedeemRequest,
    LoyaltyStatusResponse,
    MergeRequest,
    NoteCreate,
    NoteResponse,
    ReferralStatsResponse,
    RewardRedeemRequest,
    RewardRedemptionResponse,
    RewardResponse,
    TimelineEntryResponse,
)
from app.services.customers import CustomerService

router = APIRouter()


def _loyalty_response(customer_id: UUID, account, transactions=()) -> LoyaltyStatusResponse:
    return LoyaltyStatusResponse(
        customer_id=customer_id,
        points=account.points,
        tier=account.tier,
        total_referrals=account.total_referrals,
        transactions=list(transactions),
    )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Create a customer profile"""
    return await service.create(current_user, **customer_data.model_dump())


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    tier: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """List active customers; ``tier`` also accepts BLACKLISTED"""
    items, total = await service.list_customers(current_user, tier, search, page, page_size)
    return CustomerListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/search", response_model=List[CustomerResponse])
async def search_customers(
    q: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.search(current_user, q)


@router.get("/rewards", response_model=List[RewardResponse])
async def list_rewards(
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Active rewards catalog"""
    return await service.get_rewards(current_user)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.get(current_user, customer_id)


@router.post("/{customer_id}/blacklist", response_model=CustomerResponse)
async def blacklist_customer(
    customer_id: UUID,
    request: BlacklistRequest,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.blacklist(current_user, customer_id, request.reason)


@router.delete("/{customer_id}/blacklist", response_model=CustomerResponse)
async def remove_blacklist(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.remove_blacklist(current_user, customer_id)


@router.get("/{customer_id}/timeline", response_model=List[TimelineEntryResponse])
async def get_timeline(
    customer_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.get_timeline(current_user, customer_id, limit)


@router.post("/{customer_id}/merge", response_model=CustomerResponse)
async def merge_customers(
    customer_id: UUID,
    request: MergeRequest,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Fold a duplicate profile into this customer"""
    return await service.merge(current_user, customer_id, request.duplicate_id)


@router.get("/{customer_id}/loyalty", response_model=LoyaltyStatusResponse)
async def get_loyalty(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    account, transactions = await service.loyalty_status(current_user, customer_id)
    return _loyalty_response(customer_id, account, transactions)


@router.post("/{customer_id}/loyalty/adjust", response_model=LoyaltyStatusResponse)
async def adjust_loyalty(
    customer_id: UUID,
    request: LoyaltyAdjustRequest,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    account = await service.adjust_loyalty(current_user, customer_id, request.points, request.reason)
    return _loyalty_response(customer_id, account)


@router.post("/{customer_id}/loyalty/redeem", response_model=LoyaltyStatusResponse)
async def redeem_loyalty(
    customer_id: UUID,
    request: LoyaltyRedeemRequest,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    account = await service.redeem_loyalty(current_user, customer_id, request.points, request.reason)
    return _loyalty_response(customer_id, account)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: UUID,
    changes: CustomerUpdate,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.update(current_user, customer_id, changes.model_dump(exclude_unset=True))


@router.get("/{customer_id}/bookings", response_model=List[BookingResponse])
async def get_customer_bookings(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.get_bookings(current_user, customer_id)


@router.get("/{customer_id}/notes", response_model=List[NoteResponse])
async def list_notes(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.list_notes(current_user, customer_id)


@router.post("/{customer_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def add_note(
    customer_id: UUID,
    request: NoteCreate,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.add_note(current_user, customer_id, request.content)


@router.get("/{customer_id}/referrals", response_model=ReferralStatsResponse)
async def get_referrals(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.referral_stats(current_user, customer_id)


@router.get("/{customer_id}/export", response_model=CustomerExportResponse)
async def export_customer(
    customer_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Profile, bookings, notes and timeline in one document"""
    return await service.export_data(current_user, customer_id)


@router.post(
    "/{customer_id}/rewards/redeem",
    response_model=RewardRedemptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def redeem_reward(
    customer_id: UUID,
    request: RewardRedeemRequest,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.redeem_reward(current_user, customer_id, request.reward_id)
