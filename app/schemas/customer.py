"""Customer, note, reward and loyalty schemas"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from app.models.customer import CustomerTier, TimelineEventType
from app.models.loyalty import LoyaltyTier, LoyaltyTransactionType, RedemptionStatus
from app.schemas.booking import BookingResponse


class CustomerCreate(BaseModel):
    """Create customer request"""
    full_name: str = Field(min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = None
    preferences: Dict[str, Any] = {}
    referred_by_id: Optional[UUID] = None


class CustomerResponse(BaseModel):
    """Customer response"""
    id: UUID
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    notes: Optional[str]
    preferences: Optional[Dict[str, Any]]
    tier: CustomerTier
    is_blacklisted: bool
    blacklist_reason: Optional[str]
    total_bookings: int
    successful_bookings: int
    cancellations: int
    no_shows: int
    referred_by_id: Optional[UUID]
    merged_into_id: Optional[UUID]
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class BlacklistRequest(BaseModel):
    """Manual blacklist request"""
    reason: str


class MergeRequest(BaseModel):
    """Fold a duplicate profile into this one"""
    duplicate_id: UUID


class TimelineEntryResponse(BaseModel):
    """Customer timeline entry"""
    id: UUID
    event_type: TimelineEventType
    description: str
    metadata_json: Optional[Dict[str, Any]]
    actor_id: Optional[UUID]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class LoyaltyAdjustRequest(BaseModel):
    """Manual points adjustment"""
    points: int
    reason: str = Field(min_length=1)


class LoyaltyRedeemRequest(BaseModel):
    """Points redemption"""
    points: int = Field(ge=1)
    reason: str = Field(min_length=1)


class LoyaltyTransactionResponse(BaseModel):
    """Loyalty ledger entry"""
    id: UUID
    points: int
    type: LoyaltyTransactionType
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class LoyaltyStatusResponse(BaseModel):
    """Loyalty account state"""
    customer_id: UUID
    points: int
    tier: LoyaltyTier
    total_referrals: int
    transactions: List[LoyaltyTransactionResponse] = []


class CustomerUpdate(BaseModel):
    """Partial profile update"""
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None


class CustomerListResponse(BaseModel):
    """Paginated customer list"""
    items: List[CustomerResponse]
    total: int
    page: int
    page_size: int


class NoteCreate(BaseModel):
    """Internal note"""
    content: str = Field(min_length=1)


class NoteResponse(BaseModel):
    """Internal note"""
    id: UUID
    customer_id: UUID
    content: str
    created_by_id: Optional[UUID]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ReferralEntry(BaseModel):
    id: UUID
    full_name: str
    created_at: Optional[datetime]


class ReferralStatsResponse(BaseModel):
    """Profiles referred by a customer"""
    total: int
    loyalty_referrals: int
    referrals: List[ReferralEntry]


class CustomerExportResponse(BaseModel):
    """Everything stored about a customer"""
    customer: CustomerResponse
    bookings: List[BookingResponse]
    notes: List[NoteResponse]
    timeline: List[TimelineEntryResponse]


class RewardResponse(BaseModel):
    """Rewards catalog entry"""
    id: UUID
    name: str
    description: Optional[str]
    points_required: int

    class Config:
        from_attributes = True


class RewardRedeemRequest(BaseModel):
    """Redeem a catalog reward"""
    reward_id: UUID


class RewardRedemptionResponse(BaseModel):
    """Redeemed reward"""
    id: UUID
    reward_id: UUID
    customer_id: UUID
    points_spent: int
    status: RedemptionStatus
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
