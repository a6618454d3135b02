"""Pydantic schemas for request/response validation"""

from app.schemas.analytics import BranchSummaryResponse, BranchTrendsResponse, TrendPoint
from app.schemas.auth import Token, UserResponse
from app.schemas.booking import (
    AvailabilityResponse,
    BookingCancel,
    BookingCreate,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    CustomerDetailsIn,
    WaitlistEntryResponse,
)
from app.schemas.branch import (
    BlockedSlotCreate,
    BlockedSlotResponse,
    BranchResponse,
    CombineRequest,
    CombineResponse,
    OperatingHourIn,
    OperatingHourResponse,
    TableCreate,
    TableResponse,
)
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
    LoyaltyTransactionResponse,
    MergeRequest,
    NoteCreate,
    NoteResponse,
    ReferralStatsResponse,
    RewardRedeemRequest,
    RewardRedemptionResponse,
    RewardResponse,
    TimelineEntryResponse,
)

__all__ = [
    "BranchSummaryResponse",
    "BranchTrendsResponse",
    "TrendPoint",
    "Token",
    "UserResponse",
    "AvailabilityResponse",
    "BookingCancel",
    "BookingCreate",
    "BookingCreateResponse",
    "BookingListResponse",
    "BookingResponse",
    "BookingUpdate",
    "CustomerDetailsIn",
    "WaitlistEntryResponse",
    "BlockedSlotCreate",
    "BlockedSlotResponse",
    "BranchResponse",
    "CombineRequest",
    "CombineResponse",
    "OperatingHourIn",
    "OperatingHourResponse",
    "TableCreate",
    "TableResponse",
    "BlacklistRequest",
    "CustomerCreate",
    "CustomerExportResponse",
    "CustomerListResponse",
    "CustomerResponse",
    "CustomerUpdate",
    "LoyaltyAdjustRequest",
    "LoyaltyRedeemRequest",
    "LoyaltyStatusResponse",
    "LoyaltyTransactionResponse",
    "MergeRequest",
    "NoteCreate",
    "NoteResponse",
    "ReferralStatsResponse",
    "RewardRedeemRequest",
    "RewardRedemptionResponse",
    "RewardResponse",
    "TimelineEntryResponse",
]
