"""Database models"""

from app.models.branch import Branch, OperatingHour, Table, BlockedSlot, TableType
from app.models.booking import (
    Booking,
    BookingHistory,
    BookingSource,
    BookingStatus,
    WaitlistEntry,
    WaitlistStatus,
)
from app.models.customer import Customer, CustomerNote, CustomerTier, CustomerTimeline, TimelineEventType
from app.models.loyalty import (
    LoyaltyAccount,
    LoyaltyTier,
    LoyaltyTransaction,
    LoyaltyTransactionType,
    RedemptionStatus,
    Reward,
    RewardRedemption,
)
from app.models.notification import Notification, NotificationChannel, NotificationStatus
from app.models.user import User, UserRole

__all__ = [
    "Branch",
    "OperatingHour",
    "Table",
    "TableType",
    "BlockedSlot",
    "Booking",
    "BookingHistory",
    "BookingSource",
    "BookingStatus",
    "WaitlistEntry",
    "WaitlistStatus",
    "Customer",
    "CustomerNote",
    "CustomerTier",
    "CustomerTimeline",
    "TimelineEventType",
    "LoyaltyAccount",
    "LoyaltyTier",
    "LoyaltyTransaction",
    "LoyaltyTransactionType",
    "RedemptionStatus",
    "Reward",
    "RewardRedemption",
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "User",
    "UserRole",
]
