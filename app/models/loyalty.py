"""Loyalty account, ledger and reward models"""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class LoyaltyTier(str, enum.Enum):
    """Loyalty-level tier, derived from total bookings.

    Independent of ``CustomerTier``; only drives the point multiplier.
    """
    REGULAR = "REGULAR"
    GOLD = "GOLD"
    VIP = "VIP"


class LoyaltyTransactionType(str, enum.Enum):
    EARN = "EARN"
    ADJUST = "ADJUST"
    REDEEM = "REDEEM"
    BONUS = "BONUS"


class RedemptionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LoyaltyAccount(Base):
    """One loyalty account per customer"""
    __tablename__ = "loyalty_accounts"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_loyalty_points_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), unique=True, nullable=False)
    points = Column(Integer, default=0, nullable=False)
    tier = Column(Enum(LoyaltyTier), default=LoyaltyTier.REGULAR, nullable=False)
    total_referrals = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="loyalty_account")
    transactions = relationship("LoyaltyTransaction", back_populates="account")


class LoyaltyTransaction(Base):
    """Immutable ledger entry paired with every balance change"""
    __tablename__ = "loyalty_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_accounts.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    type = Column(Enum(LoyaltyTransactionType), nullable=False)
    description = Column(Text)
    metadata_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("LoyaltyAccount", back_populates="transactions")


class Reward(Base):
    """Catalog item customers can redeem points for"""
    __tablename__ = "rewards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    points_required = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    redemptions = relationship("RewardRedemption", back_populates="reward")


class RewardRedemption(Base):
    """A reward claimed by a customer"""
    __tablename__ = "reward_redemptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reward_id = Column(UUID(as_uuid=True), ForeignKey("rewards.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    account_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_accounts.id"), nullable=False)
    points_spent = Column(Integer, nullable=False)
    status = Column(Enum(RedemptionStatus), default=RedemptionStatus.APPROVED, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    reward = relationship("Reward", back_populates="redemptions")
