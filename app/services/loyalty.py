"""Loyalty points and loyalty-level tiers"""

import math
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.errors import NotFoundError, ValidationError
from app.models.customer import Customer, TimelineEventType
from app.models.loyalty import (
    LoyaltyAccount,
    LoyaltyTier,
    LoyaltyTransaction,
    LoyaltyTransactionType,
    RedemptionStatus,
    Reward,
    RewardRedemption,
)
from app.services.timeline import TimelineRecorder

logger = structlog.get_logger()

GOLD_THRESHOLD = 5
VIP_THRESHOLD = 20
REFERRAL_BONUS_POINTS = 5

TIER_MULTIPLIERS = {
    LoyaltyTier.REGULAR: 1.0,
    LoyaltyTier.GOLD: 1.1,
    LoyaltyTier.VIP: 1.2,
}


def determine_tier(total_bookings: int) -> LoyaltyTier:
    if total_bookings >= VIP_THRESHOLD:
        return LoyaltyTier.VIP
    if total_bookings >= GOLD_THRESHOLD:
        return LoyaltyTier.GOLD
    return LoyaltyTier.REGULAR


def apply_multiplier(points: int, tier: LoyaltyTier) -> int:
    """Scale earned points by tier, floor-rounded, never negative"""
    return max(math.floor(points * TIER_MULTIPLIERS[tier]), 0)


class LoyaltyService:
    """
    Loyalty account operations.

    Every balance change is written together with a ledger row in the
    caller's transaction; the balance can never go below zero.
    """

    def __init__(self, db: AsyncSession, timeline: Optional[TimelineRecorder] = None):
        self.db = db
        self.timeline = timeline or TimelineRecorder(db)

    async def ensure_account(self, customer_id: UUID) -> LoyaltyAccount:
        result = await self.db.execute(
            select(LoyaltyAccount).where(LoyaltyAccount.customer_id == customer_id)
        )
        account = result.scalar_one_or_none()
        if account is None:
            account = LoyaltyAccount(
                customer_id=customer_id,
                points=0,
                tier=LoyaltyTier.REGULAR,
                total_referrals=0,
            )
            self.db.add(account)
            await self.db.flush()
        return account

    async def _apply(
        self,
        account: LoyaltyAccount,
        points: int,
        kind: LoyaltyTransactionType,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LoyaltyTransaction:
        next_balance = account.points + points
        if next_balance < 0:
            raise ValidationError(
                "Insufficient loyalty points",
                details={"balance": account.points, "requested": points},
            )
        account.points = next_balance
        entry = LoyaltyTransaction(
            account_id=account.id,
            points=points,
            type=kind,
            description=description,
            metadata_json=metadata or {},
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def award_points(
        self,
        customer_id: UUID,
        points: int,
        reason: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Credit ``points`` scaled by the account's tier; returns points credited"""
        account = await self.ensure_account(customer_id)
        earned = apply_multiplier(points, account.tier)
        await self._apply(account, earned, LoyaltyTransactionType.EARN, reason, metadata)
        logger.info("Awarded loyalty points", customer_id=str(customer_id), points=earned)
        return earned

    async def adjust_points(
        self,
        customer_id: UUID,
        points: int,
        reason: str,
        actor_id: Optional[UUID] = None,
    ) -> LoyaltyAccount:
        account = await self.ensure_account(customer_id)
        await self._apply(account, points, LoyaltyTransactionType.ADJUST, reason)
        await self.timeline.record(
            customer_id,
            TimelineEventType.LOYALTY_UPDATED,
            "Loyalty points adjusted",
            {"points": points, "reason": reason},
            actor_id,
        )
        return account

    async def redeem_points(self, customer_id: UUID, points: int, reason: str) -> LoyaltyAccount:
        if points <= 0:
            raise ValidationError("Redeemed points must be positive")
        account = await self.ensure_account(customer_id)
        await self._apply(account, -points, LoyaltyTransactionType.REDEEM, reason)
        await self.timeline.record(
            customer_id,
            TimelineEventType.LOYALTY_UPDATED,
            "Loyalty points redeemed",
            {"points": points, "reason": reason},
        )
        return account

    async def get_rewards(self) -> List[Reward]:
        """Active rewards, cheapest first"""
        result = await self.db.execute(
            select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.points_required, Reward.name)
        )
        return list(result.scalars().all())

    async def redeem_reward(self, customer_id: UUID, reward_id: UUID) -> RewardRedemption:
        reward = await self.db.get(Reward, reward_id)
        if reward is None or not reward.is_active:
            raise NotFoundError("Reward not found")
        account = await self.ensure_account(customer_id)
        await self._apply(
            account,
            -reward.points_required,
            LoyaltyTransactionType.REDEEM,
            f"Redeemed reward {reward.name}",
            {"reward_id": str(reward.id)},
        )
        redemption = RewardRedemption(
            reward_id=reward.id,
            customer_id=customer_id,
            account_id=account.id,
            points_spent=reward.points_required,
            status=RedemptionStatus.APPROVED,
        )
        self.db.add(redemption)
        await self.db.flush()
        await self.timeline.record(
            customer_id,
            TimelineEventType.LOYALTY_UPDATED,
            "Reward redeemed",
            {"reward_id": reward.id, "reward_name": reward.name},
        )
        logger.info(
            "Reward redeemed",
            customer_id=str(customer_id),
            reward_id=str(reward.id),
            points=reward.points_required,
        )
        return redemption

    async def record_referral(self, referrer_id: UUID) -> LoyaltyAccount:
        account = await self.ensure_account(referrer_id)
        account.total_referrals += 1
        await self._apply(
            account,
            REFERRAL_BONUS_POINTS,
            LoyaltyTransactionType.BONUS,
            "Referral bonus",
        )
        return account

    async def adjust_tier(self, customer_id: UUID) -> LoyaltyTier:
        """Re-derive the loyalty tier from the customer's total bookings"""
        customer = await self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        account = await self.ensure_account(customer_id)
        tier = determine_tier(customer.total_bookings)
        if tier != account.tier:
            account.tier = tier
            await self.timeline.record(
                customer_id,
                TimelineEventType.LOYALTY_UPDATED,
                f"Loyalty tier updated to {tier.value}",
                {"tier": tier.value},
            )
            logger.info("Loyalty tier changed", customer_id=str(customer_id), tier=tier.value)
        return tier

    async def history(self, customer_id: UUID, limit: int = 50) -> List[LoyaltyTransaction]:
        account = await self.ensure_account(customer_id)
        result = await self.db.execute(
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.account_id == account.id)
            .order_by(LoyaltyTransaction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
