"""
Customer statistics, tiering, blacklisting and profile management.

Tier and the automatic blacklist are derived from booking status counts and
refreshed by ``CustomerStatsService.update_stats`` after every status change.
"""

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.booking import Booking, BookingStatus, WaitlistEntry
from app.models.customer import Customer, CustomerNote, CustomerTier, CustomerTimeline, TimelineEventType
from app.models.loyalty import LoyaltyAccount, LoyaltyTransaction, Reward, RewardRedemption
from app.models.user import User
from app.services.loyalty import LoyaltyService
from app.services.permissions import PermissionService
from app.services.timeline import TimelineRecorder

logger = structlog.get_logger()

AUTO_BLACKLIST_REASON = "Automatically blacklisted after repeated cancellations or no-shows"

# Pseudo-tier accepted by the customer list filter
BLACKLISTED_FILTER = "BLACKLISTED"
SEARCH_LIMIT = 10
PROFILE_FIELDS = ("full_name", "email", "phone", "notes", "preferences")


def tier_for(successful_bookings: int) -> CustomerTier:
    if successful_bookings >= settings.customer_vip_threshold:
        return CustomerTier.VIP
    return CustomerTier.REGULAR


class CustomerStatsService:
    """Derived customer attributes"""

    def __init__(self, db: AsyncSession, timeline: Optional[TimelineRecorder] = None):
        self.db = db
        self.timeline = timeline or TimelineRecorder(db)

    async def get_booking_stats(self, customer_id: UUID) -> Dict[BookingStatus, int]:
        result = await self.db.execute(
            select(Booking.status, func.count(Booking.id))
            .where(Booking.customer_id == customer_id)
            .group_by(Booking.status)
        )
        return {status: count for status, count in result.all()}

    async def update_stats(self, customer_id: UUID) -> Customer:
        """Recompute counters, tier and the automatic blacklist flag"""
        customer = await self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")

        await self.db.flush()
        stats = await self.get_booking_stats(customer_id)
        successful = stats.get(BookingStatus.COMPLETED, 0)
        cancelled = stats.get(BookingStatus.CANCELLED, 0)
        no_show = stats.get(BookingStatus.NO_SHOW, 0)

        customer.successful_bookings = successful
        customer.cancellations = cancelled
        customer.no_shows = no_show
        customer.total_bookings = sum(stats.values())
        customer.tier = tier_for(successful)

        exceeded = (
            no_show >= settings.blacklist_no_show_limit
            or cancelled >= settings.blacklist_cancellation_limit
        )
        if exceeded and not (customer.is_blacklisted and customer.blacklist_reason):
            newly_blacklisted = not customer.is_blacklisted
            customer.is_blacklisted = True
            customer.blacklist_reason = AUTO_BLACKLIST_REASON
            if newly_blacklisted:
                await self.timeline.record(
                    customer_id,
                    TimelineEventType.BLACKLISTED,
                    "Customer automatically blacklisted",
                    {"no_shows": no_show, "cancellations": cancelled},
                )
                logger.warning(
                    "Customer auto-blacklisted",
                    customer_id=str(customer_id),
                    no_shows=no_show,
                    cancellations=cancelled,
                )

        await self.db.flush()
        return customer

    async def calculate_tier(self, customer_id: UUID) -> CustomerTier:
        """Tier from the stored counter, without recomputing stats"""
        result = await self.db.execute(
            select(Customer.successful_bookings).where(Customer.id == customer_id)
        )
        successful = result.scalar_one_or_none()
        if successful is None:
            return CustomerTier.REGULAR
        return tier_for(successful)

    async def check_blacklist(self, customer_id: UUID) -> bool:
        result = await self.db.execute(
            select(Customer.is_blacklisted).where(Customer.id == customer_id)
        )
        return bool(result.scalar_one_or_none())


class CustomerService:
    """Staff-facing customer operations"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.timeline = TimelineRecorder(db)
        self.stats = CustomerStatsService(db, self.timeline)
        self.loyalty = LoyaltyService(db, self.timeline)

    async def _get(self, customer_id: UUID) -> Customer:
        customer = await self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    async def get(self, user: User, customer_id: UUID) -> Customer:
        PermissionService.assert_allowed(user, "customers", "read")
        return await self._get(customer_id)

    async def create_profile(
        self,
        full_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None,
        referred_by_id: Optional[UUID] = None,
        actor_id: Optional[UUID] = None,
    ) -> Customer:
        """Create a profile and its loyalty account, without committing"""
        if referred_by_id is not None:
            await self._get(referred_by_id)

        customer = Customer(
            full_name=full_name,
            email=email,
            phone=phone,
            notes=notes,
            preferences=preferences or {},
            referred_by_id=referred_by_id,
            tier=CustomerTier.REGULAR,
            is_blacklisted=False,
            total_bookings=0,
            successful_bookings=0,
            cancellations=0,
            no_shows=0,
            is_active=True,
        )
        self.db.add(customer)
        await self.db.flush()

        await self.loyalty.ensure_account(customer.id)
        if referred_by_id is not None:
            await self.loyalty.record_referral(referred_by_id)
        await self.timeline.record(
            customer.id,
            TimelineEventType.PROFILE_CREATED,
            "Customer profile created",
            {},
            actor_id,
        )
        return customer

    async def create(self, user: User, **fields) -> Customer:
        PermissionService.assert_allowed(user, "customers", "create")
        customer = await self.create_profile(actor_id=user.id, **fields)
        await self.db.commit()
        await self.db.refresh(customer)
        return customer

    async def list_customers(
        self,
        user: User,
        tier: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Customer], int]:
        """
        Active profiles ordered by name. ``tier`` is a CustomerTier value or
        ``BLACKLISTED``; ``search`` matches name, email or phone.
        """
        PermissionService.assert_allowed(user, "customers", "read")

        conditions = [Customer.is_active.is_(True)]
        if tier == BLACKLISTED_FILTER:
            conditions.append(Customer.is_blacklisted.is_(True))
        elif tier:
            try:
                conditions.append(Customer.tier == CustomerTier(tier))
            except ValueError:
                raise ValidationError(f"Unknown tier filter: {tier}")
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Customer.full_name.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.phone.like(pattern),
                )
            )

        count_result = await self.db.execute(select(func.count(Customer.id)).where(*conditions))
        total = count_result.scalar() or 0

        page = max(page, 1)
        result = await self.db.execute(
            select(Customer)
            .where(*conditions)
            .order_by(Customer.full_name, Customer.created_at)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def search(self, user: User, query: str, limit: int = SEARCH_LIMIT) -> List[Customer]:
        """Quick lookup for the booking form"""
        if not query or not query.strip():
            return []
        customers, _ = await self.list_customers(user, search=query, page_size=limit)
        return customers

    async def update(self, user: User, customer_id: UUID, changes: Dict[str, Any]) -> Customer:
        """Partial profile update; derived fields cannot be set here"""
        PermissionService.assert_allowed(user, "customers", "update")
        customer = await self._get(customer_id)
        if not customer.is_active:
            raise ConflictError("Cannot update a profile that has been merged")

        changed = []
        for key, value in changes.items():
            if key not in PROFILE_FIELDS or value is None:
                continue
            if key == "full_name" and not str(value).strip():
                raise ValidationError("Full name cannot be empty")
            if getattr(customer, key) != value:
                setattr(customer, key, value)
                changed.append(key)

        if changed:
            await self.timeline.record(
                customer_id,
                TimelineEventType.PROFILE_UPDATED,
                "Customer profile updated",
                {"fields": ",".join(changed)},
                user.id,
            )
            await self.db.commit()
            await self.db.refresh(customer)
            logger.info("Customer updated", customer_id=str(customer_id), fields=changed)
        return customer

    async def get_bookings(self, user: User, customer_id: UUID) -> List[Booking]:
        """All of the customer's bookings, latest first"""
        PermissionService.assert_allowed(user, "customers", "read")
        await self._get(customer_id)
        result = await self.db.execute(
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .order_by(Booking.booking_date.desc(), Booking.time_slot.desc())
        )
        return list(result.scalars().all())

    async def add_note(self, user: User, customer_id: UUID, content: str) -> CustomerNote:
        PermissionService.assert_allowed(user, "customers", "update")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note cannot be empty")
        await self._get(customer_id)

        note = CustomerNote(customer_id=customer_id, content=content, created_by_id=user.id)
        self.db.add(note)
        await self.db.flush()
        await self.timeline.record(
            customer_id,
            TimelineEventType.NOTE_ADDED,
            "Internal note added",
            {"note_id": note.id},
            user.id,
        )
        await self.db.commit()
        return note

    async def list_notes(self, user: User, customer_id: UUID) -> List[CustomerNote]:
        PermissionService.assert_allowed(user, "customers", "read")
        await self._get(customer_id)
        return await self._notes(customer_id)

    async def _notes(self, customer_id: UUID) -> List[CustomerNote]:
        result = await self.db.execute(
            select(CustomerNote)
            .where(CustomerNote.customer_id == customer_id)
            .order_by(CustomerNote.created_at.desc())
        )
        return list(result.scalars().all())

    async def referral_stats(self, user: User, customer_id: UUID) -> Dict[str, Any]:
        """Profiles referred by this customer and the loyalty referral count"""
        PermissionService.assert_allowed(user, "customers", "read")
        await self._get(customer_id)
        result = await self.db.execute(
            select(Customer.id, Customer.full_name, Customer.created_at)
            .where(Customer.referred_by_id == customer_id)
            .order_by(Customer.created_at)
        )
        referrals = [
            {"id": referral_id, "full_name": full_name, "created_at": created_at}
            for referral_id, full_name, created_at in result.all()
        ]
        account = await self.loyalty.ensure_account(customer_id)
        await self.db.commit()
        return {
            "total": len(referrals),
            "loyalty_referrals": account.total_referrals,
            "referrals": referrals,
        }

    async def export_data(self, user: User, customer_id: UUID) -> Dict[str, Any]:
        """Everything stored about a customer"""
        PermissionService.assert_allowed(user, "customers", "read")
        customer = await self._get(customer_id)
        bookings = await self.db.execute(
            select(Booking).where(Booking.customer_id == customer_id).order_by(Booking.booking_date)
        )
        timeline = await self.db.execute(
            select(CustomerTimeline)
            .where(CustomerTimeline.customer_id == customer_id)
            .order_by(CustomerTimeline.created_at)
        )
        logger.info("Customer data exported", customer_id=str(customer_id), user_id=str(user.id))
        return {
            "customer": customer,
            "bookings": list(bookings.scalars().all()),
            "notes": await self._notes(customer_id),
            "timeline": list(timeline.scalars().all()),
        }

    async def blacklist(self, user: User, customer_id: UUID, reason: str) -> Customer:
        """Manual blacklist; the reason is kept by later automatic checks"""
        PermissionService.assert_allowed(user, "customers", "blacklist")
        reason = (reason or "").strip()
        if len(reason) < settings.blacklist_reason_min_length:
            raise ValidationError(
                f"Blacklist reason must be at least {settings.blacklist_reason_min_length} characters"
            )

        customer = await self._get(customer_id)
        customer.is_blacklisted = True
        customer.blacklist_reason = reason
        await self.timeline.record(
            customer_id,
            TimelineEventType.BLACKLISTED,
            "Customer blacklisted",
            {"reason": reason},
            user.id,
        )
        await self.db.commit()
        logger.info("Customer blacklisted", customer_id=str(customer_id), user_id=str(user.id))
        return customer

    async def remove_blacklist(self, user: User, customer_id: UUID) -> Customer:
        PermissionService.assert_allowed(user, "customers", "blacklist")
        customer = await self._get(customer_id)
        customer.is_blacklisted = False
        customer.blacklist_reason = None
        await self.timeline.record(
            customer_id,
            TimelineEventType.BLACKLIST_REMOVED,
            "Customer removed from blacklist",
            {},
            user.id,
        )
        await self.db.commit()
        return customer

    async def get_timeline(self, user: User, customer_id: UUID, limit: int = 100) -> List[CustomerTimeline]:
        PermissionService.assert_allowed(user, "customers", "read")
        await self._get(customer_id)
        result = await self.db.execute(
            select(CustomerTimeline)
            .where(CustomerTimeline.customer_id == customer_id)
            .order_by(CustomerTimeline.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def merge(self, user: User, primary_id: UUID, duplicate_id: UUID) -> Customer:
        """Fold ``duplicate_id`` into ``primary_id`` in a single transaction"""
        PermissionService.assert_allowed(user, "customers", "update")
        if primary_id == duplicate_id:
            raise ValidationError("Cannot merge a customer into itself")

        primary = await self._get(primary_id)
        duplicate = await self._get(duplicate_id)
        if not duplicate.is_active:
            raise ConflictError("Customer has already been merged")
        if not primary.is_active:
            raise ConflictError(
                "Cannot merge into a profile that has been merged",
                details={"merged_into_id": str(primary.merged_into_id)},
            )

        try:
            await self.db.execute(
                update(Booking)
                .where(Booking.customer_id == duplicate_id)
                .values(customer_id=primary_id)
            )
            await self.db.execute(
                update(CustomerTimeline)
                .where(CustomerTimeline.customer_id == duplicate_id)
                .values(customer_id=primary_id)
            )
            await self.db.execute(
                update(CustomerNote)
                .where(CustomerNote.customer_id == duplicate_id)
                .values(customer_id=primary_id)
            )
            await self.db.execute(
                update(WaitlistEntry)
                .where(WaitlistEntry.customer_id == duplicate_id)
                .values(customer_id=primary_id)
            )
            duplicate.is_active = False
            duplicate.merged_into_id = primary_id
            duplicate.notes = "Merged into another profile"

            await self.stats.update_stats(primary_id)
            await self.stats.update_stats(duplicate_id)
            await self.loyalty.adjust_tier(primary_id)
            await self.timeline.record(
                primary_id,
                TimelineEventType.MERGED,
                "Customer profile merged",
                {"duplicate_id": duplicate_id},
                user.id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(primary)
        logger.info(
            "Customers merged",
            primary_id=str(primary_id),
            duplicate_id=str(duplicate_id),
        )
        return primary

    async def loyalty_status(self, user: User, customer_id: UUID) -> Tuple[LoyaltyAccount, List[LoyaltyTransaction]]:
        PermissionService.assert_allowed(user, "customers", "read")
        await self._get(customer_id)
        account = await self.loyalty.ensure_account(customer_id)
        history = await self.loyalty.history(customer_id)
        await self.db.commit()
        return account, history

    async def adjust_loyalty(self, user: User, customer_id: UUID, points: int, reason: str) -> LoyaltyAccount:
        PermissionService.assert_allowed(user, "customers", "update")
        await self._get(customer_id)
        account = await self.loyalty.adjust_points(customer_id, points, reason, user.id)
        await self.db.commit()
        return account

    async def redeem_loyalty(self, user: User, customer_id: UUID, points: int, reason: str) -> LoyaltyAccount:
        PermissionService.assert_allowed(user, "customers", "update")
        await self._get(customer_id)
        account = await self.loyalty.redeem_points(customer_id, points, reason)
        await self.db.commit()
        return account

    async def get_rewards(self, user: User) -> List[Reward]:
        PermissionService.assert_allowed(user, "customers", "read")
        return await self.loyalty.get_rewards()

    async def redeem_reward(self, user: User, customer_id: UUID, reward_id: UUID) -> RewardRedemption:
        PermissionService.assert_allowed(user, "customers", "update")
        customer = await self._get(customer_id)
        if not customer.is_active:
            raise ConflictError("Cannot redeem for a profile that has been merged")
        try:
            redemption = await self.loyalty.redeem_reward(customer_id, reward_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return redemption
