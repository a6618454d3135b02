"""
Booking lifecycle orchestration.

    PENDING -> CONFIRMED -> CHECKED_IN -> COMPLETED
    PENDING / CONFIRMED / CHECKED_IN -> CANCELLED
    PENDING / CONFIRMED -> NO_SHOW

COMPLETED, CANCELLED and NO_SHOW are terminal. Every transition writes a
``BookingHistory`` row and, for bookings with a customer, a timeline event;
customer stats are refreshed after every status change that affects them.

Creation and rescheduling hold the slot guard for the booking's branch/date
from the availability check until commit. Notifications are sent and
scheduled only after the commit succeeds and never fail the operation.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingHistory,
    BookingSource,
    BookingStatus,
    WaitlistEntry,
)
from app.models.branch import Branch, Table
from app.models.customer import Customer, TimelineEventType
from app.models.notification import NotificationChannel
from app.models.user import User
from app.services.automation import BookingAutomation
from app.services.availability import AvailabilityChecker
from app.services.booking_codes import BookingCodeGenerator
from app.services.calendar import BranchCalendar
from app.services.customers import CustomerService, CustomerStatsService
from app.services.loyalty import LoyaltyService
from app.services.notifications import NotificationDispatcher
from app.services.permissions import PermissionService
from app.services.scheduler import NotificationScheduler
from app.services.slot_guard import SlotGuard
from app.services.timeline import TimelineRecorder

logger = structlog.get_logger()

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
    BookingStatus.CHECKED_IN: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
}

RESCHEDULE_FIELDS = ("booking_date", "time_slot", "party_size", "duration_minutes", "table_id")
NOTE_FIELDS = ("special_requests", "internal_notes")

COMPLETION_POINTS = 1


@dataclass
class CustomerDetails:
    """Guest contact details used to find or create a profile"""
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class BookingResult:
    """Outcome of a create request: a booking, or a waitlisted request"""
    status: str
    booking: Optional[Booking] = None
    suggestions: List[time] = field(default_factory=list)
    waitlist_entry: Optional[WaitlistEntry] = None

    @property
    def is_booked(self) -> bool:
        return self.status == "booked"


def _is_booking_code_collision(error: IntegrityError) -> bool:
    return "booking_code" in str(error.orig)


class BookingService:
    """Entry point for every booking operation"""

    def __init__(
        self,
        db: AsyncSession,
        scheduler: NotificationScheduler,
        slot_guard: SlotGuard,
        notifier: NotificationDispatcher,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.slot_guard = slot_guard
        self.notifier = notifier
        self.clock = clock

        self.timeline = TimelineRecorder(db)
        self.availability = AvailabilityChecker(db)
        self.calendar = BranchCalendar(db, self.availability)
        self.codes = BookingCodeGenerator.for_session(db)
        self.stats = CustomerStatsService(db, self.timeline)
        self.loyalty = LoyaltyService(db, self.timeline)
        self.customers = CustomerService(db)
        self.automation = BookingAutomation(
            db,
            scheduler,
            calendar=self.calendar,
            availability=self.availability,
            timeline=self.timeline,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def _get_branch(self, branch_id: UUID) -> Branch:
        branch = await self.db.get(Branch, branch_id)
        if branch is None or not branch.is_active:
            raise NotFoundError("Branch not found")
        return branch

    async def _get_customer(self, customer_id: Optional[UUID]) -> Optional[Customer]:
        if customer_id is None:
            return None
        return await self.db.get(Customer, customer_id)

    async def get(self, user: User, booking_id: UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "read", booking.branch_id)
        return booking

    async def get_booking_by_code(self, code: str) -> Booking:
        result = await self.db.execute(
            select(Booking).where(Booking.booking_code == code.strip().upper())
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def list_bookings(
        self,
        user: User,
        branch_id: Optional[UUID] = None,
        status: Optional[BookingStatus] = None,
        customer_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Booking], int]:
        """Filtered, paginated bookings visible to ``user``, newest date first"""
        PermissionService.assert_allowed(user, "bookings", "read", branch_id)

        conditions = []
        accessible = PermissionService.accessible_branches(user)
        if branch_id is not None:
            if accessible is not None and branch_id not in accessible:
                raise ForbiddenError()
            conditions.append(Booking.branch_id == branch_id)
        elif accessible is not None:
            conditions.append(Booking.branch_id.in_(accessible))

        if status is not None:
            conditions.append(Booking.status == status)
        if customer_id is not None:
            conditions.append(Booking.customer_id == customer_id)
        if date_from is not None:
            conditions.append(Booking.booking_date >= date_from)
        if date_to is not None:
            conditions.append(Booking.booking_date <= date_to)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(Booking.booking_code.ilike(pattern), Customer.full_name.ilike(pattern))
            )

        base = select(Booking).outerjoin(Customer, Booking.customer_id == Customer.id).where(*conditions)

        count_result = await self.db.execute(
            select(func.count()).select_from(base.subquery())
        )
        total = count_result.scalar() or 0

        page = max(page, 1)
        result = await self.db.execute(
            base.order_by(Booking.booking_date.desc(), Booking.time_slot.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_upcoming(self, user: User, branch_id: UUID, limit: int = 50) -> List[Booking]:
        PermissionService.assert_allowed(user, "bookings", "read", branch_id)
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.branch_id == branch_id,
                Booking.booking_date >= self.clock().date(),
                Booking.status.in_((BookingStatus.PENDING, BookingStatus.CONFIRMED)),
            )
            .order_by(Booking.booking_date.asc(), Booking.time_slot.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def check_availability(
        self,
        user: User,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        table_id: Optional[UUID] = None,
        duration_minutes: Optional[int] = None,
    ) -> bool:
        PermissionService.assert_allowed(user, "bookings", "read", branch_id)
        return await self.availability.check_availability(
            branch_id, table_id, booking_date, time_slot, duration_minutes
        )

    async def check_availability_public(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
    ) -> Dict[str, Any]:
        """Unauthenticated slot query: free table count plus alternatives when full"""
        await self._get_branch(branch_id)
        is_open = await self.calendar.is_open(branch_id, booking_date, time_slot)
        tables: List[Table] = []
        if is_open:
            tables = await self.calendar.get_available_tables(
                branch_id, booking_date, time_slot, party_size
            )
        suggestions: List[time] = []
        if not tables:
            suggestions = await self.automation.suggest_alternative_slots(
                branch_id, booking_date, time_slot
            )
        return {
            "available": bool(tables),
            "is_open": is_open,
            "available_tables": len(tables),
            "suggestions": suggestions,
        }

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _validate_party_and_duration(self, party_size: int, duration_minutes: int) -> None:
        if party_size is None or party_size < 1:
            raise ValidationError("Party size must be at least 1")
        if duration_minutes is None or duration_minutes < 1:
            raise ValidationError("Duration must be positive")

    def _validate_advance_limit(self, booking_date: date) -> None:
        limit = self.clock().date() + timedelta(days=settings.booking_max_days_ahead)
        if booking_date > limit:
            raise ValidationError(
                f"Bookings can be made at most {settings.booking_max_days_ahead} days in advance",
                details={"latest_date": limit.isoformat()},
            )

    async def _validate_open(self, branch_id: UUID, booking_date: date, time_slot: time) -> None:
        if not await self.calendar.is_open(branch_id, booking_date, time_slot):
            raise ValidationError(
                "Branch is closed at the requested time",
                details={"date": booking_date.isoformat(), "time": time_slot.isoformat()},
            )

    async def _validate_table(self, branch_id: UUID, table_id: UUID, party_size: int) -> Table:
        table = await self.db.get(Table, table_id)
        if table is None or table.branch_id != branch_id:
            raise NotFoundError("Table not found in this branch")
        if not table.is_active:
            raise ValidationError("Table is not active")
        if table.capacity < party_size:
            raise ValidationError(
                "Party size exceeds table capacity",
                details={"capacity": table.capacity, "party_size": party_size},
            )
        return table

    async def _resolve_customer(
        self,
        customer_id: Optional[UUID],
        details: Optional[CustomerDetails],
        actor_id: Optional[UUID],
    ) -> Optional[Customer]:
        """Existing profile by id, else by email/phone, else a new profile"""
        customer = None
        if customer_id is not None:
            customer = await self.db.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("Customer not found")
            if not customer.is_active:
                raise ValidationError(
                    "Customer profile has been merged",
                    details={"merged_into_id": str(customer.merged_into_id)},
                )
        elif details is not None:
            lookups = []
            if details.email:
                lookups.append(Customer.email == details.email)
            if details.phone:
                lookups.append(Customer.phone == details.phone)
            if lookups:
                result = await self.db.execute(
                    select(Customer)
                    .where(or_(*lookups), Customer.is_active == True)
                    .order_by(Customer.created_at.asc())
                    .limit(1)
                )
                customer = result.scalar_one_or_none()
            if customer is None:
                customer = await self.customers.create_profile(
                    full_name=details.full_name,
                    email=details.email,
                    phone=details.phone,
                    actor_id=actor_id,
                )

        if customer is not None and customer.is_blacklisted:
            raise ConflictError(
                "Customer is blacklisted",
                details={"reason": customer.blacklist_reason},
            )
        return customer

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _record_history(
        self,
        booking: Booking,
        action: str,
        old_status: Optional[BookingStatus],
        new_status: Optional[BookingStatus],
        actor_id: Optional[UUID],
        notes: Optional[str] = None,
    ) -> None:
        self.db.add(
            BookingHistory(
                booking_id=booking.id,
                action=action,
                old_status=old_status,
                new_status=new_status,
                changed_by_id=actor_id,
                notes=notes,
                created_at=datetime.utcnow(),
            )
        )

    def _transition(
        self,
        booking: Booking,
        new_status: BookingStatus,
        action: str,
        actor_id: Optional[UUID],
        notes: Optional[str] = None,
    ) -> BookingStatus:
        old_status = booking.status
        if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
            raise ConflictError(
                f"Cannot change booking from {old_status.value} to {new_status.value}",
                details={"status": old_status.value},
            )
        booking.status = new_status
        self._record_history(booking, action, old_status, new_status, actor_id, notes)
        logger.info(
            "Booking status changed",
            booking_id=str(booking.id),
            old_status=old_status.value,
            new_status=new_status.value,
        )
        return old_status

    async def _after_confirm(self, booking: Booking) -> None:
        """Post-commit side effects of a confirmation"""
        customer = await self._get_customer(booking.customer_id)
        sms_enabled = self.notifier.supports(NotificationChannel.SMS)
        await self.automation.schedule_notifications(booking, customer, sms_enabled)
        if customer is None:
            return
        when = f"{booking.booking_date.isoformat()} at {booking.time_slot.strftime('%H:%M')}"
        if customer.email:
            await self.notifier.send(
                customer.email,
                "Your booking is confirmed",
                f"Hi {customer.full_name}, your table for {booking.party_size} on {when} "
                f"is confirmed. Booking code {booking.booking_code}.",
            )
        if customer.phone and sms_enabled:
            await self.notifier.send(
                customer.phone,
                "Booking confirmed",
                f"Table for {booking.party_size} on {when} confirmed. Code {booking.booking_code}.",
                NotificationChannel.SMS,
            )

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create(
        self,
        user: User,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
        table_id: Optional[UUID] = None,
        customer_id: Optional[UUID] = None,
        customer: Optional[CustomerDetails] = None,
        duration_minutes: Optional[int] = None,
        special_requests: Optional[str] = None,
        internal_notes: Optional[str] = None,
        source: BookingSource = BookingSource.ADMIN,
        join_waitlist: bool = False,
    ) -> BookingResult:
        PermissionService.assert_allowed(user, "bookings", "create", branch_id)
        actor_id = user.id
        duration = duration_minutes or settings.booking_default_duration_minutes

        self._validate_party_and_duration(party_size, duration)
        self._validate_advance_limit(booking_date)
        await self._get_branch(branch_id)
        await self._validate_open(branch_id, booking_date, time_slot)

        # A rollback releases a transaction-scoped guard, so each attempt
        # takes the guard again before it checks availability
        for attempt in range(1, settings.booking_code_max_attempts + 1):
            try:
                async with self.slot_guard.hold(self.db, branch_id, booking_date):
                    try:
                        result = await self._create_locked(
                            actor_id,
                            branch_id,
                            booking_date,
                            time_slot,
                            party_size,
                            table_id,
                            customer_id,
                            customer,
                            duration,
                            special_requests,
                            internal_notes,
                            source,
                            join_waitlist,
                        )
                        await self.db.commit()
                    except Exception:
                        await self.db.rollback()
                        raise
                break
            except IntegrityError as e:
                if _is_booking_code_collision(e) and attempt < settings.booking_code_max_attempts:
                    logger.warning("Booking code taken at insert, retrying", attempt=attempt)
                    continue
                raise ConflictError("Booking could not be saved") from e

        if result.is_booked and result.booking.status == BookingStatus.CONFIRMED:
            await self._after_confirm(result.booking)
        return result

    async def _create_locked(
        self,
        actor_id: UUID,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
        table_id: Optional[UUID],
        customer_id: Optional[UUID],
        details: Optional[CustomerDetails],
        duration: int,
        special_requests: Optional[str],
        internal_notes: Optional[str],
        source: BookingSource,
        join_waitlist: bool,
    ) -> BookingResult:
        customer = await self._resolve_customer(customer_id, details, actor_id)
        if table_id is not None:
            await self._validate_table(branch_id, table_id, party_size)

        available = await self.availability.check_availability(
            branch_id, table_id, booking_date, time_slot, duration
        )
        if not available:
            suggestions = await self.automation.suggest_alternative_slots(
                branch_id, booking_date, time_slot, duration
            )
            entry = None
            if join_waitlist:
                entry = await self.automation.add_to_waitlist(
                    branch_id,
                    booking_date,
                    time_slot,
                    party_size,
                    customer.id if customer else None,
                    special_requests,
                )
            logger.info(
                "Requested slot unavailable",
                branch_id=str(branch_id),
                date=booking_date.isoformat(),
                time=time_slot.isoformat(),
                suggestions=len(suggestions),
                waitlisted=entry is not None,
            )
            return BookingResult(status="waitlisted", suggestions=suggestions, waitlist_entry=entry)

        booking = Booking(
            booking_code=await self.codes.generate(),
            branch_id=branch_id,
            table_id=table_id,
            customer_id=customer.id if customer else None,
            booking_date=booking_date,
            time_slot=time_slot,
            duration_minutes=duration,
            party_size=party_size,
            status=BookingStatus.PENDING,
            source=source,
            special_requests=special_requests,
            internal_notes=internal_notes,
            created_by_id=actor_id,
        )
        self.db.add(booking)
        await self.db.flush()
        self._record_history(booking, "BOOKING_CREATED", None, BookingStatus.PENDING, actor_id)
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.BOOKING_CREATED,
            booking,
            f"Booking {booking.booking_code} created",
            actor_id,
        )

        tier = await self.stats.calculate_tier(customer.id) if customer else None
        auto_confirm = await self.automation.should_auto_confirm(
            branch_id,
            booking_date,
            time_slot,
            party_size,
            tier,
            bool(special_requests and special_requests.strip()),
        )
        if auto_confirm:
            self._transition(booking, BookingStatus.CONFIRMED, "AUTO_CONFIRMED", None)
            booking.confirmed_at = datetime.utcnow()
            await self.automation.track_customer_activity(
                booking.customer_id,
                TimelineEventType.BOOKING_CONFIRMED,
                booking,
                f"Booking {booking.booking_code} confirmed automatically",
            )
        if customer is not None:
            await self.stats.update_stats(customer.id)
        await self.db.flush()

        logger.info(
            "Booking created",
            booking_id=str(booking.id),
            booking_code=booking.booking_code,
            branch_id=str(branch_id),
            status=booking.status.value,
            auto_confirmed=auto_confirm,
        )
        return BookingResult(status="booked", booking=booking)

    async def update(self, user: User, booking_id: UUID, changes: Dict[str, Any]) -> Booking:
        """Partial reschedule; availability is checked without the booking's own occupancy"""
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "update", booking.branch_id)
        actor_id = user.id
        if booking.status not in ACTIVE_STATUSES:
            raise ConflictError(f"Cannot update a {booking.status.value} booking")

        changes = {key: value for key, value in changes.items() if key in RESCHEDULE_FIELDS + NOTE_FIELDS}
        if not changes:
            return booking

        booking_date = changes.get("booking_date", booking.booking_date)
        time_slot = changes.get("time_slot", booking.time_slot)
        party_size = changes.get("party_size", booking.party_size)
        duration = changes.get("duration_minutes", booking.duration_minutes) or settings.booking_default_duration_minutes
        table_id = changes["table_id"] if "table_id" in changes else booking.table_id

        self._validate_party_and_duration(party_size, duration)
        moved = booking_date != booking.booking_date or time_slot != booking.time_slot
        if moved:
            self._validate_advance_limit(booking_date)
            await self._validate_open(booking.branch_id, booking_date, time_slot)

        async with self.slot_guard.hold(self.db, booking.branch_id, booking_date):
            try:
                if table_id is not None:
                    await self._validate_table(booking.branch_id, table_id, party_size)
                if any(key in changes for key in RESCHEDULE_FIELDS):
                    available = await self.availability.check_availability(
                        booking.branch_id,
                        table_id,
                        booking_date,
                        time_slot,
                        duration,
                        exclude_booking_id=booking.id,
                    )
                    if not available:
                        raise ConflictError(
                            "Requested slot is not available",
                            details={"date": booking_date.isoformat(), "time": time_slot.isoformat()},
                        )

                booking.booking_date = booking_date
                booking.time_slot = time_slot
                booking.party_size = party_size
                booking.duration_minutes = duration
                booking.table_id = table_id
                for key in NOTE_FIELDS:
                    if key in changes:
                        setattr(booking, key, changes[key])

                self._record_history(
                    booking,
                    "BOOKING_UPDATED",
                    booking.status,
                    booking.status,
                    actor_id,
                    ", ".join(sorted(changes)),
                )
                await self.automation.track_customer_activity(
                    booking.customer_id,
                    TimelineEventType.BOOKING_UPDATED,
                    booking,
                    f"Booking {booking.booking_code} updated",
                    actor_id,
                )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info("Booking updated", booking_id=str(booking.id), fields=sorted(changes))
        if moved and booking.status == BookingStatus.CONFIRMED:
            await self.automation.cancel_notifications(booking.id)
            customer = await self._get_customer(booking.customer_id)
            await self.automation.schedule_notifications(
                booking, customer, self.notifier.supports(NotificationChannel.SMS)
            )
        return booking

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def confirm(self, user: User, booking_id: UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "update", booking.branch_id)
        if booking.status == BookingStatus.CONFIRMED:
            return booking

        self._transition(booking, BookingStatus.CONFIRMED, "CONFIRMED", user.id)
        booking.confirmed_at = datetime.utcnow()
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.BOOKING_CONFIRMED,
            booking,
            f"Booking {booking.booking_code} confirmed",
            user.id,
        )
        if booking.customer_id is not None:
            await self.stats.update_stats(booking.customer_id)
        await self.db.commit()

        await self._after_confirm(booking)
        return booking

    async def cancel(self, user: User, booking_id: UUID, reason: Optional[str] = None) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "update", booking.branch_id)

        self._transition(booking, BookingStatus.CANCELLED, "CANCELLED", user.id, reason)
        booking.cancelled_at = datetime.utcnow()
        booking.cancelled_by_id = user.id
        booking.cancellation_reason = reason
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.BOOKING_CANCELLED,
            booking,
            f"Booking {booking.booking_code} cancelled",
            user.id,
        )
        if booking.customer_id is not None:
            await self.stats.update_stats(booking.customer_id)
        await self.automation.promote_waitlist(booking.branch_id, booking.booking_date, booking.time_slot)
        await self.db.commit()

        await self.automation.cancel_notifications(booking.id)
        return booking

    async def mark_no_show(self, user: User, booking_id: UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "update", booking.branch_id)

        self._transition(booking, BookingStatus.NO_SHOW, "NO_SHOW", user.id)
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.NO_SHOW,
            booking,
            f"Did not arrive for booking {booking.booking_code}",
            user.id,
        )
        if booking.customer_id is not None:
            await self.stats.update_stats(booking.customer_id)
        await self.db.commit()

        await self.automation.cancel_notifications(booking.id)
        return booking

    async def check_in(self, user: User, booking_id: UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "update", booking.branch_id)

        self._transition(booking, BookingStatus.CHECKED_IN, "CHECKED_IN", user.id)
        booking.checked_in_at = datetime.utcnow()
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.CHECKED_IN,
            booking,
            f"Checked in for booking {booking.booking_code}",
            user.id,
        )
        await self.db.commit()
        return booking

    async def complete(self, user: User, booking_id: UUID) -> Booking:
        booking = await self._get_booking(booking_id)
        PermissionService.assert_allowed(user, "bookings", "complete", booking.branch_id)

        self._transition(booking, BookingStatus.COMPLETED, "COMPLETED", user.id)
        await self.automation.track_customer_activity(
            booking.customer_id,
            TimelineEventType.COMPLETED,
            booking,
            f"Booking {booking.booking_code} completed",
            user.id,
        )
        if booking.customer_id is not None:
            await self.stats.update_stats(booking.customer_id)
            await self.loyalty.award_points(
                booking.customer_id,
                COMPLETION_POINTS,
                "Completed booking",
                {"booking_id": str(booking.id)},
            )
            await self.loyalty.adjust_tier(booking.customer_id)
        await self.db.commit()
        return booking

    async def auto_cancel_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Move CONFIRMED bookings more than the grace period past their start to
        NO_SHOW. Returns the number of bookings moved.

        The status change is a conditional update on CONFIRMED, so concurrent
        or repeated sweeps never move a booking twice.
        """
        now = now or self.clock()
        cutoff = now - timedelta(minutes=settings.auto_cancel_grace_minutes)

        result = await self.db.execute(
            select(Booking.id, Booking.booking_date, Booking.time_slot).where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.booking_date <= cutoff.date(),
            )
        )
        overdue_ids = [
            booking_id
            for booking_id, booking_date, time_slot in result.all()
            if datetime.combine(booking_date, time_slot) < cutoff
        ]
        if not overdue_ids:
            return 0

        try:
            result = await self.db.execute(
                update(Booking)
                .where(Booking.id.in_(overdue_ids), Booking.status == BookingStatus.CONFIRMED)
                .values(status=BookingStatus.NO_SHOW, updated_at=datetime.utcnow())
                .returning(Booking.id, Booking.customer_id)
            )
            moved = result.all()

            customer_ids = set()
            for booking_id, customer_id in moved:
                try:
                    self.db.add(
                        BookingHistory(
                            booking_id=booking_id,
                            action="AUTO_NO_SHOW",
                            old_status=BookingStatus.CONFIRMED,
                            new_status=BookingStatus.NO_SHOW,
                            notes="Not checked in within the grace period",
                            created_at=datetime.utcnow(),
                        )
                    )
                    if customer_id is not None:
                        await self.timeline.record(
                            customer_id,
                            TimelineEventType.NO_SHOW,
                            "Booking marked as no-show automatically",
                            {"booking_id": booking_id},
                        )
                        customer_ids.add(customer_id)
                except Exception as e:
                    logger.error("Auto no-show failed for booking", booking_id=str(booking_id), error=str(e))

            for customer_id in customer_ids:
                await self.stats.update_stats(customer_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        for booking_id, _ in moved:
            try:
                await self.automation.cancel_notifications(booking_id)
            except Exception as e:
                logger.error("Failed to cancel notifications", booking_id=str(booking_id), error=str(e))

        logger.info("Overdue bookings swept", moved=len(moved), customers=len(customer_ids))
        return len(moved)
