"""
Booking automation: auto-confirm policy, alternative slots, waitlist and
reminder jobs.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.models.booking import Booking, WaitlistEntry, WaitlistStatus
from app.models.customer import Customer, CustomerTier, TimelineEventType
from app.models.notification import NotificationChannel
from app.services.availability import AvailabilityChecker
from app.services.calendar import BranchCalendar
from app.services.scheduler import NotificationJob, NotificationScheduler
from app.services.timeline import TimelineRecorder

logger = structlog.get_logger()

# Minutes relative to the requested slot, tried in order
ALTERNATIVE_OFFSETS = (-60, -30, 30, 60, 90, 120)
MAX_SUGGESTIONS = 3

REMINDER_OFFSETS = {
    "24h": timedelta(hours=-24),
    "2h": timedelta(hours=-2),
    "thankyou": timedelta(hours=3),
}

# Reminder kinds sent by SMS when the guest has a phone and SMS is configured
SMS_KINDS = ("2h",)


class BookingAutomation:
    """Policy decisions and side effects around booking creation"""

    def __init__(
        self,
        db: AsyncSession,
        scheduler: NotificationScheduler,
        calendar: Optional[BranchCalendar] = None,
        availability: Optional[AvailabilityChecker] = None,
        timeline: Optional[TimelineRecorder] = None,
    ):
        self.db = db
        self.scheduler = scheduler
        self.availability = availability or AvailabilityChecker(db)
        self.calendar = calendar or BranchCalendar(db, self.availability)
        self.timeline = timeline or TimelineRecorder(db)

    async def should_auto_confirm(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
        tier: CustomerTier,
        has_special_requests: bool,
    ) -> bool:
        if tier == CustomerTier.VIP:
            return True
        if has_special_requests:
            return False

        total = await self.calendar.count_active_tables(branch_id)
        if total == 0:
            return False
        available = await self.calendar.get_available_tables(
            branch_id, booking_date, time_slot, party_size
        )
        return len(available) / total >= settings.auto_confirm_ratio

    async def suggest_alternative_slots(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        duration_minutes: Optional[int] = None,
    ) -> List[time]:
        """Up to three free venue-wide start times near the requested one"""
        requested = datetime.combine(booking_date, time_slot)
        suggestions: List[time] = []
        for offset in ALTERNATIVE_OFFSETS:
            candidate = requested + timedelta(minutes=offset)
            if candidate.date() != booking_date:
                continue
            if await self.availability.check_availability(
                branch_id, None, booking_date, candidate.time(), duration_minutes
            ):
                suggestions.append(candidate.time())
                if len(suggestions) >= MAX_SUGGESTIONS:
                    break
        return suggestions

    async def add_to_waitlist(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
        customer_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            branch_id=branch_id,
            customer_id=customer_id,
            booking_date=booking_date,
            time_slot=time_slot,
            party_size=party_size,
            status=WaitlistStatus.PENDING,
            notes=notes,
            created_at=datetime.utcnow(),
        )
        self.db.add(entry)
        await self.db.flush()

        if customer_id is not None:
            await self.timeline.record(
                customer_id,
                TimelineEventType.WAITLIST_JOINED,
                "Added to waitlist",
                {"date": booking_date.isoformat(), "time": time_slot.isoformat(), "party_size": party_size},
            )
        logger.info(
            "Added to waitlist",
            branch_id=str(branch_id),
            date=booking_date.isoformat(),
            time=time_slot.isoformat(),
            waitlist_id=str(entry.id),
        )
        return entry

    async def promote_waitlist(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
    ) -> Optional[WaitlistEntry]:
        """Flag the oldest pending exact-slot entry as NOTIFIED; creates no booking"""
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.branch_id == branch_id,
                WaitlistEntry.booking_date == booking_date,
                WaitlistEntry.time_slot == time_slot,
                WaitlistEntry.status == WaitlistStatus.PENDING,
            )
            .order_by(WaitlistEntry.created_at.asc())
            .limit(1)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            return None

        entry.status = WaitlistStatus.NOTIFIED
        entry.notified_at = datetime.utcnow()
        if entry.customer_id is not None:
            await self.timeline.record(
                entry.customer_id,
                TimelineEventType.WAITLIST_PROMOTED,
                "A table became available for your waitlisted slot",
                {"waitlist_id": entry.id},
            )
        await self.db.flush()
        logger.info("Promoted waitlist entry", waitlist_id=str(entry.id), branch_id=str(branch_id))
        return entry

    def build_notification_jobs(
        self,
        booking: Booking,
        customer: Customer,
        sms_enabled: bool = False,
    ) -> List[NotificationJob]:
        """Reminder and thank-you jobs; the 2h reminder goes by SMS when possible"""
        starts_at = booking.starts_at
        when = f"{booking.booking_date.isoformat()} at {booking.time_slot.strftime('%H:%M')}"
        messages = {
            "24h": (
                "Reminder: your booking is tomorrow",
                f"Hi {customer.full_name}, see you {when} for {booking.party_size}. "
                f"Booking code {booking.booking_code}.",
            ),
            "2h": (
                "Reminder: your booking is in 2 hours",
                f"Hi {customer.full_name}, your table for {booking.party_size} is booked for {when}.",
            ),
            "thankyou": (
                "Thank you for visiting",
                f"Hi {customer.full_name}, thank you for dining with us. We hope to see you again.",
            ),
        }
        jobs = []
        for kind, (subject, body) in messages.items():
            if kind in SMS_KINDS and sms_enabled and customer.phone:
                to, channel = customer.phone, NotificationChannel.SMS
            elif customer.email:
                to, channel = customer.email, NotificationChannel.EMAIL
            else:
                continue
            jobs.append(
                NotificationJob(
                    booking_id=booking.id,
                    kind=kind,
                    run_at=starts_at + REMINDER_OFFSETS[kind],
                    to=to,
                    subject=subject,
                    body=body,
                    channel=channel,
                )
            )
        return jobs

    async def schedule_notifications(
        self,
        booking: Booking,
        customer: Optional[Customer],
        sms_enabled: bool = False,
    ) -> int:
        """Register reminder and thank-you jobs for the customer's contact details"""
        if customer is None:
            return 0
        jobs = self.build_notification_jobs(booking, customer, sms_enabled)
        for job in jobs:
            await self.scheduler.schedule(job)
        return len(jobs)

    async def cancel_notifications(self, booking_id: UUID) -> int:
        return await self.scheduler.cancel_booking(booking_id)

    async def track_customer_activity(
        self,
        customer_id: Optional[UUID],
        event_type: TimelineEventType,
        booking: Booking,
        description: str,
        actor_id: Optional[UUID] = None,
    ) -> None:
        if customer_id is None:
            return
        await self.timeline.record(
            customer_id,
            event_type,
            description,
            {
                "booking_id": booking.id,
                "booking_code": booking.booking_code,
                "status": booking.status.value if booking.status else None,
            },
            actor_id,
        )
