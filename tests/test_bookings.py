"""Tests for the booking lifecycle"""

from datetime import datetime, time, timedelta

import pytest
from sqlalchemy import func, select

from app.config import Settings
from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.booking import Booking, BookingHistory, BookingStatus, WaitlistEntry, WaitlistStatus
from app.models.customer import Customer, CustomerTimeline, TimelineEventType
from app.models.loyalty import LoyaltyAccount
from app.models.notification import NotificationChannel
from app.services.bookings import BookingService, CustomerDetails
from app.services.customers import AUTO_BLACKLIST_REASON, CustomerService
from app.services.notifications import NotificationDispatcher
from app.services.runtime import Runtime, sweep_overdue_bookings, sweep_runs_in_process
from app.services.scheduler import InMemoryScheduler

from conftest import BOOKING_DATE, NOW, ManualTimers, RecordingSender, fixed_clock


async def history_actions(db, booking_id):
    result = await db.execute(
        select(BookingHistory.action)
        .where(BookingHistory.booking_id == booking_id)
        .order_by(BookingHistory.created_at)
    )
    return [row[0] for row in result.all()]


async def set_customer(db, customer_id, **fields):
    customer = await db.get(Customer, customer_id)
    for key, value in fields.items():
        setattr(customer, key, value)
    await db.commit()


# Creation


@pytest.mark.asyncio
async def test_create_auto_confirms_when_half_the_tables_are_free(
    test_db, seed, customer, booking_service, scheduler, email_sender
):
    """Party of 4 on T2 leaves T3 and T4 free: 2 of 4 tables is enough"""
    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=4,
        table_id=seed.tables["T2"].id,
        customer_id=customer.id,
    )

    assert result.is_booked
    booking = result.booking
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.confirmed_at is not None
    assert len(booking.booking_code) == 6
    assert await history_actions(test_db, booking.id) == ["BOOKING_CREATED", "AUTO_CONFIRMED"]

    # Reminders registered and confirmation sent after commit
    assert scheduler.pending_keys() == sorted(
        f"booking:{booking.id}:{kind}" for kind in ("24h", "2h", "thankyou")
    )
    assert [m["to"] for m in email_sender.sent] == ["ada@example.com"]
    assert booking.booking_code in email_sender.sent[0]["body"]


@pytest.mark.asyncio
async def test_create_stays_pending_when_no_fitting_table_is_left(
    test_db, seed, customer, booking_service, scheduler, email_sender
):
    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=6,
        table_id=seed.tables["T4"].id,
        customer_id=customer.id,
    )

    assert result.booking.status == BookingStatus.PENDING
    assert await history_actions(test_db, result.booking.id) == ["BOOKING_CREATED"]
    assert scheduler.pending_keys() == []
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_vip_customers_are_always_confirmed(test_db, seed, customer, booking_service):
    await set_customer(test_db, customer.id, successful_bookings=10)

    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=6,
        table_id=seed.tables["T4"].id,
        customer_id=customer.id,
    )

    assert result.booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_special_requests_need_manual_confirmation(seed, customer, booking_service):
    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=2,
        customer_id=customer.id,
        special_requests="Birthday cake at dessert",
    )

    assert result.booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_create_reuses_customer_found_by_email(test_db, seed, customer, booking_service):
    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(12, 0),
        party_size=2,
        customer=CustomerDetails(full_name="A. Guest", email="ada@example.com"),
    )

    assert result.booking.customer_id == customer.id
    count = await test_db.execute(select(func.count(Customer.id)))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_create_makes_profile_for_new_guest(test_db, seed, booking_service):
    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(12, 0),
        party_size=2,
        customer=CustomerDetails(full_name="New Guest", phone="+15550002222"),
    )

    new_customer = await test_db.get(Customer, result.booking.customer_id)
    assert new_customer.full_name == "New Guest"
    assert new_customer.total_bookings == 1

    events = await test_db.execute(
        select(CustomerTimeline.event_type).where(CustomerTimeline.customer_id == new_customer.id)
    )
    assert {row[0] for row in events.all()} >= {
        TimelineEventType.PROFILE_CREATED,
        TimelineEventType.BOOKING_CREATED,
    }


@pytest.mark.asyncio
async def test_walk_in_without_customer(seed, booking_service, scheduler):
    result = await booking_service.create(
        seed.users["staff"], seed.branch.id, BOOKING_DATE, time(13, 0), party_size=2
    )

    assert result.booking.customer_id is None
    assert result.booking.status == BookingStatus.CONFIRMED
    # No email address, nothing to remind
    assert scheduler.pending_keys() == []


@pytest.mark.asyncio
async def test_guest_with_phone_gets_sms_when_configured(
    test_db, session_factory, seed, customer, slot_guard, email_sender
):
    sms_sender = RecordingSender(NotificationChannel.SMS)
    dispatcher = NotificationDispatcher(
        senders={NotificationChannel.EMAIL: email_sender, NotificationChannel.SMS: sms_sender}
    )
    timers = ManualTimers()
    scheduler = InMemoryScheduler(dispatcher, session_factory, clock=fixed_clock, sleep=timers.sleep)
    service = BookingService(test_db, scheduler, slot_guard, dispatcher, clock=fixed_clock)

    result = await service.create(
        seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2, customer_id=customer.id
    )

    assert [m["to"] for m in sms_sender.sent] == ["+15550001111"]
    assert result.booking.booking_code in sms_sender.sent[0]["body"]

    await timers.release_all()

    assert sorted(m["subject"] for m in sms_sender.sent) == [
        "Booking confirmed",
        "Reminder: your booking is in 2 hours",
    ]
    assert sorted(m["subject"] for m in email_sender.sent) == [
        "Reminder: your booking is tomorrow",
        "Thank you for visiting",
        "Your booking is confirmed",
    ]


@pytest.mark.asyncio
async def test_unavailable_slot_returns_suggestions(seed, customer, booking_service, booking_factory):
    await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), table_id=seed.tables["T1"].id)

    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=2,
        table_id=seed.tables["T1"].id,
        customer_id=customer.id,
    )

    assert not result.is_booked
    assert result.status == "waitlisted"
    assert result.booking is None
    assert result.waitlist_entry is None
    assert result.suggestions == [time(20, 0)]


@pytest.mark.asyncio
async def test_unavailable_slot_can_join_waitlist(test_db, seed, customer, booking_service, booking_factory):
    await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), table_id=seed.tables["T1"].id)

    result = await booking_service.create(
        seed.users["staff"],
        seed.branch.id,
        BOOKING_DATE,
        time(18, 0),
        party_size=2,
        table_id=seed.tables["T1"].id,
        customer_id=customer.id,
        join_waitlist=True,
    )

    entry = result.waitlist_entry
    assert entry is not None
    assert entry.status == WaitlistStatus.PENDING
    assert entry.customer_id == customer.id

    bookings = await test_db.execute(select(func.count(Booking.id)))
    assert bookings.scalar() == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("days_ahead, allowed", [(30, True), (31, False)])
async def test_advance_booking_limit(seed, booking_service, days_ahead, allowed):
    booking_date = NOW.date() + timedelta(days=days_ahead)

    if allowed:
        result = await booking_service.create(
            seed.users["staff"], seed.branch.id, booking_date, time(18, 0), party_size=2
        )
        assert result.is_booked
    else:
        with pytest.raises(ValidationError):
            await booking_service.create(
                seed.users["staff"], seed.branch.id, booking_date, time(18, 0), party_size=2
            )


@pytest.mark.asyncio
@pytest.mark.parametrize("slot", [time(8, 0), time(9, 0), time(22, 0)])
async def test_create_outside_opening_hours(seed, booking_service, slot):
    with pytest.raises(ValidationError):
        await booking_service.create(seed.users["staff"], seed.branch.id, BOOKING_DATE, slot, party_size=2)


@pytest.mark.asyncio
async def test_create_validates_table(seed, booking_service):
    staff = seed.users["staff"]

    with pytest.raises(NotFoundError):
        await booking_service.create(
            staff, seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2,
            table_id=seed.tables["H1"].id,
        )

    with pytest.raises(ValidationError):
        await booking_service.create(
            staff, seed.branch.id, BOOKING_DATE, time(18, 0), party_size=4,
            table_id=seed.tables["T1"].id,
        )


@pytest.mark.asyncio
async def test_create_rejects_invalid_party_size(seed, booking_service):
    with pytest.raises(ValidationError):
        await booking_service.create(seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=0)


@pytest.mark.asyncio
async def test_create_in_other_branch_is_forbidden(seed, booking_service):
    with pytest.raises(ForbiddenError):
        await booking_service.create(
            seed.users["other_staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2
        )


@pytest.mark.asyncio
async def test_blacklisted_customer_cannot_book(test_db, seed, customer, booking_service):
    await set_customer(test_db, customer.id, is_blacklisted=True, blacklist_reason="Abusive to staff")

    with pytest.raises(ConflictError):
        await booking_service.create(
            seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2,
            customer_id=customer.id,
        )


# Status changes


@pytest.mark.asyncio
async def test_confirm_is_idempotent(test_db, seed, customer, booking_service, booking_factory, email_sender):
    booking = await booking_factory(
        seed.branch.id, BOOKING_DATE, time(18, 0), status=BookingStatus.PENDING, customer_id=customer.id
    )
    staff = seed.users["staff"]

    confirmed = await booking_service.confirm(staff, booking.id)
    assert confirmed.status == BookingStatus.CONFIRMED
    first_confirmed_at = confirmed.confirmed_at

    again = await booking_service.confirm(staff, booking.id)
    assert again.status == BookingStatus.CONFIRMED
    assert again.confirmed_at == first_confirmed_at
    assert await history_actions(test_db, booking.id) == ["CONFIRMED"]
    assert len(email_sender.sent) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, action",
    [
        (BookingStatus.PENDING, "check_in"),
        (BookingStatus.PENDING, "complete"),
        (BookingStatus.CONFIRMED, "complete"),
        (BookingStatus.COMPLETED, "cancel"),
        (BookingStatus.CANCELLED, "confirm"),
        (BookingStatus.NO_SHOW, "check_in"),
        (BookingStatus.CHECKED_IN, "mark_no_show"),
    ],
)
async def test_illegal_transitions(seed, booking_service, booking_factory, status, action):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), status=status)

    with pytest.raises(ConflictError):
        await getattr(booking_service, action)(seed.users["master"], booking.id)


@pytest.mark.asyncio
async def test_full_lifecycle_awards_points(test_db, seed, customer, booking_service, booking_factory):
    booking = await booking_factory(
        seed.branch.id, BOOKING_DATE, time(18, 0), status=BookingStatus.PENDING, customer_id=customer.id
    )
    staff = seed.users["staff"]

    await booking_service.confirm(staff, booking.id)
    checked_in = await booking_service.check_in(staff, booking.id)
    assert checked_in.checked_in_at is not None
    completed = await booking_service.complete(staff, booking.id)
    assert completed.status == BookingStatus.COMPLETED

    assert await history_actions(test_db, booking.id) == ["CONFIRMED", "CHECKED_IN", "COMPLETED"]

    profile = await test_db.get(Customer, customer.id)
    await test_db.refresh(profile)
    assert profile.successful_bookings == 1
    assert profile.total_bookings == 1

    account = (
        await test_db.execute(select(LoyaltyAccount).where(LoyaltyAccount.customer_id == customer.id))
    ).scalar_one()
    assert account.points == 1


@pytest.mark.asyncio
async def test_cancel_records_reason_and_cancels_reminders(seed, customer, booking_service, scheduler):
    staff = seed.users["staff"]
    result = await booking_service.create(
        staff, seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2, customer_id=customer.id
    )
    assert len(scheduler.pending_keys()) == 3

    cancelled = await booking_service.cancel(staff, result.booking.id, "Change of plans")

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "Change of plans"
    assert cancelled.cancelled_by_id == staff.id
    assert cancelled.cancelled_at is not None
    assert scheduler.pending_keys() == []


@pytest.mark.asyncio
async def test_cancel_frees_the_slot(seed, booking_service, booking_factory):
    staff = seed.users["staff"]
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), table_id=seed.tables["T1"].id)

    await booking_service.cancel(staff, booking.id)

    assert await booking_service.check_availability(
        staff, seed.branch.id, BOOKING_DATE, time(18, 0), seed.tables["T1"].id
    )


@pytest.mark.asyncio
async def test_cancel_promotes_oldest_waitlist_entry(test_db, seed, booking_service, booking_factory):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0))
    entries = [
        WaitlistEntry(
            branch_id=seed.branch.id,
            booking_date=BOOKING_DATE,
            time_slot=time(18, 0),
            party_size=2,
            status=WaitlistStatus.PENDING,
            created_at=datetime(2030, 1, 1, 10, minute),
        )
        for minute in (5, 0)
    ]
    test_db.add_all(entries)
    await test_db.commit()

    await booking_service.cancel(seed.users["staff"], booking.id)

    later, earlier = entries
    await test_db.refresh(later)
    await test_db.refresh(earlier)
    assert earlier.status == WaitlistStatus.NOTIFIED
    assert earlier.notified_at is not None
    assert later.status == WaitlistStatus.PENDING


@pytest.mark.asyncio
async def test_three_cancellations_blacklist_the_customer(test_db, seed, customer, booking_service, booking_factory):
    staff = seed.users["staff"]
    for hour in (12, 15, 18):
        booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(hour, 0), customer_id=customer.id)
        await booking_service.cancel(staff, booking.id)

    profile = await test_db.get(Customer, customer.id)
    await test_db.refresh(profile)
    assert profile.cancellations == 3
    assert profile.is_blacklisted
    assert profile.blacklist_reason == AUTO_BLACKLIST_REASON

    with pytest.raises(ConflictError):
        await booking_service.create(
            staff, seed.branch.id, BOOKING_DATE, time(20, 0), party_size=2, customer_id=customer.id
        )


@pytest.mark.asyncio
async def test_no_show_updates_stats(test_db, seed, customer, booking_service, booking_factory):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), customer_id=customer.id)

    await booking_service.mark_no_show(seed.users["staff"], booking.id)

    profile = await test_db.get(Customer, customer.id)
    await test_db.refresh(profile)
    assert profile.no_shows == 1
    assert not profile.is_blacklisted


# Updates


@pytest.mark.asyncio
async def test_update_excludes_own_booking(test_db, seed, booking_service, booking_factory):
    t2 = seed.tables["T2"].id
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), table_id=t2)
    booking_id = booking.id
    await booking_factory(seed.branch.id, BOOKING_DATE, time(20, 30), table_id=t2)
    staff = seed.users["staff"]

    updated = await booking_service.update(staff, booking_id, {"time_slot": time(17, 30)})
    assert updated.time_slot == time(17, 30)
    assert await history_actions(test_db, booking_id) == ["BOOKING_UPDATED"]

    with pytest.raises(ConflictError):
        await booking_service.update(staff, booking_id, {"time_slot": time(19, 0)})

    stored = await test_db.get(Booking, booking_id)
    await test_db.refresh(stored)
    assert stored.time_slot == time(17, 30)


@pytest.mark.asyncio
async def test_update_reschedules_reminders(seed, customer, booking_service, scheduler):
    staff = seed.users["staff"]
    result = await booking_service.create(
        staff, seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2, customer_id=customer.id
    )
    old_tasks = set(scheduler.jobs.values())

    await booking_service.update(staff, result.booking.id, {"time_slot": time(19, 0)})

    assert len(scheduler.pending_keys()) == 3
    assert not old_tasks & set(scheduler.jobs.values())


@pytest.mark.asyncio
async def test_update_rejects_inactive_booking(seed, booking_service, booking_factory):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), status=BookingStatus.CANCELLED)

    with pytest.raises(ConflictError):
        await booking_service.update(seed.users["staff"], booking.id, {"party_size": 3})


@pytest.mark.asyncio
async def test_update_notes_only(seed, booking_service, booking_factory):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0))

    updated = await booking_service.update(
        seed.users["staff"], booking.id, {"internal_notes": "Window seat", "booking_code": "HACKED"}
    )

    assert updated.internal_notes == "Window seat"
    assert updated.booking_code != "HACKED"


# Overdue sweep


@pytest.mark.asyncio
async def test_sweep_marks_overdue_confirmed_bookings(test_db, seed, customer, booking_service, booking_factory):
    today = NOW.date()
    overdue = await booking_factory(seed.branch.id, today, time(11, 40), customer_id=customer.id)
    yesterday = await booking_factory(seed.branch.id, today - timedelta(days=1), time(21, 0))
    within_grace = await booking_factory(seed.branch.id, today, time(11, 50))
    pending = await booking_factory(seed.branch.id, today, time(11, 0), status=BookingStatus.PENDING)

    moved = await booking_service.auto_cancel_overdue()
    assert moved == 2

    for booking, expected in (
        (overdue, BookingStatus.NO_SHOW),
        (yesterday, BookingStatus.NO_SHOW),
        (within_grace, BookingStatus.CONFIRMED),
        (pending, BookingStatus.PENDING),
    ):
        await test_db.refresh(booking)
        assert booking.status == expected

    assert await history_actions(test_db, overdue.id) == ["AUTO_NO_SHOW"]
    profile = await test_db.get(Customer, customer.id)
    await test_db.refresh(profile)
    assert profile.no_shows == 1

    # A second sweep finds nothing left to move
    assert await booking_service.auto_cancel_overdue() == 0


@pytest.mark.asyncio
async def test_sweep_leaves_checked_in_bookings_alone(test_db, seed, booking_service, booking_factory):
    seated = await booking_factory(seed.branch.id, NOW.date(), time(10, 0), status=BookingStatus.CHECKED_IN)

    assert await booking_service.auto_cancel_overdue() == 0

    await test_db.refresh(seated)
    assert seated.status == BookingStatus.CHECKED_IN
    assert await history_actions(test_db, seated.id) == []


@pytest.mark.asyncio
async def test_sweep_continues_when_one_booking_fails(
    test_db, seed, customer, booking_service, booking_factory, monkeypatch
):
    second = await CustomerService(test_db).create_profile(full_name="Bo Guest", email="bo@example.com")
    await test_db.commit()
    second_id = second.id
    first_booking = await booking_factory(seed.branch.id, NOW.date(), time(10, 0), customer_id=customer.id)
    second_booking = await booking_factory(seed.branch.id, NOW.date(), time(10, 30), customer_id=second_id)

    record = booking_service.timeline.record
    calls = []

    async def flaky_record(customer_id, *args, **kwargs):
        calls.append(customer_id)
        if len(calls) == 1:
            raise RuntimeError("timeline unavailable")
        return await record(customer_id, *args, **kwargs)

    monkeypatch.setattr(booking_service.timeline, "record", flaky_record)

    assert await booking_service.auto_cancel_overdue() == 2

    for booking in (first_booking, second_booking):
        await test_db.refresh(booking)
        assert booking.status == BookingStatus.NO_SHOW
        assert await history_actions(test_db, booking.id) == ["AUTO_NO_SHOW"]

    # Stats are refreshed for the booking whose timeline entry was written
    recorded = calls[1]
    profile = await test_db.get(Customer, recorded)
    await test_db.refresh(profile)
    assert profile.no_shows == 1


@pytest.mark.asyncio
async def test_sweep_from_another_scheduler_suppresses_pending_reminders(
    test_db, session_factory, seed, customer, slot_guard, dispatcher, email_sender
):
    timers = ManualTimers()
    api_scheduler = InMemoryScheduler(dispatcher, session_factory, clock=fixed_clock, sleep=timers.sleep)
    worker_scheduler = InMemoryScheduler(dispatcher, session_factory, clock=fixed_clock)
    api = BookingService(test_db, api_scheduler, slot_guard, dispatcher, clock=fixed_clock)
    worker = BookingService(test_db, worker_scheduler, slot_guard, dispatcher, clock=fixed_clock)

    result = await api.create(
        seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2, customer_id=customer.id
    )
    assert len(api_scheduler.pending_keys()) == 3

    # The worker cannot reach the API's timers, so they are still pending
    assert await worker.auto_cancel_overdue(now=datetime.combine(BOOKING_DATE, time(20, 30))) == 1
    assert len(api_scheduler.pending_keys()) == 3

    await timers.release_all()

    assert len(email_sender.sent) == 1
    assert email_sender.sent[0]["subject"] == "Your booking is confirmed"
    booking = await test_db.get(Booking, result.booking.id)
    await test_db.refresh(booking)
    assert booking.status == BookingStatus.NO_SHOW


@pytest.mark.asyncio
async def test_in_process_sweep_cancels_its_own_reminders(
    session_factory, seed, customer, booking_service, scheduler, slot_guard, dispatcher
):
    await booking_service.create(
        seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2, customer_id=customer.id
    )
    runtime = Runtime(dispatcher=dispatcher, scheduler=scheduler, slot_guard=slot_guard)

    moved = await sweep_overdue_bookings(
        runtime, session_factory, clock=lambda: datetime.combine(BOOKING_DATE, time(20, 30))
    )

    assert moved == 1
    assert scheduler.pending_keys() == []


@pytest.mark.parametrize("backend, in_process", [("memory", True), ("celery", False)])
def test_sweep_owner_follows_scheduler_backend(backend, in_process):
    assert sweep_runs_in_process(Settings(scheduler_backend=backend)) is in_process


# Queries


@pytest.mark.asyncio
async def test_list_bookings_is_branch_scoped(seed, booking_service, booking_factory):
    first = await booking_factory(seed.branch.id, BOOKING_DATE, time(12, 0))
    await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0))
    await booking_factory(seed.other_branch.id, BOOKING_DATE, time(18, 0))

    items, total = await booking_service.list_bookings(seed.users["staff"])
    assert total == 2
    assert {b.branch_id for b in items} == {seed.branch.id}

    _, total = await booking_service.list_bookings(seed.users["master"])
    assert total == 3

    items, total = await booking_service.list_bookings(seed.users["master"], search=first.booking_code.lower())
    assert total == 1
    assert items[0].id == first.id

    items, total = await booking_service.list_bookings(seed.users["master"], page=2, page_size=2)
    assert total == 3
    assert len(items) == 1

    with pytest.raises(ForbiddenError):
        await booking_service.list_bookings(seed.users["staff"], branch_id=seed.other_branch.id)


@pytest.mark.asyncio
async def test_get_upcoming(seed, booking_service, booking_factory):
    await booking_factory(seed.branch.id, BOOKING_DATE, time(19, 0))
    await booking_factory(seed.branch.id, BOOKING_DATE, time(12, 0), status=BookingStatus.PENDING)
    await booking_factory(seed.branch.id, BOOKING_DATE, time(13, 0), status=BookingStatus.CANCELLED)
    await booking_factory(seed.branch.id, NOW.date() - timedelta(days=1), time(19, 0))

    upcoming = await booking_service.get_upcoming(seed.users["staff"], seed.branch.id)

    assert [b.time_slot for b in upcoming] == [time(12, 0), time(19, 0)]


@pytest.mark.asyncio
async def test_get_booking_by_code_ignores_case(seed, booking_service, booking_factory):
    booking = await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0))

    found = await booking_service.get_booking_by_code(f" {booking.booking_code.lower()} ")
    assert found.id == booking.id

    with pytest.raises(NotFoundError):
        await booking_service.get_booking_by_code("ZZZZZZ")


@pytest.mark.asyncio
async def test_public_availability(seed, booking_service, booking_factory):
    result = await booking_service.check_availability_public(seed.branch.id, BOOKING_DATE, time(18, 0), 4)
    assert result == {"available": True, "is_open": True, "available_tables": 3, "suggestions": []}

    closed = await booking_service.check_availability_public(seed.branch.id, BOOKING_DATE, time(8, 0), 2)
    assert closed["is_open"] is False
    assert closed["available"] is False

    for number in ("T2", "T3", "T4"):
        await booking_factory(seed.branch.id, BOOKING_DATE, time(18, 0), table_id=seed.tables[number].id)
    full = await booking_service.check_availability_public(seed.branch.id, BOOKING_DATE, time(18, 0), 4)
    assert full["available"] is False
    assert full["suggestions"] == [time(20, 0)]
