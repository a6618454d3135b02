"""Tests for customer stats, tiers, blacklisting, merging and profile management"""

from datetime import time, timedelta

import pytest
from sqlalchemy import select

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.booking import Booking, BookingStatus
from app.models.customer import Customer, CustomerTier, CustomerTimeline, TimelineEventType
from app.services.customers import AUTO_BLACKLIST_REASON, CustomerService, CustomerStatsService, tier_for

from conftest import BOOKING_DATE


async def add_bookings(booking_factory, branch_id, customer_id, statuses):
    for index, status in enumerate(statuses):
        await booking_factory(
            branch_id, BOOKING_DATE, time(10 + index % 10, 0), status=status, customer_id=customer_id
        )


@pytest.mark.parametrize(
    "successful, tier",
    [(0, CustomerTier.REGULAR), (9, CustomerTier.REGULAR), (10, CustomerTier.VIP), (25, CustomerTier.VIP)],
)
def test_tier_for(successful, tier):
    assert tier_for(successful) == tier


@pytest.mark.asyncio
async def test_update_stats_counts_statuses(test_db, seed, customer, booking_factory):
    await add_bookings(
        booking_factory,
        seed.branch.id,
        customer.id,
        [
            BookingStatus.COMPLETED,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
            BookingStatus.CONFIRMED,
        ],
    )

    profile = await CustomerStatsService(test_db).update_stats(customer.id)

    assert profile.successful_bookings == 2
    assert profile.cancellations == 1
    assert profile.no_shows == 1
    assert profile.total_bookings == 5
    assert profile.tier == CustomerTier.REGULAR
    assert not profile.is_blacklisted


@pytest.mark.asyncio
async def test_ten_completed_bookings_make_a_vip(test_db, seed, customer, booking_factory):
    stats = CustomerStatsService(test_db)
    await add_bookings(booking_factory, seed.branch.id, customer.id, [BookingStatus.COMPLETED] * 9)
    assert (await stats.update_stats(customer.id)).tier == CustomerTier.REGULAR

    await add_bookings(booking_factory, seed.branch.id, customer.id, [BookingStatus.COMPLETED])
    assert (await stats.update_stats(customer.id)).tier == CustomerTier.VIP
    assert await stats.calculate_tier(customer.id) == CustomerTier.VIP


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "statuses",
    [
        [BookingStatus.CANCELLED] * 3,
        [BookingStatus.NO_SHOW] * 2,
    ],
)
async def test_auto_blacklist_thresholds(test_db, seed, customer, booking_factory, statuses):
    await add_bookings(booking_factory, seed.branch.id, customer.id, statuses)

    profile = await CustomerStatsService(test_db).update_stats(customer.id)

    assert profile.is_blacklisted
    assert profile.blacklist_reason == AUTO_BLACKLIST_REASON
    assert await CustomerStatsService(test_db).check_blacklist(customer.id)


@pytest.mark.asyncio
async def test_below_thresholds_not_blacklisted(test_db, seed, customer, booking_factory):
    await add_bookings(
        booking_factory, seed.branch.id, customer.id, [BookingStatus.CANCELLED] * 2 + [BookingStatus.NO_SHOW]
    )

    profile = await CustomerStatsService(test_db).update_stats(customer.id)
    assert not profile.is_blacklisted


@pytest.mark.asyncio
async def test_manual_blacklist_reason_is_preserved(test_db, seed, customer, booking_factory):
    service = CustomerService(test_db)
    await service.blacklist(seed.users["branch_admin"], customer.id, "fraud")
    await add_bookings(booking_factory, seed.branch.id, customer.id, [BookingStatus.CANCELLED] * 3)

    profile = await CustomerStatsService(test_db).update_stats(customer.id)

    assert profile.is_blacklisted
    assert profile.blacklist_reason == "fraud"


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", ["", "  ", "no", " x  "])
async def test_blacklist_reason_too_short(test_db, seed, customer, reason):
    with pytest.raises(ValidationError):
        await CustomerService(test_db).blacklist(seed.users["branch_admin"], customer.id, reason)


@pytest.mark.asyncio
async def test_staff_cannot_blacklist(test_db, seed, customer):
    with pytest.raises(ForbiddenError):
        await CustomerService(test_db).blacklist(seed.users["staff"], customer.id, "Rude to staff")


@pytest.mark.asyncio
async def test_blacklist_and_remove(test_db, seed, customer):
    service = CustomerService(test_db)
    admin = seed.users["branch_admin"]

    profile = await service.blacklist(admin, customer.id, "  Repeated abuse  ")
    assert profile.is_blacklisted
    assert profile.blacklist_reason == "Repeated abuse"

    profile = await service.remove_blacklist(admin, customer.id)
    assert not profile.is_blacklisted
    assert profile.blacklist_reason is None

    timeline = await service.get_timeline(admin, customer.id)
    assert [entry.event_type for entry in timeline][:2] == [
        TimelineEventType.BLACKLIST_REMOVED,
        TimelineEventType.BLACKLISTED,
    ]


@pytest.mark.asyncio
async def test_create_customer(test_db, seed):
    service = CustomerService(test_db)

    profile = await service.create(
        seed.users["staff"], full_name="Grace Guest", email="grace@example.com", preferences={"seating": "window"}
    )

    assert profile.id is not None
    assert profile.tier == CustomerTier.REGULAR
    assert profile.preferences == {"seating": "window"}
    assert (await service.get(seed.users["staff"], profile.id)).email == "grace@example.com"

    with pytest.raises(NotFoundError):
        await service.create(seed.users["staff"], full_name="Bad Referral", referred_by_id=seed.branch.id)


@pytest.mark.asyncio
async def test_merge_moves_bookings_and_timeline(test_db, seed, customer, booking_factory):
    service = CustomerService(test_db)
    duplicate = await service.create(seed.users["staff"], full_name="Ada G.", phone="+15550003333")
    duplicate_id = duplicate.id
    await add_bookings(
        booking_factory, seed.branch.id, duplicate_id, [BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )

    primary = await service.merge(seed.users["branch_admin"], customer.id, duplicate_id)

    assert primary.id == customer.id
    assert primary.total_bookings == 2
    assert primary.successful_bookings == 1

    old = await test_db.get(Customer, duplicate_id)
    await test_db.refresh(old)
    assert not old.is_active
    assert old.merged_into_id == customer.id
    assert old.total_bookings == 0

    owners = await test_db.execute(select(Booking.customer_id).distinct())
    assert {row[0] for row in owners.all()} == {customer.id}

    events = await test_db.execute(
        select(CustomerTimeline.event_type).where(CustomerTimeline.customer_id == customer.id)
    )
    types = [row[0] for row in events.all()]
    assert TimelineEventType.MERGED in types
    # The duplicate's creation event moved along with it
    assert types.count(TimelineEventType.PROFILE_CREATED) == 2


@pytest.mark.asyncio
async def test_merge_into_self_is_rejected(test_db, seed, customer):
    with pytest.raises(ValidationError):
        await CustomerService(test_db).merge(seed.users["branch_admin"], customer.id, customer.id)


@pytest.mark.asyncio
async def test_merge_twice_is_rejected(test_db, seed, customer):
    service = CustomerService(test_db)
    duplicate = await service.create(seed.users["staff"], full_name="Ada Dup")
    duplicate_id = duplicate.id

    await service.merge(seed.users["branch_admin"], customer.id, duplicate_id)
    with pytest.raises(ConflictError):
        await service.merge(seed.users["branch_admin"], customer.id, duplicate_id)


@pytest.mark.asyncio
async def test_merge_into_merged_profile_is_rejected(test_db, seed, customer, booking_factory):
    service = CustomerService(test_db)
    admin = seed.users["branch_admin"]
    second = await service.create(seed.users["staff"], full_name="Ada Second")
    second_id = second.id
    third = await service.create(seed.users["staff"], full_name="Ada Third")
    third_id = third.id
    booking = await booking_factory(
        seed.branch.id, BOOKING_DATE, time(12, 0), status=BookingStatus.COMPLETED, customer_id=third_id
    )

    await service.merge(admin, customer.id, second_id)
    with pytest.raises(ConflictError):
        await service.merge(admin, second_id, third_id)

    # Nothing moved onto the deactivated profile
    moved = await test_db.get(Booking, booking.id)
    await test_db.refresh(moved)
    assert moved.customer_id == third_id
    still_active = await test_db.get(Customer, third_id)
    await test_db.refresh(still_active)
    assert still_active.is_active


@pytest.mark.asyncio
async def test_merged_profile_cannot_book(test_db, seed, customer, booking_service):
    service = CustomerService(test_db)
    duplicate = await service.create(seed.users["staff"], full_name="Ada Dup")
    duplicate_id = duplicate.id
    await service.merge(seed.users["branch_admin"], customer.id, duplicate_id)

    with pytest.raises(ValidationError):
        await booking_service.create(
            seed.users["staff"], seed.branch.id, BOOKING_DATE, time(18, 0), party_size=2,
            customer_id=duplicate_id,
        )


# Listing, updates and notes


@pytest.mark.asyncio
async def test_list_customers_filters_and_searches(test_db, seed, customer):
    service = CustomerService(test_db)
    staff = seed.users["staff"]
    await service.create(staff, full_name="Zed Regular", phone="+15559990000")
    vip = await service.create(staff, full_name="Bea Vip", email="bea@example.com")
    vip_id = vip.id
    banned = await service.create(staff, full_name="Cy Banned")
    await service.blacklist(seed.users["branch_admin"], banned.id, "Repeated abuse")
    stored = await test_db.get(Customer, vip_id)
    stored.tier = CustomerTier.VIP
    await test_db.commit()

    items, total = await service.list_customers(staff)
    assert total == 4
    assert [c.full_name for c in items] == ["Ada Guest", "Bea Vip", "Cy Banned", "Zed Regular"]

    items, _ = await service.list_customers(staff, tier="VIP")
    assert [c.id for c in items] == [vip_id]
    items, _ = await service.list_customers(staff, tier="BLACKLISTED")
    assert [c.full_name for c in items] == ["Cy Banned"]
    items, _ = await service.list_customers(staff, search="EXAMPLE.com")
    assert {c.full_name for c in items} == {"Ada Guest", "Bea Vip"}
    items, _ = await service.list_customers(staff, search="999")
    assert [c.full_name for c in items] == ["Zed Regular"]

    items, total = await service.list_customers(staff, page=2, page_size=3)
    assert total == 4
    assert [c.full_name for c in items] == ["Zed Regular"]

    with pytest.raises(ValidationError):
        await service.list_customers(staff, tier="PLATINUM")


@pytest.mark.asyncio
async def test_search_caps_results_and_skips_merged(test_db, seed, customer):
    service = CustomerService(test_db)
    staff = seed.users["staff"]
    for index in range(12):
        await service.create(staff, full_name=f"Guest {index:02d}")
    duplicate = await service.create(staff, full_name="Ada Copy")
    await service.merge(seed.users["branch_admin"], customer.id, duplicate.id)

    assert len(await service.search(staff, "guest")) == 10
    assert [c.full_name for c in await service.search(staff, "ada")] == ["Ada Guest"]
    assert await service.search(staff, "   ") == []


@pytest.mark.asyncio
async def test_update_customer_records_changed_fields(test_db, seed, customer):
    service = CustomerService(test_db)
    staff = seed.users["staff"]

    updated = await service.update(
        staff,
        customer.id,
        {"phone": "+15550009999", "full_name": "Ada Guest", "tier": "VIP", "preferences": {"seating": "bar"}},
    )

    assert updated.phone == "+15550009999"
    assert updated.preferences == {"seating": "bar"}
    assert updated.tier == CustomerTier.REGULAR

    timeline = await service.get_timeline(staff, customer.id)
    assert timeline[0].event_type == TimelineEventType.PROFILE_UPDATED
    assert timeline[0].metadata_json == {"fields": "phone,preferences"}

    with pytest.raises(ValidationError):
        await service.update(staff, customer.id, {"full_name": "  "})


@pytest.mark.asyncio
async def test_get_bookings_latest_first(test_db, seed, customer, booking_factory):
    await booking_factory(seed.branch.id, BOOKING_DATE, time(12, 0), customer_id=customer.id)
    await booking_factory(seed.branch.id, BOOKING_DATE, time(19, 0), customer_id=customer.id)
    await booking_factory(seed.branch.id, BOOKING_DATE - timedelta(days=1), time(20, 0), customer_id=customer.id)
    await booking_factory(seed.branch.id, BOOKING_DATE, time(13, 0))

    bookings = await CustomerService(test_db).get_bookings(seed.users["staff"], customer.id)

    assert [(b.booking_date, b.time_slot) for b in bookings] == [
        (BOOKING_DATE, time(19, 0)),
        (BOOKING_DATE, time(12, 0)),
        (BOOKING_DATE - timedelta(days=1), time(20, 0)),
    ]


@pytest.mark.asyncio
async def test_notes_follow_a_merge(test_db, seed, customer):
    service = CustomerService(test_db)
    staff = seed.users["staff"]
    duplicate = await service.create(staff, full_name="Ada Dup")
    duplicate_id = duplicate.id

    note = await service.add_note(staff, duplicate_id, "  Prefers the quiet corner ")
    assert note.content == "Prefers the quiet corner"
    assert note.created_by_id == staff.id
    timeline = await service.get_timeline(staff, duplicate_id)
    assert timeline[0].event_type == TimelineEventType.NOTE_ADDED

    with pytest.raises(ValidationError):
        await service.add_note(staff, duplicate_id, "   ")

    await service.merge(seed.users["branch_admin"], customer.id, duplicate_id)

    assert [n.content for n in await service.list_notes(staff, customer.id)] == ["Prefers the quiet corner"]
    assert await service.list_notes(staff, duplicate_id) == []


@pytest.mark.asyncio
async def test_referral_stats(test_db, seed, customer):
    service = CustomerService(test_db)
    staff = seed.users["staff"]
    for name in ("Friend One", "Friend Two"):
        await service.create(staff, full_name=name, referred_by_id=customer.id)

    stats = await service.referral_stats(staff, customer.id)

    assert stats["total"] == 2
    assert stats["loyalty_referrals"] == 2
    assert sorted(r["full_name"] for r in stats["referrals"]) == ["Friend One", "Friend Two"]


@pytest.mark.asyncio
async def test_export_data(test_db, seed, customer, booking_factory):
    service = CustomerService(test_db)
    staff = seed.users["staff"]
    await booking_factory(seed.branch.id, BOOKING_DATE, time(12, 0), customer_id=customer.id)
    await service.add_note(staff, customer.id, "Allergic to peanuts")

    export = await service.export_data(staff, customer.id)

    assert export["customer"].id == customer.id
    assert len(export["bookings"]) == 1
    assert [n.content for n in export["notes"]] == ["Allergic to peanuts"]
    assert [e.event_type for e in export["timeline"]] == [
        TimelineEventType.PROFILE_CREATED,
        TimelineEventType.NOTE_ADDED,
    ]

    with pytest.raises(NotFoundError):
        await service.export_data(staff, seed.branch.id)
