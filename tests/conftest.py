"""Test configuration and fixtures"""

import asyncio
import secrets
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.main import app
from app.database import Base, get_db
from app.models.booking import Booking, BookingStatus
from app.models.branch import Branch, OperatingHour, Table
from app.models.notification import NotificationChannel
from app.models.user import User, UserRole
from app.services.booking_codes import CODE_ALPHABET
from app.services.bookings import BookingService
from app.services.customers import CustomerService
from app.services.notifications import NotificationDispatcher, NotificationSender
from app.services.runtime import Runtime, get_runtime
from app.services.scheduler import InMemoryScheduler
from app.services.slot_guard import LocalSlotGuard


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday; bookings in tests are placed relative to this instant
NOW = datetime(2030, 1, 7, 12, 0)
BOOKING_DATE = date(2030, 1, 14)


def fixed_clock() -> datetime:
    return NOW


class RecordingSender(NotificationSender):
    """Keeps sent messages in memory"""

    def __init__(self, channel: NotificationChannel = NotificationChannel.EMAIL):
        self.channel = channel
        self.sent: List[dict] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})


class ManualTimers:
    """Sleep replacement for InMemoryScheduler; timers fire only when released"""

    def __init__(self):
        self.waiting: Dict[asyncio.Task, asyncio.Event] = {}

    async def sleep(self, delay: float) -> None:
        event = asyncio.Event()
        self.waiting[asyncio.current_task()] = event
        await event.wait()

    async def release_all(self) -> None:
        # Let freshly scheduled timer tasks reach sleep() before draining
        await asyncio.sleep(0)
        # One timer at a time; jobs share the in-memory database connection
        while self.waiting:
            task, event = self.waiting.popitem()
            event.set()
            await asyncio.gather(task, return_exceptions=True)


@dataclass
class Seed:
    branch: Branch
    other_branch: Branch
    tables: Dict[str, Table]
    users: Dict[str, User]


async def add_branch(db: AsyncSession, name: str, tables: Dict[str, dict]) -> Branch:
    """Branch open 09:00-22:00 every day with the given tables"""
    branch = Branch(name=name, timezone="UTC", is_active=True)
    db.add(branch)
    await db.flush()
    for day in range(7):
        db.add(
            OperatingHour(
                branch_id=branch.id,
                day_of_week=day,
                open_time=time(9, 0),
                close_time=time(22, 0),
                is_closed=False,
            )
        )
    for number, fields in tables.items():
        db.add(Table(branch_id=branch.id, table_number=number, is_active=True, **fields))
    await db.flush()
    return branch


@pytest.fixture
async def test_engine():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(test_db) -> Seed:
    """
    Main branch with four tables plus a second branch, and a user per role.

    Objects are detached after commit so that a rollback inside a service
    call does not expire them.
    """
    branch = await add_branch(
        test_db,
        "Main",
        {
            "T1": {"capacity": 2, "min_capacity": 1},
            "T2": {"capacity": 4, "min_capacity": 1},
            "T3": {"capacity": 4, "min_capacity": 2, "is_combinable": True},
            "T4": {"capacity": 6, "min_capacity": 2, "is_combinable": True},
        },
    )
    other_branch = await add_branch(
        test_db,
        "Harbour",
        {"H1": {"capacity": 4, "min_capacity": 1, "is_combinable": True}},
    )

    users = {
        "master": User(email="master@example.com", hashed_password="x", role=UserRole.MASTER_ADMIN),
        "branch_admin": User(
            email="manager@example.com", hashed_password="x", role=UserRole.BRANCH_ADMIN, branch_id=branch.id
        ),
        "staff": User(email="staff@example.com", hashed_password="x", role=UserRole.STAFF, branch_id=branch.id),
        "other_staff": User(
            email="other@example.com", hashed_password="x", role=UserRole.STAFF, branch_id=other_branch.id
        ),
    }
    test_db.add_all(users.values())
    await test_db.commit()

    result = await test_db.execute(select(Table))
    tables = {table.table_number: table for table in result.scalars().all()}
    test_db.expunge_all()

    return Seed(branch=branch, other_branch=other_branch, tables=tables, users=users)


@pytest.fixture
def email_sender():
    return RecordingSender(NotificationChannel.EMAIL)


@pytest.fixture
def dispatcher(email_sender):
    return NotificationDispatcher(senders={NotificationChannel.EMAIL: email_sender})


@pytest.fixture
async def scheduler(dispatcher, session_factory):
    scheduler = InMemoryScheduler(dispatcher, session_factory, clock=fixed_clock)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def slot_guard():
    return LocalSlotGuard()


@pytest.fixture
def booking_service(test_db, scheduler, slot_guard, dispatcher):
    return BookingService(test_db, scheduler, slot_guard, dispatcher, clock=fixed_clock)


@pytest.fixture
async def customer(test_db, seed):
    """Guest with an email address, detached after commit"""
    profile = await CustomerService(test_db).create_profile(
        full_name="Ada Guest",
        email="ada@example.com",
        phone="+15550001111",
    )
    await test_db.commit()
    test_db.expunge_all()
    return profile


@pytest.fixture
def booking_factory(test_db):
    """Insert a booking row directly, bypassing the lifecycle rules"""
    async def make(
        branch_id,
        booking_date: date,
        time_slot: time,
        table_id=None,
        status: BookingStatus = BookingStatus.CONFIRMED,
        customer_id=None,
        duration_minutes: Optional[int] = 120,
        party_size: int = 2,
    ) -> Booking:
        booking = Booking(
            booking_code="".join(secrets.choice(CODE_ALPHABET) for _ in range(6)),
            branch_id=branch_id,
            table_id=table_id,
            customer_id=customer_id,
            booking_date=booking_date,
            time_slot=time_slot,
            duration_minutes=duration_minutes,
            party_size=party_size,
            status=status,
        )
        test_db.add(booking)
        await test_db.commit()
        if duration_minutes is None:
            # The column default fills in NULL on insert; store NULL explicitly
            await test_db.execute(
                update(Booking).where(Booking.id == booking.id).values(duration_minutes=None)
            )
            await test_db.commit()
            await test_db.refresh(booking)
        return booking

    return make


@pytest.fixture
async def client(test_db, session_factory, slot_guard, dispatcher):
    """Create test client with overridden database and runtime"""
    # Real clock so reminders for next week stay pending during a request
    scheduler = InMemoryScheduler(dispatcher, session_factory)

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_runtime] = lambda: Runtime(
        dispatcher=dispatcher,
        scheduler=scheduler,
        slot_guard=slot_guard,
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await scheduler.shutdown()


@pytest.fixture
def auth_headers():
    """Bearer header for a user"""
    from app.api.auth import create_access_token

    def make(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return make
