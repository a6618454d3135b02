"""
Serialization of availability check + insert per (branch, date).

Everything that reads availability and then writes an occupying booking runs
inside ``guard.hold(db, branch_id, booking_date)`` and commits before leaving
it, so two requests for overlapping windows on the same branch/date cannot
both pass the check. The key is the whole branch/date because table-less
bookings conflict with every table.
"""

import asyncio
import hashlib
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

logger = structlog.get_logger()


def slot_key(branch_id: UUID, booking_date: date) -> str:
    return f"{branch_id}:{booking_date.isoformat()}"


class SlotGuard(ABC):
    """Mutual exclusion for bookings on one branch/date"""

    @abstractmethod
    def hold(self, db: AsyncSession, branch_id: UUID, booking_date: date):
        """Async context manager held across check, insert and commit"""
        pass


class LocalSlotGuard(SlotGuard):
    """In-process asyncio locks; correct for a single API process"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, db: AsyncSession, branch_id: UUID, booking_date: date) -> AsyncIterator[None]:
        lock = self._lock_for(slot_key(branch_id, booking_date))
        async with lock:
            yield


class AdvisorySlotGuard(SlotGuard):
    """PostgreSQL transaction-scoped advisory lock, released on commit/rollback"""

    @staticmethod
    def lock_id(branch_id: UUID, booking_date: date) -> int:
        digest = hashlib.blake2b(slot_key(branch_id, booking_date).encode(), digest_size=8).digest()
        return int.from_bytes(digest, "big", signed=True)

    @asynccontextmanager
    async def hold(self, db: AsyncSession, branch_id: UUID, booking_date: date) -> AsyncIterator[None]:
        lock_id = self.lock_id(branch_id, booking_date)
        await db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})
        logger.debug("Acquired slot advisory lock", branch_id=str(branch_id), date=booking_date.isoformat())
        yield
