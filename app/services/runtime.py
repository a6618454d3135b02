"""
Process-wide collaborators for the booking engine.

The backends are chosen once from settings when the runtime is built. The
overdue sweep must run in the process that owns the scheduler's jobs: with
the ``memory`` scheduler that is the API process itself, with ``celery`` it
is the beat-driven worker task.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import Settings, settings as default_settings
from app.services.notifications import NotificationDispatcher
from app.services.scheduler import CeleryScheduler, InMemoryScheduler, NotificationScheduler
from app.services.slot_guard import AdvisorySlotGuard, LocalSlotGuard, SlotGuard

logger = structlog.get_logger()


@dataclass
class Runtime:
    dispatcher: NotificationDispatcher
    scheduler: NotificationScheduler
    slot_guard: SlotGuard


def build_slot_guard(config: Settings) -> SlotGuard:
    if config.slot_guard_backend == "local":
        return LocalSlotGuard()
    if config.slot_guard_backend == "advisory":
        return AdvisorySlotGuard()
    raise ValueError(f"Unknown slot_guard_backend: {config.slot_guard_backend}")


def build_scheduler(
    config: Settings,
    dispatcher: NotificationDispatcher,
    session_factory: Callable[[], AsyncSession],
) -> NotificationScheduler:
    if config.scheduler_backend == "memory":
        return InMemoryScheduler(dispatcher, session_factory)
    if config.scheduler_backend == "celery":
        from redis.asyncio import Redis

        from app.jobs.celery_app import celery_app

        return CeleryScheduler(celery_app, Redis.from_url(config.redis_url, decode_responses=True))
    raise ValueError(f"Unknown scheduler_backend: {config.scheduler_backend}")


def build_runtime(config: Optional[Settings] = None) -> Runtime:
    from app.database import SessionLocal

    config = config or default_settings
    dispatcher = NotificationDispatcher(session_factory=SessionLocal)
    runtime = Runtime(
        dispatcher=dispatcher,
        scheduler=build_scheduler(config, dispatcher, SessionLocal),
        slot_guard=build_slot_guard(config),
    )
    logger.info(
        "Booking runtime built",
        scheduler=config.scheduler_backend,
        slot_guard=config.slot_guard_backend,
    )
    return runtime


@lru_cache()
def get_runtime() -> Runtime:
    """Cached runtime; overridden in tests"""
    return build_runtime()


def sweep_runs_in_process(config: Optional[Settings] = None) -> bool:
    """True when the API process, not Celery beat, owns the overdue sweep"""
    return (config or default_settings).scheduler_backend == "memory"


async def sweep_overdue_bookings(
    runtime: Runtime,
    session_factory: Callable[[], AsyncSession],
    clock: Callable[[], datetime] = datetime.now,
) -> int:
    """One overdue sweep using the runtime's scheduler"""
    from app.services.bookings import BookingService

    async with session_factory() as db:
        service = BookingService(db, runtime.scheduler, runtime.slot_guard, runtime.dispatcher, clock=clock)
        return await service.auto_cancel_overdue()


async def run_overdue_sweeps(
    runtime: Runtime,
    session_factory: Callable[[], AsyncSession],
    interval_seconds: float,
) -> None:
    """Periodic in-process sweep; cancelled at shutdown"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await sweep_overdue_bookings(runtime, session_factory)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Overdue booking sweep failed", error=str(e))
