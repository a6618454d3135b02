"""
Cancellable notification jobs keyed by ``booking:{id}:{kind}``.

Two backends share one interface and are picked at construction time:
``InMemoryScheduler`` runs asyncio timers in the API process,
``CeleryScheduler`` hands jobs to Celery workers with a countdown and keeps
the task id in Redis so the job can be revoked. Jobs whose run time has
already passed run immediately. Either way delivery goes through
``deliver_booking_notification``, which skips bookings that are no longer
active when the job fires.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from app.models.notification import NotificationChannel
from app.services.notifications import NotificationDispatcher

logger = structlog.get_logger()

REMINDER_KINDS = ("24h", "2h", "thankyou")


def job_key(booking_id: UUID, kind: str) -> str:
    return f"booking:{booking_id}:{kind}"


@dataclass(frozen=True)
class NotificationJob:
    """A message to deliver at ``run_at`` on behalf of a booking"""
    booking_id: UUID
    kind: str
    run_at: datetime
    to: str
    subject: str
    body: str
    channel: NotificationChannel = NotificationChannel.EMAIL

    @property
    def key(self) -> str:
        return job_key(self.booking_id, self.kind)

    def to_task_kwargs(self) -> Dict[str, Any]:
        data = asdict(self)
        data["booking_id"] = str(self.booking_id)
        data["run_at"] = self.run_at.isoformat()
        data["channel"] = self.channel.value
        return data


async def deliver_booking_notification(
    session_factory: Callable[[], AsyncSession],
    dispatcher: NotificationDispatcher,
    **job,
) -> bool:
    """
    Send one scheduled booking notification unless the booking has since
    left the active states. Returns True when a message was sent.
    """
    async with session_factory() as db:
        booking = await db.get(Booking, UUID(job["booking_id"]))

    if booking is None:
        logger.warning("Notification for unknown booking skipped", booking_id=job["booking_id"])
        return False

    # Thank-you messages go out after the visit
    allowed = set(ACTIVE_STATUSES)
    if job["kind"] == "thankyou":
        allowed.add(BookingStatus.COMPLETED)
    if booking.status not in allowed:
        logger.info(
            "Notification skipped for inactive booking",
            booking_id=job["booking_id"],
            kind=job["kind"],
            status=booking.status.value,
        )
        return False

    await dispatcher.send(
        job["to"],
        job["subject"],
        job["body"],
        NotificationChannel(job.get("channel", NotificationChannel.EMAIL.value)),
    )
    return True


class NotificationScheduler(ABC):
    """Schedules and cancels notification jobs"""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def _delay_seconds(self, job: NotificationJob) -> float:
        delay = (job.run_at - self.clock()).total_seconds()
        if delay <= 0:
            logger.warning(
                "Notification job is already due, executing immediately",
                key=job.key,
                run_at=job.run_at.isoformat(),
            )
            return 0.0
        return delay

    @abstractmethod
    async def schedule(self, job: NotificationJob) -> None:
        """Register ``job``, replacing any job with the same key"""
        pass

    @abstractmethod
    async def cancel(self, key: str) -> bool:
        """Cancel a pending job; True when one was found"""
        pass

    async def cancel_booking(self, booking_id: UUID) -> int:
        """Cancel every reminder kind for a booking"""
        cancelled = 0
        for kind in REMINDER_KINDS:
            if await self.cancel(job_key(booking_id, kind)):
                cancelled += 1
        if cancelled:
            logger.info("Cancelled booking notifications", booking_id=str(booking_id), count=cancelled)
        return cancelled

    async def shutdown(self) -> None:
        pass


class InMemoryScheduler(NotificationScheduler):
    """asyncio-timer backend; delivery re-reads the booking status when the timer fires"""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        session_factory: Callable[[], AsyncSession],
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(clock)
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.sleep = sleep
        self.jobs: Dict[str, asyncio.Task] = {}

    def pending_keys(self) -> List[str]:
        return sorted(key for key, task in self.jobs.items() if not task.done())

    async def schedule(self, job: NotificationJob) -> None:
        await self.cancel(job.key)
        delay = self._delay_seconds(job)
        self.jobs[job.key] = asyncio.get_running_loop().create_task(self._run(job, delay))
        logger.info("Scheduled notification job", key=job.key, run_at=job.run_at.isoformat())

    async def _run(self, job: NotificationJob, delay: float) -> None:
        try:
            if delay:
                await self.sleep(delay)
            await deliver_booking_notification(self.session_factory, self.dispatcher, **job.to_task_kwargs())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Scheduled notification job failed", key=job.key, error=str(e))
        finally:
            if self.jobs.get(job.key) is asyncio.current_task():
                del self.jobs[job.key]

    async def cancel(self, key: str) -> bool:
        task = self.jobs.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Cancelled notification job", key=key)
        return True

    async def shutdown(self) -> None:
        tasks = list(self.jobs.values())
        self.jobs.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class CeleryScheduler(NotificationScheduler):
    """Celery backend; task ids are tracked in Redis for revocation"""

    TASK_NAME = "send_booking_notification"

    def __init__(
        self,
        celery_app,
        redis,
        clock: Callable[[], datetime] = datetime.now,
        ttl_seconds: int = 60 * 60 * 24 * 32,
    ):
        super().__init__(clock)
        self.celery_app = celery_app
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _redis_key(key: str) -> str:
        return f"scheduler:{key}"

    async def schedule(self, job: NotificationJob) -> None:
        await self.cancel(job.key)
        delay = self._delay_seconds(job)
        result = self.celery_app.send_task(
            self.TASK_NAME,
            kwargs=job.to_task_kwargs(),
            countdown=delay,
        )
        await self.redis.set(self._redis_key(job.key), result.id, ex=self.ttl_seconds)
        logger.info("Queued notification job", key=job.key, task_id=result.id)

    async def cancel(self, key: str) -> bool:
        redis_key = self._redis_key(key)
        task_id: Optional[str] = await self.redis.get(redis_key)
        if not task_id:
            return False
        await self.redis.delete(redis_key)
        self.celery_app.control.revoke(task_id)
        logger.info("Revoked notification job", key=key, task_id=task_id)
        return True
