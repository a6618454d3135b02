"""Background job tasks"""

import asyncio
import structlog

from app.jobs.celery_app import celery_app
from app.services.scheduler import deliver_booking_notification

logger = structlog.get_logger()


_loop = None


def run_async(coro):
    """Run a coroutine on the worker's long-lived event loop"""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


@celery_app.task(name="send_booking_notification")
def send_booking_notification(**job):
    """Deliver a reminder or thank-you message queued by CeleryScheduler"""
    logger.info("Sending booking notification", booking_id=job.get("booking_id"), kind=job.get("kind"))

    async def _send():
        from app.database import SessionLocal
        from app.services.notifications import NotificationDispatcher

        dispatcher = NotificationDispatcher(session_factory=SessionLocal)
        return await deliver_booking_notification(SessionLocal, dispatcher, **job)

    return run_async(_send())


@celery_app.task(name="auto_cancel_overdue_bookings")
def auto_cancel_overdue_bookings():
    """Mark confirmed bookings that never checked in as no-shows"""
    from app.services.runtime import sweep_runs_in_process

    if sweep_runs_in_process():
        # The API process sweeps with its own in-memory scheduler
        logger.warning("Overdue sweep skipped in worker", scheduler="memory")
        return 0

    logger.info("Sweeping overdue bookings")

    async def _sweep():
        from app.database import SessionLocal
        from app.services.runtime import get_runtime, sweep_overdue_bookings

        try:
            return await sweep_overdue_bookings(get_runtime(), SessionLocal)
        except Exception as e:
            logger.error("Overdue booking sweep failed", error=str(e))
            return 0

    return run_async(_sweep())
