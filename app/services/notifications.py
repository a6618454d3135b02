"""
Outbound notifications.

``NotificationDispatcher.send`` never raises: delivery failures are logged
and reported in the returned result. When the dispatcher has a session
factory the attempt is stored as a ``Notification`` row and a
``PersistedDelivery`` is returned; without one the result is an
``EphemeralDelivery`` so callers can tell degraded delivery apart.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from twilio.rest import Client as TwilioClient
import structlog

from app.config import settings
from app.models.notification import Notification, NotificationChannel, NotificationStatus

logger = structlog.get_logger()


class NotificationSender(ABC):
    """Abstract base class for delivery channels"""

    channel: NotificationChannel

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one message; raise on failure"""
        pass


class LogEmailSender(NotificationSender):
    """Email delivery stub that writes the message to the log"""

    channel = NotificationChannel.EMAIL

    def __init__(self, from_address: Optional[str] = None):
        self.from_address = from_address or settings.email_from_address

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Sending email", sender=self.from_address, to=to, subject=subject)


class TwilioSmsSender(NotificationSender):
    """SMS delivery through Twilio"""

    channel = NotificationChannel.SMS

    def __init__(self, client: Optional[TwilioClient] = None, from_number: Optional[str] = None):
        self.client = client or TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        self.from_number = from_number or settings.twilio_phone_number

    async def send(self, to: str, subject: str, body: str) -> None:
        # Twilio's client is blocking
        await asyncio.to_thread(
            self.client.messages.create,
            body=body,
            from_=self.from_number,
            to=to,
        )
        logger.info("Sent SMS", to=to[-4:])


@dataclass(frozen=True)
class PersistedDelivery:
    notification_id: UUID
    status: NotificationStatus
    error: Optional[str] = None


@dataclass(frozen=True)
class EphemeralDelivery:
    status: NotificationStatus
    error: Optional[str] = None


DeliveryResult = Union[PersistedDelivery, EphemeralDelivery]


def default_senders() -> Dict[NotificationChannel, NotificationSender]:
    senders: Dict[NotificationChannel, NotificationSender] = {
        NotificationChannel.EMAIL: LogEmailSender(),
    }
    if settings.twilio_account_sid and settings.twilio_auth_token:
        senders[NotificationChannel.SMS] = TwilioSmsSender()
    return senders


class NotificationDispatcher:
    """Routes messages to channel senders and records the outcome"""

    def __init__(
        self,
        senders: Optional[Dict[NotificationChannel, NotificationSender]] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
    ):
        self.senders = senders if senders is not None else default_senders()
        self.session_factory = session_factory

    def supports(self, channel: NotificationChannel) -> bool:
        return channel in self.senders

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        channel: NotificationChannel = NotificationChannel.EMAIL,
    ) -> DeliveryResult:
        status = NotificationStatus.SENT
        error = None
        sender = self.senders.get(channel)

        try:
            if sender is None:
                raise RuntimeError(f"No sender configured for {channel.value}")
            await sender.send(to, subject, body)
        except Exception as e:
            status = NotificationStatus.FAILED
            error = str(e)
            logger.error("Notification delivery failed", channel=channel.value, error=error)

        if self.session_factory is None:
            return EphemeralDelivery(status=status, error=error)

        try:
            async with self.session_factory() as db:
                record = Notification(
                    channel=channel,
                    recipient=to,
                    subject=subject,
                    content=body,
                    status=status,
                    error_message=error,
                    sent_at=datetime.utcnow() if status == NotificationStatus.SENT else None,
                )
                db.add(record)
                await db.commit()
                return PersistedDelivery(notification_id=record.id, status=status, error=error)
        except Exception as e:
            logger.error("Failed to persist notification", channel=channel.value, error=str(e))
            return EphemeralDelivery(status=status, error=error)
