"""Short user-facing booking codes"""

import secrets
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.errors import InternalError
from app.models.booking import Booking

logger = structlog.get_logger()

# Uppercase letters and digits without the look-alikes I, O, 0 and 1
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CodeExists = Callable[[str], Awaitable[bool]]


class BookingCodeGenerator:
    """Draws random codes until one is not already taken"""

    def __init__(
        self,
        exists: CodeExists,
        length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        choice: Callable[[str], str] = secrets.choice,
    ):
        self.exists = exists
        self.length = length or settings.booking_code_length
        self.max_attempts = max_attempts or settings.booking_code_max_attempts
        self.choice = choice

    @classmethod
    def for_session(cls, db: AsyncSession, **kwargs) -> "BookingCodeGenerator":
        """Generator whose uniqueness check queries the bookings table"""
        async def exists(code: str) -> bool:
            result = await db.execute(select(Booking.id).where(Booking.booking_code == code))
            return result.first() is not None

        return cls(exists, **kwargs)

    def candidate(self) -> str:
        return "".join(self.choice(CODE_ALPHABET) for _ in range(self.length))

    async def generate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            code = self.candidate()
            if not await self.exists(code):
                return code
            logger.warning("Booking code collision", attempt=attempt)
        raise InternalError(
            "Could not allocate a unique booking code",
            details={"attempts": self.max_attempts},
        )
