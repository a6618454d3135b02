"""Customer timeline recorder"""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.models.customer import CustomerTimeline, TimelineEventType

logger = structlog.get_logger()


def _jsonable(metadata: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        for key, value in metadata.items()
    }


class TimelineRecorder:
    """Appends events to a customer's timeline in the caller's transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        customer_id: UUID,
        event_type: TimelineEventType,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        actor_id: Optional[UUID] = None,
    ) -> CustomerTimeline:
        entry = CustomerTimeline(
            customer_id=customer_id,
            event_type=event_type,
            description=description,
            metadata_json=_jsonable(metadata or {}),
            actor_id=actor_id,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug(
            "Timeline event recorded",
            customer_id=str(customer_id),
            event_type=event_type.value,
        )
        return entry
