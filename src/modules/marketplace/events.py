"""
Marketplace Module - Job Events

In-process fan-out of job transitions to SSE subscribers. Each subscriber
owns a bounded queue; a slow client loses events instead of blocking
the publisher.
"""
import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.core.logging import get_logger

logger = get_logger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


@dataclass(frozen=True)
class JobEvent:
    """A job changed state."""
    job_id: uuid.UUID
    event: str
    status: str
    seller_id: uuid.UUID
    buyer_id: uuid.UUID | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def concerns(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.seller_id, self.buyer_id)

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "job",
            "job_id": str(self.job_id),
            "event": self.event,
            "status": self.status,
            "seller_id": str(self.seller_id),
            "buyer_id": str(self.buyer_id) if self.buyer_id else None,
            "timestamp": self.timestamp.isoformat(),
        }


class JobEventBroadcaster:
    """Fan-out of JobEvents to any number of subscribers."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[JobEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: JobEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Job event dropped for slow subscriber",
                    job_id=str(event.job_id),
                    event=event.event,
                )

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[JobEvent]]:
        queue: asyncio.Queue[JobEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)


broadcaster = JobEventBroadcaster()
