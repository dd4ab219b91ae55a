"""
SSE Module - Server-Sent Events Router

Provides realtime updates for:
- Marketplace job transitions
- Heartbeats
"""
import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import orjson
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.core.config import settings
from src.core.logging import get_logger
from src.core.metrics import sse_connection_closed, sse_connection_opened
from src.modules.auth.dependencies import CurrentUserDep
from src.modules.auth.schemas import CurrentUser
from src.modules.marketplace.events import JobEventBroadcaster, broadcaster

logger = get_logger(__name__)

router = APIRouter(prefix="/sse", tags=["SSE"])


def format_sse(payload: dict) -> str:
    """Format: data: {json}\\n\\n"""
    return f"data: {orjson.dumps(payload).decode()}\n\n"


async def job_event_generator(
    request: Request,
    user: CurrentUser,
    events: JobEventBroadcaster,
    heartbeat_seconds: float,
    only_mine: bool = False,
) -> AsyncGenerator[str, None]:
    """Relay job events to one client, with a heartbeat when idle."""
    sse_connection_opened()
    try:
        async with events.subscribe() as queue:
            yield format_sse({"type": "connected", "user_id": str(user.id)})
            while True:
                if await request.is_disconnected():
                    logger.info("SSE client disconnected", user_id=str(user.id))
                    break

                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield format_sse({
                        "type": "heartbeat",
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                    })
                    continue

                if only_mine and not event.concerns(user.id):
                    continue
                yield format_sse(event.to_payload())
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled", user_id=str(user.id))
        raise
    finally:
        sse_connection_closed()


@router.get("/jobs")
async def job_stream(
    request: Request,
    current_user: CurrentUserDep,
    mine: bool = False,
):
    """
    SSE stream of marketplace job transitions.

    Events:
    - `connected`: Stream opened
    - `heartbeat`: Connection keepalive
    - `job`: A job changed state (`event`, `status`, `job_id`, parties)

    With `mine=true` only jobs where the caller is seller or buyer are sent.

    Usage:
    ```javascript
    const eventSource = new EventSource('/api/v1/sse/jobs?mine=true');
    eventSource.onmessage = (event) => {
        const data = JSON.parse(event.data);
        if (data.type === 'job') refreshJob(data.job_id);
    };
    ```
    """
    logger.info("SSE job stream started", user_id=str(current_user.id), mine=mine)

    return StreamingResponse(
        job_event_generator(
            request,
            current_user,
            broadcaster,
            settings.sse_heartbeat_seconds,
            only_mine=mine,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
