from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from ..models.events import RecentEventsResponse
from ..security.auth import require_auth, websocket_user
from ..services.engine import Engine, get_engine


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/recent", response_model=RecentEventsResponse, dependencies=[Depends(require_auth)])
async def recent_events(
    limit: Optional[int] = Query(default=None, ge=1),
    engine: Engine = Depends(get_engine),
) -> RecentEventsResponse:
    return RecentEventsResponse(events=engine.events.recent(limit))


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.model_dump(mode="json"))


async def _until_closed(websocket: WebSocket) -> None:
    # client messages are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("")
async def event_stream(websocket: WebSocket, engine: Engine = Depends(get_engine)) -> None:
    """Pushes every progress event published after the socket connects."""
    if websocket_user(websocket) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    queue = engine.events.subscribe()
    tasks = []
    try:
        await websocket.accept()
        tasks = [
            asyncio.create_task(_forward(websocket, queue)),
            asyncio.create_task(_until_closed(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, (WebSocketDisconnect, RuntimeError)):
                raise exc
    finally:
        for task in tasks:
            task.cancel()
        engine.events.unsubscribe(queue)
        logger.debug("Event subscriber disconnected")
