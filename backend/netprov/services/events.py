from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Set

from ..models.events import ProgressEvent


logger = logging.getLogger(__name__)


class ProgressEmitter:
    """Publishes the events of one apply/teardown operation."""

    def __init__(self, bus: "EventBus", operation_id: str, operation: str, kind: str, key: str) -> None:
        self._bus = bus
        self.operation_id = operation_id
        self.operation = operation
        self.kind = kind
        self.key = key

    def __call__(self, state: str, message: str, level: str = "info", step: Optional[str] = None) -> None:
        self._bus.publish(
            ProgressEvent(
                operation_id=self.operation_id,
                timestamp=datetime.now(timezone.utc),
                operation=self.operation,
                kind=self.kind,
                key=self.key,
                state=state,
                message=message,
                level=level,
                step=step,
            )
        )


class EventBus:
    def __init__(self, history: int = 200) -> None:
        self._subscribers: Set[asyncio.Queue] = set()
        self._history: Deque[ProgressEvent] = deque(maxlen=history)

    def subscribe(self, maxsize: int = 256) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: ProgressEvent) -> None:
        self._history.append(event)
        logger.debug(f"[{event.operation_id}] {event.kind}:{event.key} {event.state}: {event.message}")
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # slow consumer
                logger.warning(f"Dropping progress event for slow subscriber ({event.operation_id})")

    def recent(self, limit: Optional[int] = None) -> List[ProgressEvent]:
        events = list(self._history)
        if limit is not None:
            events = events[-limit:]
        return events

    def emitter(self, operation_id: str, operation: str, kind: str, key: str) -> ProgressEmitter:
        return ProgressEmitter(self, operation_id, operation, kind, key)
