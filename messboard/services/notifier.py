# FILE: messboard/services/notifier.py
"""
Lifecycle notification channel

publish() is fire-and-forget: it never blocks and never raises into the
caller. Each subscriber owns a bounded queue; a full queue drops the event
for that subscriber only (at-most-once delivery).
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

EVENT_CREATED = "created"
EVENT_DELETED = "deleted"
EVENT_SWEPT = "swept"


def make_envelope(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wire form sent to observers"""
    return {"event": event, "data": payload, "ts": int(time.time() * 1000)}


class NotificationChannel:
    """Broadcast sink for lifecycle events"""

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class Subscription:
    """One observer's event feed"""

    def __init__(self, hub: "BroadcastHub", maxsize: int):
        self._hub = hub
        self.queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def offer(self, envelope: Optional[Dict[str, Any]]) -> bool:
        try:
            self.queue.put_nowait(envelope)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Optional[Dict[str, Any]]:
        """Next envelope, or None once the hub closes"""
        if self.closed:
            return None
        envelope = await self.queue.get()
        if envelope is None:
            self.closed = True
        return envelope

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        envelope = await self.get()
        if envelope is None:
            raise StopAsyncIteration
        return envelope

    def close(self) -> None:
        self._hub.unsubscribe(self)


class BroadcastHub(NotificationChannel):
    """In-process fan-out to SSE and WebSocket observers"""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.queue_size)
        self._subscribers.add(sub)
        logger.debug(f"Subscriber added ({len(self._subscribers)} active)")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)
        logger.debug(f"Subscriber removed ({len(self._subscribers)} active)")

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        envelope = make_envelope(event, payload)
        self.published += 1
        for sub in list(self._subscribers):
            if not sub.offer(envelope):
                logger.warning(f"Dropped '{event}' event for a slow subscriber")

    def close(self) -> None:
        """Wake every subscriber with the end-of-stream sentinel"""
        for sub in list(self._subscribers):
            # Make room so the sentinel always lands
            while not sub.offer(None):
                sub.queue.get_nowait()
        self._subscribers.clear()
