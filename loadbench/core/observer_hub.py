"""
Observer Hub

Fan-out of run notifications to currently connected observers (WebSocket
clients). Each observer owns a bounded queue; broadcasting snapshots the
subscriber set under the lock and then delivers without blocking.

Delivery is best-effort: observers that connect later get nothing replayed,
and an observer whose queue is full misses the event.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from loadbench.config import settings

logger = logging.getLogger(__name__)


class ObserverHub:
    def __init__(self, queue_size: int | None = None) -> None:
        self._subscribers: set[asyncio.Queue] = set()
        self._lock = asyncio.Lock()
        self._queue_size = queue_size or settings.OBSERVER_QUEUE_SIZE

    async def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers.add(q)
        return q

    async def unsubscribe(self, q: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.discard(q)

    async def subscriber_count(self) -> int:
        async with self._lock:
            return len(self._subscribers)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """
        Deliver `payload` to every observer connected right now.

        Returns:
            Number of observers the payload was queued for.
        """
        async with self._lock:
            subscribers = list(self._subscribers)

        if not subscribers:
            logger.info("No connected observers for %s", payload.get("type"))
            return 0

        delivered = 0
        for q in subscribers:
            try:
                q.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Observer queue full; dropping %s", payload.get("type"))
        logger.info("📡 Broadcast %s to %d observer(s)", payload.get("type"), delivered)
        return delivered


hub = ObserverHub()
