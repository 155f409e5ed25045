"""
Per-view event fan-out for SSE subscribers.

Every snapshot supersedes the previous one, so a subscriber that falls
behind loses its oldest queued events instead of growing without bound.
"""

import asyncio
import json
from typing import Any

from lexchat.core.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_QUEUE_SIZE = 256


class RealtimeManager:
    """Fans out view events (snapshots, notices, client effects) to SSE subscribers."""

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._max_queue_size = max_queue_size
        self._connections: dict[str, set[asyncio.Queue[str]]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, view_id: str) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._max_queue_size)
        async with self._lock:
            self._connections.setdefault(view_id, set()).add(queue)
        return queue

    async def disconnect(self, view_id: str, queue: asyncio.Queue[str]) -> None:
        async with self._lock:
            queues = self._connections.get(view_id)
            if not queues:
                return
            queues.discard(queue)
            if not queues:
                self._connections.pop(view_id, None)

    async def publish(self, view_id: str, payload: dict[str, Any]) -> None:
        message = self._encode(payload)
        async with self._lock:
            queues = list(self._connections.get(view_id, set()))
        self._deliver(view_id, queues, message)

    def publish_nowait(self, view_id: str, payload: dict[str, Any]) -> None:
        """Publish from synchronous state listeners."""
        if view_id not in self._connections:
            return
        self._deliver(view_id, list(self._connections.get(view_id, set())), self._encode(payload))

    def subscriber_count(self, view_id: str) -> int:
        return len(self._connections.get(view_id, ()))

    @staticmethod
    def _deliver(view_id: str, queues: list[asyncio.Queue[str]], message: str) -> None:
        for queue in queues:
            if queue.full():
                queue.get_nowait()
                logger.debug(f"Subscriber of view {view_id} is lagging; dropped oldest event")
            queue.put_nowait(message)

    @staticmethod
    def _encode(payload: dict[str, Any]) -> str:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


realtime_manager = RealtimeManager()
