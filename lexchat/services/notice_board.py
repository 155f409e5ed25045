"""
Transient notices shown next to a conversation.

Side effects post short-lived warnings ("upload succeeded", "generating
document...") that expire on their own after a fixed TTL.
"""

import asyncio
from typing import Callable, Optional

from lexchat.models.chat import Notice

NoticeListener = Callable[[list[str]], None]


class NoticeBoard:
    """Ordered list of active notices with per-notice expiry."""

    def __init__(self, ttl_seconds: float = 15.0):
        self._ttl_seconds = ttl_seconds
        self._notices: list[Notice] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[NoticeListener] = []

    @property
    def messages(self) -> list[str]:
        return [notice.message for notice in self._notices]

    def subscribe(self, listener: NoticeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add(self, message: str) -> Notice:
        """Post a notice; it is removed after the TTL if an event loop is running."""
        notice = Notice(message=message)
        self._notices = self._notices + [notice]
        loop = self._running_loop()
        if loop is not None and self._ttl_seconds > 0:
            self._timers[notice.id] = loop.call_later(self._ttl_seconds, self.remove, notice.id)
        self._notify()
        return notice

    def remove(self, notice_id: str) -> bool:
        timer = self._timers.pop(notice_id, None)
        if timer is not None:
            timer.cancel()
        remaining = [notice for notice in self._notices if notice.id != notice_id]
        if len(remaining) == len(self._notices):
            return False
        self._notices = remaining
        self._notify()
        return True

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._notices:
            self._notices = []
            self._notify()

    def _notify(self) -> None:
        messages = self.messages
        for listener in list(self._listeners):
            listener(messages)

    @staticmethod
    def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None
