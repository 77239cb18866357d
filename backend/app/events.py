"""In-process async event bus.

Handlers are awaited in subscription order. A failing handler is logged and
never propagates into the publisher.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}

    def subscribe(self, name: str, handler: EventHandler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        if handler in self._subscribers.get(name, []):
            self._subscribers[name].remove(handler)

    def handlers(self, name: str) -> list[EventHandler]:
        return list(self._subscribers.get(name, []))

    async def publish(self, name: str, payload: Any) -> int:
        """Deliver ``payload`` to every handler of ``name``.

        Returns:
            Number of handlers that completed without raising
        """
        delivered = 0
        for handler in self.handlers(name):
            try:
                await handler(payload)
                delivered += 1
            except Exception:
                handler_name = getattr(handler, "__qualname__", repr(handler))
                logger.exception(f"Handler {handler_name} failed for {name}")
        return delivered


event_bus = EventBus()
