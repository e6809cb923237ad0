"""
Publish/subscribe channel for scheduler lifecycle events.

    unsubscribe = bus.on(lambda event: print(event.type))
    ...
    unsubscribe()

Handlers are called synchronously in registration order. A handler that
raises is logged and skipped; the others still receive the event.
"""
import logging
from typing import Callable, List

from lienscout.core.data_types import SchedulerEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SchedulerEvent], None]


class EventBus:

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def on(self, handler: EventHandler) -> Callable[[], None]:
        """Subscribe. Returns a callable that removes this subscription."""
        self._handlers.append(handler)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if subscribed:
                subscribed = False
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, event: SchedulerEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler failed on {event.type.value}: {e}", exc_info=True)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)
