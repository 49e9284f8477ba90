"""Publish/subscribe bus backing each plugin's private event channel."""

from collections.abc import Callable
from typing import Any

from mdnotes.logger import get_logger
from mdnotes.plugins.disposable import Disposable

logger = get_logger(__name__)

EventHandler = Callable[[Any], None]


class EventBus:
    """
    Maps event names to subscribed handlers.

    The bus itself knows nothing about plugins; the events capability
    prefixes every name with the owning plugin id before it reaches here.

    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event: str, handler: EventHandler) -> Disposable:
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._handlers[event]

        return Disposable(unsubscribe)

    def emit(self, event: str, data: Any = None) -> int:
        """Call every handler for `event` in subscription order and return how many ran."""
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                handler(data)
            except Exception:
                logger.exception(f"Handler for event {event} failed")
        return len(handlers)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))
