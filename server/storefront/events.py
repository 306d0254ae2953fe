"""Local (same process) event bus."""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DATA_UPDATED = "data_updated"

Handler = Callable[..., Any]


class EventBus:
    """Synchronous named-event dispatch.

    A failing handler is logged; the remaining handlers still run.
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event_name: str, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a function that removes it."""
        self._handlers[event_name].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[event_name].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event_name: str, **data: Any) -> int:
        """Call every handler for event_name. Returns how many were called."""
        handlers = list(self._handlers.get(event_name, ()))
        for handler in handlers:
            try:
                handler(**data)
            except Exception:
                logger.exception("Handler for %s failed", event_name)
        return len(handlers)

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, ()))
