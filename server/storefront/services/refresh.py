"""Re-run view refresh callbacks after catalog data changes."""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Optional

from ..events import DATA_UPDATED, EventBus
from ..models import EntityType

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_DELAY = 0.5

RefreshCallback = Callable[[EntityType], Any]


class UIRefreshBinder:
    """Schedule registered callbacks after a ``data_updated`` event.

    Callbacks run ``delay`` seconds after the event so the invalidated cache
    is refilled by the next read rather than mid-update. Sync and async
    callbacks are both accepted.
    """

    def __init__(self, events: EventBus, delay: float = DEFAULT_REFRESH_DELAY):
        self.events = events
        self.delay = delay
        self._callbacks: dict[EntityType, list[RefreshCallback]] = defaultdict(list)
        self._pending: set[asyncio.Future] = set()
        self._unsubscribe: Optional[Callable[[], None]] = events.on(DATA_UPDATED, self._on_data_updated)

    def on_data_updated(
        self, entity_type: EntityType | str, callback: RefreshCallback
    ) -> Callable[[], None]:
        """Register callback for entity_type; returns a function that removes it."""
        key = EntityType(entity_type)
        self._callbacks[key].append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks[key]:
                self._callbacks[key].remove(callback)

        return unsubscribe

    def _on_data_updated(self, entity_type: EntityType, **_: Any) -> None:
        entity_type = EntityType(entity_type)
        callbacks = list(self._callbacks.get(entity_type, ()))
        if not callbacks:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for callback in callbacks:
            if loop is None:
                self._run_now(callback, entity_type)
            else:
                task = loop.create_task(self._run_later(callback, entity_type))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    def _run_now(self, callback: RefreshCallback, entity_type: EntityType) -> None:
        try:
            result = callback(entity_type)
            if inspect.isawaitable(result):
                asyncio.run(result)
        except Exception:
            logger.exception("Refresh callback for %s failed", entity_type.value)

    async def _run_later(self, callback: RefreshCallback, entity_type: EntityType) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = callback(entity_type)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Refresh callback for %s failed", entity_type.value)

    def pending(self) -> int:
        """Number of scheduled refreshes that have not finished."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel scheduled refreshes and stop listening."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
