"""Pub/sub transports for change notifications.

Each channel keeps only the most recent message, the same way the storefront
pages shared a single ``localStorage`` key between tabs.
"""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict[str, Any]], None]


class _SubscriberSet:
    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _deliver(self, raw: str) -> None:
        for callback in list(self._subscribers):
            try:
                # Every subscriber gets its own copy
                callback(json.loads(raw))
            except Exception:
                logger.exception("Channel subscriber failed")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class LocalChannel(_SubscriberSet):
    """In-process channel; delivery is synchronous with publish."""

    def __init__(self):
        super().__init__()
        self._last: Optional[str] = None

    def publish(self, message: dict[str, Any]) -> None:
        raw = json.dumps(message)
        self._last = raw
        self._deliver(raw)

    def last(self) -> Optional[dict[str, Any]]:
        return json.loads(self._last) if self._last else None


class FileChannel(_SubscriberSet):
    """Channel backed by one well-known JSON file.

    Every process pointing at the same path sees every publish. Local
    subscribers are called immediately on publish; other processes pick the
    change up on their next poll.
    """

    def __init__(self, path: Path, poll_interval: float = 0.5):
        super().__init__()
        self.path = Path(path)
        self.poll_interval = poll_interval
        self._seen: Optional[str] = self._fingerprint(self._read())
        self._task: Optional[asyncio.Task] = None

    @staticmethod
    def _fingerprint(raw: Optional[str]) -> Optional[str]:
        if raw is None:
            return None
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()

    def _read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read change channel %s: %s", self.path, e)
            return None

    def publish(self, message: dict[str, Any]) -> None:
        raw = json.dumps(message)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._seen = self._fingerprint(raw)
        self._deliver(raw)

    def last(self) -> Optional[dict[str, Any]]:
        raw = self._read()
        if raw is None:
            return None
        try:
            message = json.loads(raw)
        except ValueError:
            return None
        return message if isinstance(message, dict) else None

    def check(self) -> bool:
        """Deliver the file's message if it changed since last seen."""
        raw = self._read()
        fingerprint = self._fingerprint(raw)
        if raw is None or fingerprint == self._seen:
            return False
        self._seen = fingerprint

        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring corrupted change channel contents in %s", self.path)
            return False
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object change message in %s", self.path)
            return False

        self._deliver(raw)
        return True

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self.check()

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._poll())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
