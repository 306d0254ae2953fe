"""Change notifications: local invalidation plus cross-context broadcast."""

import logging
from typing import Any, Callable, Optional, Protocol

from pydantic import ValidationError

from ..errors import InvalidPayload
from ..events import DATA_UPDATED, EventBus
from ..models import ChangeAction, ChangeNotification, EntityType
from .cache import TimedCache

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "cache_invalidation"


class Channel(Protocol):
    def publish(self, message: dict[str, Any]) -> None: ...
    def subscribe(self, callback: Callable[[dict[str, Any]], None]) -> Callable[[], None]: ...
    def last(self) -> Optional[dict[str, Any]]: ...


def affected_types(entity_type: EntityType) -> list[EntityType]:
    """Entity types whose cache a change to entity_type invalidates."""
    # Product changes alter category product counts
    if entity_type == EntityType.PRODUCT:
        return [EntityType.PRODUCT, EntityType.CATEGORY]
    return [entity_type]


def encode_notification(notification: ChangeNotification) -> dict[str, Any]:
    return {"type": MESSAGE_TYPE, **notification.model_dump(mode="json")}


def decode_notification(message: dict[str, Any]) -> ChangeNotification:
    if message.get("type", MESSAGE_TYPE) != MESSAGE_TYPE:
        raise InvalidPayload(f"unexpected message type {message.get('type')!r}")
    try:
        return ChangeNotification.model_validate(message)
    except ValidationError as e:
        raise InvalidPayload(f"invalid change notification: {e}") from e


class ChangeBroadcaster:
    """Publish admin changes and react to changes published elsewhere.

    Every context holding a cache owns one broadcaster subscribed to the
    shared channel. The publishing context receives its own message too;
    invalidation is idempotent so that is harmless.
    """

    def __init__(self, cache: TimedCache, channel: Channel, events: EventBus):
        self.cache = cache
        self.channel = channel
        self.events = events
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_message)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def listening(self) -> bool:
        return self._unsubscribe is not None

    def invalidate(self, entity_type: EntityType) -> None:
        for affected in affected_types(entity_type):
            self.cache.clear(affected.value)

    def notify(
        self,
        entity_type: EntityType | str,
        action: ChangeAction | str,
        payload: Any = None,
    ) -> ChangeNotification:
        """Invalidate locally, then publish the change to every context."""
        notification = ChangeNotification(
            entity_type=EntityType(entity_type),
            action=ChangeAction(action),
            payload=payload,
        )
        logger.info(
            "Change %s %s; broadcasting",
            notification.action.value,
            notification.entity_type.value,
        )
        self.invalidate(notification.entity_type)
        self.channel.publish(encode_notification(notification))
        return notification

    def _on_message(self, message: dict[str, Any]) -> None:
        try:
            notification = decode_notification(message)
        except InvalidPayload as e:
            logger.warning("Ignoring change message: %s", e)
            return

        logger.debug("Received change notification: %s", notification)
        self.invalidate(notification.entity_type)
        for affected in affected_types(notification.entity_type):
            self.events.emit(DATA_UPDATED, entity_type=affected, notification=notification)
