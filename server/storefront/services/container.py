"""Wire the catalog services together from settings."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..config import Settings
from ..events import EventBus
from .broadcast import ChangeBroadcaster
from .cache import TimedCache
from .catalog import CatalogStore
from .channels import FileChannel, LocalChannel
from .fetcher import RemoteFetcher
from .refresh import UIRefreshBinder
from .storage import FileStorage

logger = logging.getLogger(__name__)


@dataclass
class CatalogServices:
    """One context's worth of catalog services."""
    settings: Settings
    events: EventBus
    cache: TimedCache
    fetcher: RemoteFetcher
    store: CatalogStore
    channel: Union[LocalChannel, FileChannel]
    broadcaster: ChangeBroadcaster
    refresher: UIRefreshBinder

    async def start(self) -> None:
        """Subscribe to the change channel; start polling if file backed."""
        self.broadcaster.start()
        if isinstance(self.channel, FileChannel):
            self.channel.start()
        logger.info(
            "Catalog services started (upstream=%s, channel=%s, ttl=%ss)",
            self.fetcher.base_url,
            type(self.channel).__name__,
            self.cache.ttl,
        )

    async def stop(self) -> None:
        self.broadcaster.stop()
        if isinstance(self.channel, FileChannel):
            await self.channel.stop()
        await self.refresher.aclose()
        self.store.close()
        await self.fetcher.aclose()


def build_services(
    settings: Settings,
    fetcher: Optional[RemoteFetcher] = None,
    channel: Optional[Union[LocalChannel, FileChannel]] = None,
) -> CatalogServices:
    """Build services for settings; fetcher and channel may be injected."""
    events = EventBus()

    storage = FileStorage(settings.cache_path) if settings.cache_path else None
    cache = TimedCache(ttl=settings.cache_ttl, storage=storage)

    if fetcher is None:
        token = settings.api_token
        fetcher = RemoteFetcher(
            settings.api_base_url,
            token_provider=(lambda: token) if token else None,
            timeout=settings.request_timeout,
        )

    if channel is None:
        if settings.change_channel_path:
            channel = FileChannel(
                settings.change_channel_path,
                poll_interval=settings.channel_poll_interval,
            )
        else:
            channel = LocalChannel()

    store = CatalogStore(fetcher, cache, events)
    return CatalogServices(
        settings=settings,
        events=events,
        cache=cache,
        fetcher=fetcher,
        store=store,
        channel=channel,
        broadcaster=ChangeBroadcaster(cache, channel, events),
        refresher=UIRefreshBinder(events, delay=settings.refresh_delay),
    )
