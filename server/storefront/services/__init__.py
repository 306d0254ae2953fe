"""Services for the storefront catalog."""

from .cache import TimedCache
from .fetcher import RemoteFetcher
from .catalog import CatalogStore
from .broadcast import ChangeBroadcaster
from .channels import LocalChannel, FileChannel
from .refresh import UIRefreshBinder
from .container import CatalogServices, build_services

__all__ = [
    "TimedCache",
    "RemoteFetcher",
    "CatalogStore",
    "ChangeBroadcaster",
    "LocalChannel",
    "FileChannel",
    "UIRefreshBinder",
    "CatalogServices",
    "build_services",
]
