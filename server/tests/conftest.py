import copy
from typing import Any, Optional

import httpx
import pytest

from storefront.events import EventBus
from storefront.services.cache import TimedCache
from storefront.services.catalog import CatalogStore
from storefront.services.fetcher import RemoteFetcher

BASE_URL = "http://catalog.test"

CATEGORIES = [
    {"id": 1, "name": "Electronics", "slug": "electronics", "parentId": None, "sortOrder": 2, "isActive": True},
    {"id": 2, "name": "Audio", "slug": "audio", "parent_id": 1, "sort_order": 3},
    {"id": 3, "name": "Clothing", "slug": "clothing", "description": "Fashion and apparel", "sort_order": 1},
    {"id": 4, "name": "Archive", "slug": "archive", "is_active": False, "sort_order": 4},
]

PRODUCTS = [
    {
        "id": 10,
        "name": "Headphones",
        "price": "199.99",
        "category_id": 2,
        "trending": True,
        "product_images": [
            {"image_type": "primary", "image_url": "/uploads/h.jpg"},
            {"image_type": "gallery", "image_url": "uploads/h2.jpg"},
        ],
    },
    {
        "id": 11,
        "name": "T-Shirt",
        "price": 29.99,
        "category_id": 3,
        "image_url": "images/tshirt.jpg",
        "newArrival": True,
    },
    {"id": 12, "name": "Mystery Box", "price": 5, "category_id": 99},
]

COLLECTIONS = [
    {"id": 1, "name": "Summer 2025", "slug": "summer-2025", "description": "Summer essentials"},
    {"id": 2, "name": "Best Sellers", "slug": "bestsellers"},
]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCatalogAPI:
    """In-memory stand-in for the upstream catalog API."""

    def __init__(self) -> None:
        self.categories = copy.deepcopy(CATEGORIES)
        self.products = copy.deepcopy(PRODUCTS)
        self.collections = copy.deepcopy(COLLECTIONS)
        self.requests: list[httpx.Request] = []
        self.fail_status: Optional[int] = None
        self.network_down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status:
            return httpx.Response(self.fail_status, json={"error": "Database unavailable"})

        path = request.url.path
        params = request.url.params
        if path == "/api/categories":
            return httpx.Response(200, json={"success": True, "data": self.categories})
        if path == "/api/collections":
            return httpx.Response(200, json=self.collections)
        if path == "/api/products":
            products = self.products
            if params.get("trending") == "true":
                products = [p for p in products if p.get("trending")]
            if params.get("search"):
                term = params["search"].lower()
                products = [p for p in products if term in p["name"].lower()]
            if params.get("limit"):
                products = products[: int(params["limit"])]
            return httpx.Response(200, json={"success": True, "data": products})
        if path.startswith("/api/products/"):
            product_id = path.rsplit("/", 1)[-1]
            for product in self.products:
                if str(product["id"]) == product_id:
                    return httpx.Response(200, json={"success": True, "data": product})
            return httpx.Response(404, json={"error": "Product not found"})
        return httpx.Response(404, json={"error": "Not found"})

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    def fetcher(self, **kwargs: Any) -> RemoteFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return RemoteFetcher(BASE_URL, client=client, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> FakeCatalogAPI:
    return FakeCatalogAPI()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def cache(clock: FakeClock) -> TimedCache:
    return TimedCache(ttl=300.0, clock=clock)


@pytest.fixture
def store(api: FakeCatalogAPI, cache: TimedCache, events: EventBus) -> CatalogStore:
    return CatalogStore(api.fetcher(), cache, events)
