"""Catalog store: cached, normalized categories, products and collections."""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..errors import FetchError, InvalidPayload
from ..events import DATA_UPDATED, EventBus
from ..models import (
    ENTITY_MODELS,
    UNCATEGORIZED,
    CatalogModel,
    Category,
    Collection,
    EntityType,
    Product,
)
from .cache import TimedCache
from .fetcher import RemoteFetcher
from .normalize import decode_entity, decode_list, unwrap_object

logger = logging.getLogger(__name__)

ENDPOINTS = {
    EntityType.CATEGORY: "/api/categories",
    EntityType.PRODUCT: "/api/products",
    EntityType.COLLECTION: "/api/collections",
}

# Query parameters understood by GET /api/products
PRODUCT_FILTERS = ("category", "trending", "best_seller", "new_arrival", "search", "limit", "offset")

NAVIGATION_LIMIT = 6


def query_params(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    """Turn filter options into query parameters, dropping defaults."""
    params = {}
    for name, value in (filters or {}).items():
        if value is None or value is False or value == "" or value == 0:
            continue
        if value is True:
            params[name] = "true"
        else:
            params[name] = str(value).strip() if isinstance(value, str) else str(value)
    return {k: v for k, v in params.items() if v}


class CatalogStore:
    """Read side of the catalog with a TTL cache in front of the API.

    Unfiltered list loads are cached per entity type. Filtered and searched
    loads always go to the API and are never cached. Every successful load
    feeds an id index used by ``get_by_id``. Failures are logged and turned
    into empty results; nothing here raises to the caller.
    """

    def __init__(
        self,
        fetcher: RemoteFetcher,
        cache: TimedCache,
        events: Optional[EventBus] = None,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self._index: dict[EntityType, dict[str, tuple[CatalogModel, float]]] = {
            entity_type: {} for entity_type in EntityType
        }
        self.hierarchy: dict[str, list[str]] = {}
        self._unsubscribe = events.on(DATA_UPDATED, self._on_data_updated) if events else None

    # -- cache plumbing -------------------------------------------------

    def _cached(self, entity_type: EntityType) -> Optional[list[CatalogModel]]:
        entry = self.cache.entry(entity_type.value)
        if entry is None:
            return None
        records = entry.payload

        model = ENTITY_MODELS[entity_type]
        try:
            if not isinstance(records, list):
                raise InvalidPayload(f"cached {entity_type.value} is not a list")
            items = [model.model_validate(record) for record in records]
        except (ValidationError, InvalidPayload) as e:
            logger.warning("Discarding unreadable %s cache: %s", entity_type.value, e)
            self.cache.clear(entity_type.value)
            return None

        self._replace_index(entity_type, items, entry.written_at)
        return items

    def _store(self, entity_type: EntityType, items: list[CatalogModel]) -> None:
        records = [item.model_dump(mode="json") for item in items]
        self.cache.set(entity_type.value, records)
        self._replace_index(entity_type, items)

    def _replace_index(
        self,
        entity_type: EntityType,
        items: list[CatalogModel],
        written_at: Optional[float] = None,
    ) -> None:
        if written_at is None:
            written_at = self.cache.now()
        self._index[entity_type] = {item.id: (item, written_at) for item in items}
        if entity_type == EntityType.CATEGORY:
            self.build_hierarchy()

    def _merge_index(self, entity_type: EntityType, items: list[CatalogModel]) -> None:
        now = self.cache.now()
        index = dict(self._index[entity_type])
        index.update({item.id: (item, now) for item in items})
        self._index[entity_type] = index
        if entity_type == EntityType.CATEGORY:
            self.build_hierarchy()

    def _indexed(self, entity_type: EntityType, entity_id: str) -> Optional[CatalogModel]:
        hit = self._index[entity_type].get(entity_id)
        if hit is None:
            return None
        item, fetched_at = hit
        return item if self.cache.is_fresh(fetched_at) else None

    def _drop_index(self, entity_type: EntityType) -> None:
        self._index[entity_type] = {}
        if entity_type == EntityType.CATEGORY:
            self.hierarchy = {}

    def _on_data_updated(self, entity_type: EntityType, **_: Any) -> None:
        self._drop_index(EntityType(entity_type))

    # -- loading --------------------------------------------------------

    async def load_all(
        self,
        entity_type: EntityType | str,
        filters: Optional[dict[str, Any]] = None,
        force: bool = False,
    ) -> list[CatalogModel]:
        """Load every entity of a type, optionally filtered.

        The cache is only consulted, and only written, for unfiltered loads.
        """
        entity_type = EntityType(entity_type)
        params = query_params(filters)

        if not params and not force:
            cached = self._cached(entity_type)
            if cached is not None:
                logger.debug("Serving %s from cache", entity_type.value)
                return cached

        try:
            body = await self.fetcher.get(ENDPOINTS[entity_type], params=params or None)
            items = decode_list(entity_type, body)
        except (FetchError, InvalidPayload) as e:
            logger.error("Failed to load %s: %s", entity_type.value, e)
            return []

        if params:
            self._merge_index(entity_type, items)
        else:
            self._store(entity_type, items)
        logger.info(
            "Loaded %d %s from API%s",
            len(items),
            entity_type.value,
            f" ({params})" if params else "",
        )
        return items

    async def get_by_id(self, entity_type: EntityType | str, entity_id: Any) -> Optional[CatalogModel]:
        """Look an entity up by id, fetching it when not indexed."""
        entity_type = EntityType(entity_type)
        entity_id = str(entity_id)

        item = self._indexed(entity_type, entity_id)
        if item is not None:
            return item

        if entity_type != EntityType.PRODUCT:
            # No per-id endpoint for these; the full list is small
            await self.load_all(entity_type)
            return self._indexed(entity_type, entity_id)

        try:
            body = await self.fetcher.get(f"{ENDPOINTS[entity_type]}/{entity_id}")
            item = decode_entity(entity_type, unwrap_object(body))
        except FetchError as e:
            if e.status == 404:
                logger.info("%s %s not found", entity_type.value, entity_id)
            else:
                logger.error("Failed to load %s %s: %s", entity_type.value, entity_id, e)
            return None
        except InvalidPayload as e:
            logger.error("Failed to decode %s %s: %s", entity_type.value, entity_id, e)
            return None

        self._merge_index(entity_type, [item])
        return item

    def invalidate(self, entity_type: EntityType | str) -> None:
        """Forget the cached list and indexed entities of one type."""
        entity_type = EntityType(entity_type)
        self.cache.clear(entity_type.value)
        self._drop_index(entity_type)

    def clear(self) -> None:
        """Reset the cache and every index."""
        self.cache.clear_all([entity_type.value for entity_type in EntityType])
        for entity_type in EntityType:
            self._drop_index(entity_type)

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    # -- products -------------------------------------------------------

    async def load_products(self, force: bool = False, **filters: Any) -> list[Product]:
        unknown = set(filters) - set(PRODUCT_FILTERS)
        if unknown:
            raise TypeError(f"unknown product filters: {', '.join(sorted(unknown))}")
        return await self.load_all(EntityType.PRODUCT, filters, force=force)

    async def get_product(self, product_id: Any) -> Optional[Product]:
        return await self.get_by_id(EntityType.PRODUCT, product_id)

    async def get_trending_products(self, limit: int = 4) -> list[Product]:
        return await self.load_products(trending=True, limit=limit)

    async def get_best_sellers(self, limit: int = 4) -> list[Product]:
        return await self.load_products(best_seller=True, limit=limit)

    async def get_new_arrivals(self, limit: int = 4) -> list[Product]:
        return await self.load_products(new_arrival=True, limit=limit)

    async def search_products(self, query: str, **filters: Any) -> list[Product]:
        return await self.load_products(search=query, **filters)

    async def category_name_for(self, product: Product) -> str:
        """Display name of a product's category; dangling ids are tolerated."""
        if product.category_id:
            category = await self.get_by_id(EntityType.CATEGORY, product.category_id)
            if category is not None:
                return category.name
            # Some backends send the slug instead of the id
            category = await self.get_category_by_slug(product.category_id)
            if category is not None:
                return category.name
        return product.category_name or UNCATEGORIZED

    # -- collections ----------------------------------------------------

    async def load_collections(self, force: bool = False) -> list[Collection]:
        return await self.load_all(EntityType.COLLECTION, force=force)

    async def get_collection_by_slug(self, slug: str) -> Optional[Collection]:
        for collection in await self.load_collections():
            if collection.slug == slug:
                return collection
        return None

    # -- categories -----------------------------------------------------

    async def load_categories(self, force: bool = False) -> list[Category]:
        return await self.load_all(EntityType.CATEGORY, force=force)

    def build_hierarchy(self) -> dict[str, list[str]]:
        """Recompute the parent_id -> [child ids] map from the category index."""
        hierarchy: dict[str, list[str]] = {}
        for category, _ in self._index[EntityType.CATEGORY].values():
            if category.parent_id:
                hierarchy.setdefault(category.parent_id, []).append(category.id)
        self.hierarchy = hierarchy
        return hierarchy

    def _category(self, category_id: str) -> Optional[Category]:
        hit = self._index[EntityType.CATEGORY].get(category_id)
        return hit[0] if hit else None

    @staticmethod
    def _sorted(categories: list[Category]) -> list[Category]:
        return sorted(categories, key=lambda c: c.sort_order)

    async def get_all_categories(self) -> list[Category]:
        return self._sorted(await self.load_categories())

    async def get_active_categories(self) -> list[Category]:
        return [c for c in await self.get_all_categories() if c.is_active]

    async def get_category_by_slug(self, slug: str) -> Optional[Category]:
        for category in await self.load_categories():
            if category.slug == slug:
                return category
        return None

    async def get_root_categories(self) -> list[Category]:
        """Categories without a parent, or whose parent no longer exists."""
        categories = await self.get_all_categories()
        ids = {c.id for c in categories}
        return [c for c in categories if not c.parent_id or c.parent_id not in ids]

    async def get_child_categories(self, parent_id: Any) -> list[Category]:
        await self.load_categories()
        children = [self._category(cid) for cid in self.hierarchy.get(str(parent_id), [])]
        return self._sorted([c for c in children if c is not None])

    def find_cycles(self) -> list[list[str]]:
        """Return groups of category ids whose parent links form a loop."""
        parents = {
            category.id: category.parent_id
            for category, _ in self._index[EntityType.CATEGORY].values()
        }
        cycles = []
        finished: set[str] = set()
        for start in parents:
            path: list[str] = []
            on_path: set[str] = set()
            node = start
            while node in parents and node not in finished and node not in on_path:
                path.append(node)
                on_path.add(node)
                node = parents[node]
            if node in on_path:
                cycles.append(path[path.index(node):])
            finished.update(path)
        return cycles

    async def get_category_tree(self) -> list[dict[str, Any]]:
        """Nested category dicts, each with a ``children`` list.

        Categories caught in a parent loop are unreachable from any root.
        Each loop is broken by promoting its first member (by sort order)
        to a root; the stored data is left as is.
        """
        roots = await self.get_root_categories()
        for cycle in self.find_cycles():
            members = self._sorted([c for c in map(self._category, cycle) if c is not None])
            logger.warning("Category parent cycle detected: %s", " -> ".join(cycle))
            if members:
                roots.append(members[0])

        visited: set[str] = set()

        def build_node(category: Category) -> dict[str, Any]:
            visited.add(category.id)
            node = category.model_dump()
            children = [
                child
                for child in map(self._category, self.hierarchy.get(category.id, []))
                if child is not None and child.id not in visited
            ]
            node["children"] = [build_node(child) for child in self._sorted(children)]
            return node

        return [build_node(root) for root in roots if root.id not in visited]

    async def get_navigation_categories(self, limit: int = NAVIGATION_LIMIT) -> list[dict[str, Any]]:
        """Active root categories with their active children, for menus."""
        roots = [c for c in await self.get_root_categories() if c.is_active][:limit]
        nav = []
        for category in roots:
            children = await self.get_child_categories(category.id)
            nav.append({
                "id": category.id,
                "name": category.name,
                "slug": category.slug,
                "url": f"/category.html?id={category.id}",
                "children": [
                    {
                        "id": child.id,
                        "name": child.name,
                        "slug": child.slug,
                        "url": f"/category.html?id={child.id}",
                    }
                    for child in children
                    if child.is_active
                ],
            })
        return nav

    async def search_categories(self, query: Optional[str]) -> list[Category]:
        """Case-insensitive match on name, description or slug."""
        categories = await self.get_all_categories()
        if not query or not query.strip():
            return categories

        term = query.strip().lower()
        return [
            c for c in categories
            if term in c.name.lower()
            or (c.description and term in c.description.lower())
            or term in c.slug.lower()
        ]
