"""Catalog entity and change notification models."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


PLACEHOLDER_IMAGE = "/images/placeholder.jpg"
UNCATEGORIZED = "Uncategorized"


class EntityType(str, Enum):
    """Granularity at which caching and invalidation are keyed."""
    CATEGORY = "category"
    PRODUCT = "product"
    COLLECTION = "collection"


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def _id_to_str(value: Any) -> Optional[str]:
    """API ids arrive as ints or strings; keep them as strings."""
    if value is None or value == "":
        return None
    return str(value)


def _none_to_false(value: Any) -> Any:
    """Nullable flag columns come back as null; treat that as unset."""
    return False if value is None else value


class CatalogModel(BaseModel):
    """Base for entities decoded from the upstream API."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _id_to_str(value) if value is not None else value


class Category(CatalogModel):
    """A catalog category. parent_id links categories into a forest."""
    name: str = ""
    slug: str = ""
    description: Optional[str] = None
    parent_id: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0
    image_url: Optional[str] = None
    product_count: int = 0

    @field_validator("parent_id", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> Optional[str]:
        return _id_to_str(value)

    _flags = field_validator("is_active", mode="before")(_none_to_false)

    @field_validator("sort_order", "product_count", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class Collection(CatalogModel):
    """A merchandising collection."""
    name: str = ""
    slug: str = ""
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True

    _flags = field_validator("is_active", mode="before")(_none_to_false)


class ProductImages(BaseModel):
    """Canonical product image set."""
    primary: str = PLACEHOLDER_IMAGE
    gallery: list[str] = Field(default_factory=list)


class Product(CatalogModel):
    """A catalog product with normalized images."""
    name: str = ""
    slug: Optional[str] = None
    price: float = 0.0
    description: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    stock: int = 0
    trending: bool = False
    best_seller: bool = False
    new_arrival: bool = False
    images: ProductImages = Field(default_factory=ProductImages)

    _flags = field_validator("trending", "best_seller", "new_arrival", mode="before")(_none_to_false)

    @field_validator("category_id", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Optional[str]:
        return _id_to_str(value)

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Any:
        # Postgres numeric columns come back as strings
        if value is None or value == "":
            return 0.0
        return value

    @field_validator("stock", mode="before")
    @classmethod
    def _none_stock(cls, value: Any) -> Any:
        return 0 if value is None else value


class ChangeNotification(BaseModel):
    """A single change published by an admin mutation."""
    entity_type: EntityType
    action: ChangeAction
    payload: Any = None
    timestamp: float = Field(default_factory=time.time)


ENTITY_MODELS: dict[EntityType, type[CatalogModel]] = {
    EntityType.CATEGORY: Category,
    EntityType.PRODUCT: Product,
    EntityType.COLLECTION: Collection,
}
