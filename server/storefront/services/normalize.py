"""Decode upstream catalog payloads into canonical models.

The catalog API is served by more than one backend (SQLite and Postgres
servers, serverless functions) and they disagree on field names and on how
product images are shaped. Everything is mapped here, once, so the rest of
the package only ever sees ``Category``, ``Product`` and ``Collection``.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError

from ..errors import InvalidPayload
from ..models import (
    ENTITY_MODELS,
    PLACEHOLDER_IMAGE,
    CatalogModel,
    EntityType,
    ProductImages,
)

logger = logging.getLogger(__name__)

# Inline base64 images above this size are replaced by the placeholder
MAX_DATA_URL_LENGTH = 500

_DUPLICATE_SLASHES = re.compile(r"/{2,}")

# Alternative spellings used by the various API backends
FIELD_ALIASES = {
    "parentId": "parent_id",
    "parent": "parent_id",
    "isActive": "is_active",
    "sortOrder": "sort_order",
    "productCount": "product_count",
    "imageUrl": "image_url",
    "image": "image_url",
    "categoryId": "category_id",
    "category": "category_id",
    "categoryName": "category_name",
    "bestseller": "best_seller",
    "bestSeller": "best_seller",
    "is_best_seller": "best_seller",
    "newArrival": "new_arrival",
    "is_new_arrival": "new_arrival",
    "is_trending": "trending",
    "stock_quantity": "stock",
}


def normalize_image_url(url: Any) -> str:
    """Clean an image reference; empty or non-string values become the placeholder."""
    if not isinstance(url, str) or url.strip() in ("", "null", "undefined"):
        return PLACEHOLDER_IMAGE

    url = url.strip()
    if url.startswith("data:"):
        if url.startswith("data:image/") and len(url) > MAX_DATA_URL_LENGTH:
            return PLACEHOLDER_IMAGE
        return url

    if url.startswith(("http://", "https://")):
        return url

    if not url.startswith("/"):
        url = "/" + url
    return _DUPLICATE_SLASHES.sub("/", url)


def normalize_product_images(raw: dict[str, Any]) -> ProductImages:
    """Reduce the three image shapes a product may carry to one.

    Handled shapes, in order of preference:

    * ``product_images``: rows tagged ``image_type`` primary/gallery
    * ``images``: an already normalized ``{primary, gallery}`` object
    * ``image_url`` / ``image``: a single flat string
    """
    flat = raw.get("image_url") or raw.get("imageUrl") or raw.get("image")

    rows = raw.get("product_images")
    if isinstance(rows, list):
        rows = [r for r in rows if isinstance(r, dict)]
        primary_row = next((r for r in rows if r.get("image_type") == "primary"), None)
        primary = primary_row.get("image_url") if primary_row else None
        gallery = [
            normalize_image_url(r.get("image_url"))
            for r in rows
            if r is not primary_row and r.get("image_url")
        ]
        return ProductImages(
            primary=normalize_image_url(primary or flat),
            gallery=[g for g in gallery if g != PLACEHOLDER_IMAGE],
        )

    images = raw.get("images")
    if isinstance(images, dict):
        gallery = images.get("gallery")
        if isinstance(gallery, str):
            gallery = [gallery]
        elif not isinstance(gallery, list):
            gallery = []
        return ProductImages(
            primary=normalize_image_url(images.get("primary") or flat),
            gallery=[
                g for g in (normalize_image_url(u) for u in gallery if u)
                if g != PLACEHOLDER_IMAGE
            ],
        )

    return ProductImages(primary=normalize_image_url(flat))


def _apply_aliases(raw: dict[str, Any]) -> dict[str, Any]:
    data = {}
    for key, value in raw.items():
        target = FIELD_ALIASES.get(key, key)
        # Canonical spelling wins when both are present
        if target in data and target != key:
            continue
        if target != key and target in raw:
            continue
        data[target] = value
    return data


def decode_entity(entity_type: EntityType, raw: Any) -> CatalogModel:
    """Decode one upstream record. Raises InvalidPayload on shape mismatch."""
    if not isinstance(raw, dict):
        raise InvalidPayload(f"{entity_type.value} record is not an object: {type(raw).__name__}")

    data = _apply_aliases(raw)
    if entity_type == EntityType.PRODUCT:
        if isinstance(data.get("category_id"), dict):
            category = data["category_id"]
            data["category_id"] = category.get("id")
            data.setdefault("category_name", category.get("name"))
        data["images"] = normalize_product_images(raw)

    try:
        return ENTITY_MODELS[entity_type].model_validate(data)
    except ValidationError as e:
        raise InvalidPayload(f"invalid {entity_type.value} record: {e}") from e


def unwrap_list(body: Any) -> list[Any]:
    """Accept a bare JSON array or a ``{success, data: [...]}`` envelope."""
    if isinstance(body, dict):
        if body.get("success") is False:
            raise InvalidPayload(body.get("error") or "upstream reported failure")
        body = body.get("data")
    if not isinstance(body, list):
        raise InvalidPayload(f"expected a list, got {type(body).__name__}")
    return body


def unwrap_object(body: Any) -> dict[str, Any]:
    """Accept a bare JSON object or a ``{success, data: {...}}`` envelope."""
    if isinstance(body, dict) and "data" in body and ("success" in body or len(body) == 1):
        if body.get("success") is False:
            raise InvalidPayload(body.get("error") or "upstream reported failure")
        body = body["data"]
    if not isinstance(body, dict):
        raise InvalidPayload(f"expected an object, got {type(body).__name__}")
    return body


def decode_list(entity_type: EntityType, body: Any) -> list[CatalogModel]:
    """Decode a list response. Records that fail to decode are logged and skipped."""
    items = []
    for raw in unwrap_list(body):
        try:
            items.append(decode_entity(entity_type, raw))
        except InvalidPayload as e:
            logger.warning("Skipping %s record: %s", entity_type.value, e)
    return items
