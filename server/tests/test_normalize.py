import pytest

from storefront.errors import InvalidPayload
from storefront.models import PLACEHOLDER_IMAGE, Category, EntityType, Product
from storefront.services.normalize import (
    decode_entity,
    decode_list,
    normalize_image_url,
    normalize_product_images,
    unwrap_list,
    unwrap_object,
)


def test_tagged_rows_prefer_primary_and_fix_leading_slash() -> None:
    images = normalize_product_images({
        "product_images": [
            {"image_type": "primary", "image_url": "/a.jpg"},
            {"image_type": "gallery", "image_url": "b.jpg"},
        ],
    })
    assert images.primary == "/a.jpg"
    assert images.gallery == ["/b.jpg"]


def test_three_image_shapes_normalize_identically() -> None:
    rows = {
        "product_images": [
            {"image_type": "gallery", "image_url": "b.jpg"},
            {"image_type": "primary", "image_url": "a.jpg"},
        ],
    }
    nested = {"images": {"primary": "a.jpg", "gallery": ["/b.jpg"]}}
    assert normalize_product_images(rows) == normalize_product_images(nested)

    flat = {"image_url": "/a.jpg"}
    single_row = {"product_images": [{"image_type": "primary", "image_url": "a.jpg"}]}
    assert normalize_product_images(flat) == normalize_product_images(single_row)


def test_nested_gallery_accepts_a_single_string_and_ignores_other_shapes() -> None:
    single = normalize_product_images({"images": {"primary": "a.jpg", "gallery": "b.jpg"}})
    assert single.gallery == ["/b.jpg"]

    odd = normalize_product_images({"images": {"primary": "a.jpg", "gallery": {"0": "b.jpg"}}})
    assert odd.primary == "/a.jpg"
    assert odd.gallery == []


def test_non_string_image_values_use_placeholder() -> None:
    assert normalize_product_images({"image_url": 7}).primary == PLACEHOLDER_IMAGE

    images = normalize_product_images({
        "images": {"primary": {"url": "a.jpg"}, "gallery": [3, "b.jpg"]},
    })
    assert images.primary == PLACEHOLDER_IMAGE
    assert images.gallery == ["/b.jpg"]


def test_rows_without_primary_fall_back_to_flat_then_placeholder() -> None:
    rows = [{"image_type": "gallery", "image_url": "g.jpg"}]

    with_flat = normalize_product_images({"product_images": rows, "image_url": "flat.jpg"})
    assert with_flat.primary == "/flat.jpg"
    assert with_flat.gallery == ["/g.jpg"]

    without_flat = normalize_product_images({"product_images": rows})
    assert without_flat.primary == PLACEHOLDER_IMAGE


def test_missing_images_use_placeholder() -> None:
    images = normalize_product_images({"name": "No picture"})
    assert images.primary == PLACEHOLDER_IMAGE
    assert images.gallery == []


@pytest.mark.parametrize(
    "url, expected",
    [
        ("images/p.jpg", "/images/p.jpg"),
        ("//uploads//p.jpg", "/uploads/p.jpg"),
        ("https://cdn.example.com/p.jpg", "https://cdn.example.com/p.jpg"),
        ("data:image/png;base64,AAAA", "data:image/png;base64,AAAA"),
        ("data:image/png;base64," + "A" * 600, PLACEHOLDER_IMAGE),
        ("null", PLACEHOLDER_IMAGE),
        (None, PLACEHOLDER_IMAGE),
        ("  ", PLACEHOLDER_IMAGE),
        (42, PLACEHOLDER_IMAGE),
    ],
)
def test_normalize_image_url(url, expected) -> None:
    assert normalize_image_url(url) == expected


def test_category_ids_become_strings_and_aliases_apply() -> None:
    category = decode_entity(
        EntityType.CATEGORY,
        {"id": 2, "name": "Audio", "parentId": 1, "sortOrder": 3, "isActive": False, "productCount": None},
    )
    assert isinstance(category, Category)
    assert category.id == "2"
    assert category.parent_id == "1"
    assert category.sort_order == 3
    assert category.is_active is False
    assert category.product_count == 0


def test_canonical_field_wins_over_alias() -> None:
    category = decode_entity(EntityType.CATEGORY, {"id": "5", "parent_id": "1", "parentId": "9"})
    assert category.parent_id == "1"


def test_product_decoding() -> None:
    product = decode_entity(
        EntityType.PRODUCT,
        {
            "id": 10,
            "name": "Headphones",
            "price": "199.99",
            "category": {"id": 2, "name": "Audio"},
            "bestseller": True,
            "stock_quantity": None,
            "image": "p.jpg",
        },
    )
    assert isinstance(product, Product)
    assert product.id == "10"
    assert product.price == pytest.approx(199.99)
    assert product.category_id == "2"
    assert product.category_name == "Audio"
    assert product.best_seller is True
    assert product.stock == 0
    assert product.images.primary == "/p.jpg"


def test_record_without_id_is_invalid() -> None:
    with pytest.raises(InvalidPayload):
        decode_entity(EntityType.COLLECTION, {"name": "Nameless"})


def test_unwrap_accepts_envelopes_and_bare_values() -> None:
    assert unwrap_list([1, 2]) == [1, 2]
    assert unwrap_list({"success": True, "data": [1]}) == [1]
    assert unwrap_object({"success": True, "data": {"id": 1}}) == {"id": 1}
    assert unwrap_object({"id": 1, "name": "x"}) == {"id": 1, "name": "x"}


@pytest.mark.parametrize("body", [{"success": True, "data": {"id": 1}}, {"rows": []}, "nope", None])
def test_unwrap_list_rejects_non_lists(body) -> None:
    with pytest.raises(InvalidPayload):
        unwrap_list(body)


def test_unwrap_reports_upstream_failure() -> None:
    with pytest.raises(InvalidPayload, match="boom"):
        unwrap_list({"success": False, "error": "boom"})


def test_decode_list_skips_bad_records() -> None:
    categories = decode_list(
        EntityType.CATEGORY,
        [{"id": 1, "name": "Kept"}, "not a record", {"name": "No id"}, {"id": 2, "sort_order": "first"}],
    )
    assert [c.id for c in categories] == ["1"]


def test_null_flags_decode_as_false() -> None:
    product = decode_entity(
        EntityType.PRODUCT,
        {"id": 13, "name": "Legacy row", "trending": None, "bestseller": None, "new_arrival": None},
    )
    assert (product.trending, product.best_seller, product.new_arrival) == (False, False, False)

    category = decode_entity(EntityType.CATEGORY, {"id": 5, "is_active": None})
    assert category.is_active is False
