"""Storefront catalog endpoints, served from the catalog cache."""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..services.container import CatalogServices
from .deps import get_services

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/categories")
async def get_categories(
    active: bool = Query(False, description="Only active categories"),
    search: Optional[str] = Query(None),
    services: CatalogServices = Depends(get_services),
):
    """All categories, sorted for display."""
    store = services.store
    if search:
        categories = await store.search_categories(search)
        if active:
            categories = [c for c in categories if c.is_active]
    elif active:
        categories = await store.get_active_categories()
    else:
        categories = await store.get_all_categories()
    return {"categories": categories, "total": len(categories)}


@router.get("/categories/tree")
async def get_category_tree(services: CatalogServices = Depends(get_services)):
    """Categories nested under their parents."""
    return {"tree": await services.store.get_category_tree()}


@router.get("/categories/navigation")
async def get_navigation(services: CatalogServices = Depends(get_services)):
    """Root categories and their children, for the main menu."""
    return {"items": await services.store.get_navigation_categories()}


@router.get("/categories/{slug}")
async def get_category(slug: str, services: CatalogServices = Depends(get_services)):
    """One category with its direct children."""
    store = services.store
    category = await store.get_category_by_slug(slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    return {
        "category": category,
        "children": await store.get_child_categories(category.id),
    }


@router.get("/products")
async def get_products(
    category: Optional[str] = Query(None),
    trending: bool = Query(False),
    best_seller: bool = Query(False),
    new_arrival: bool = Query(False),
    search: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: Optional[int] = Query(None, ge=0),
    refresh: Optional[str] = Query(None),
    services: CatalogServices = Depends(get_services),
):
    """Products; any filter bypasses the cache, as does refresh=1."""
    products = await services.store.load_products(
        force=refresh == "1",
        category=category,
        trending=trending,
        best_seller=best_seller,
        new_arrival=new_arrival,
        search=search,
        limit=limit,
        offset=offset,
    )
    return {"products": products, "total": len(products)}


@router.get("/products/{product_id}")
async def get_product(product_id: str, services: CatalogServices = Depends(get_services)):
    """One product plus its display category name."""
    store = services.store
    product = await store.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    return {
        "product": product,
        "categoryName": await store.category_name_for(product),
    }


@router.get("/collections")
async def get_collections(
    refresh: Optional[str] = Query(None),
    services: CatalogServices = Depends(get_services),
):
    """All collections."""
    collections = await services.store.load_collections(force=refresh == "1")
    return {"collections": collections, "total": len(collections)}


@router.get("/collections/{slug}")
async def get_collection(slug: str, services: CatalogServices = Depends(get_services)):
    collection = await services.store.get_collection_by_slug(slug)
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    return {"collection": collection}
