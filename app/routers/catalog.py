# =============================================================================
# app/routers/catalog.py - Products, Categories and Spotlight
# =============================================================================
# Reads are public; writes need an admin.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Query, status

from app.dependencies import AdminUser
from core.models.catalog import CategoryCreate, ProductCreate, ProductUpdate, SpotlightRequest
from core.services.catalog_service import CatalogService

products_router = APIRouter()
categories_router = APIRouter()
settings_router = APIRouter()


# =============================================================================
# Products
# =============================================================================

@products_router.get("")
async def list_products(
    active: Annotated[bool, Query(description="false includes inactive products")] = True,
    category: Annotated[str | None, Query()] = None,
    featured: Annotated[bool, Query()] = False,
):
    return {"products": CatalogService.list_products(active_only=active, category=category, featured=featured)}


@products_router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(request: ProductCreate, admin: AdminUser):
    return {"product": CatalogService.create_product(request)}


@products_router.get("/{product_id}")
async def get_product(product_id: str):
    return {"product": CatalogService.get_product(product_id)}


@products_router.put("/{product_id}")
async def update_product(product_id: str, request: ProductUpdate, admin: AdminUser):
    product = CatalogService.update_product(product_id, request)
    return {"message": "Product updated successfully", "product": product}


@products_router.delete("/{product_id}")
async def delete_product(product_id: str, admin: AdminUser):
    CatalogService.delete_product(product_id)
    return {"message": "Product deleted successfully"}


# =============================================================================
# Categories
# =============================================================================

@categories_router.get("")
async def list_categories(active: Annotated[bool, Query()] = False):
    """Categories by name with product_count."""
    return {"categories": CatalogService.list_categories(active_only=active)}


@categories_router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(request: CategoryCreate, admin: AdminUser):
    return {"category": CatalogService.create_category(request)}


@categories_router.get("/{category_id}")
async def get_category(category_id: str):
    return {"category": CatalogService.get_category(category_id)}


@categories_router.put("/{category_id}")
async def update_category(category_id: str, request: CategoryCreate, admin: AdminUser):
    """Renaming a category moves its products to the new name."""
    return {"category": CatalogService.update_category(category_id, request)}


@categories_router.delete("/{category_id}")
async def delete_category(category_id: str, admin: AdminUser):
    CatalogService.delete_category(category_id)
    return {"success": True}


# =============================================================================
# Spotlight
# =============================================================================

@settings_router.get("/spotlight")
async def get_spotlight():
    return CatalogService.get_spotlight()


@settings_router.post("/spotlight")
async def set_spotlight(request: SpotlightRequest, admin: AdminUser):
    return CatalogService.set_spotlight(request.product_id)
