# =============================================================================
# core/models/catalog.py - Product, Category and Spotlight Schemas
# =============================================================================
# Bodies for the catalog write endpoints. Fields left out of an update
# body keep the storefront defaults listed on each model.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field


class ProductImage(BaseModel):
    """One entry of products.images (JSONB)."""

    url: str
    is_main: bool = Field(default=False, alias="isMain")
    label: str | None = None

    model_config = {"populate_by_name": True}


class ProductCreate(BaseModel):
    """
    Schema for POST /products.

    Example:
        {"name": "Luffy Gear 5 Figure", "price": 2499, "stock": 10,
         "category": "Figures", "image_url": "https://..."}
    """

    name: str | None = None
    description: str | None = None
    price: float | str | None = None
    stock: int | str | None = None
    category: str | None = None
    sku: str | None = None
    image_url: str | None = None
    image: str | None = Field(default=None, description="Legacy alias of image_url")
    images: list[Any] | None = Field(default=None, description="URLs or {url, isMain, label}")
    is_active: bool | None = None
    is_featured: bool | None = None
    is_new: bool | None = None


class ProductUpdate(ProductCreate):
    """Schema for PUT /products/{id} (same fields, name still required)."""


class CategoryCreate(BaseModel):
    """
    Schema for POST /categories and PUT /categories/{id}.

    slug is derived from name when not supplied.
    """

    name: str | None = None
    slug: str | None = None
    description: str | None = None
    image_url: str | None = None
    is_active: bool | None = None


class SpotlightRequest(BaseModel):
    """Schema for POST /settings/spotlight."""

    product_id: str | int | None = Field(default=None, alias="productId")

    model_config = {"populate_by_name": True}
