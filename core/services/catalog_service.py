# =============================================================================
# core/services/catalog_service.py - Products, Categories and Spotlight
# =============================================================================
# Products reference their category by name (products.category), so
# renaming a category moves its products and deleting one leaves them
# uncategorised.
# =============================================================================

import logging
from typing import Any

from app.exceptions import (
    BadRequestError,
    CategoryNotFoundError,
    ConflictError,
    ProductNotFoundError,
    StoreException,
)
from lib.supabase_client import SupabaseClient, is_no_rows_error
from lib.utils import slugify, to_float, utc_now_iso
from core.models.catalog import CategoryCreate, ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

SPOTLIGHT_KEY = "spotlight_product_id"


def to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_images(images: list[Any] | None) -> list[dict[str, Any]] | None:
    """
    Normalise product images to [{url, isMain, label}].

    Plain URL strings are accepted; entries without a url are dropped.
    """
    if not images:
        return None

    normalized = []
    for image in images:
        if isinstance(image, str):
            normalized.append({"url": image, "isMain": False, "label": None})
        elif isinstance(image, dict) and image.get("url"):
            normalized.append({
                "url": image["url"],
                "isMain": bool(image.get("isMain") or image.get("is_main")),
                "label": image.get("label"),
            })
    return normalized or None


class CatalogService:
    """
    Service for the storefront catalog.
    """

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    @staticmethod
    def list_products(
        active_only: bool = True,
        category: str | None = None,
        featured: bool = False,
    ) -> list[dict[str, Any]]:
        """Products, newest first."""
        client = SupabaseClient.get_client()
        query = client.table("products").select("*")

        if active_only:
            query = query.eq("is_active", True)
        if category:
            query = query.eq("category", category)
        if featured:
            query = query.eq("is_featured", True)

        response = query.order("created_at", desc=True).execute()
        return response.data or []

    @staticmethod
    def get_product(product_id: str) -> dict[str, Any]:
        product = SupabaseClient.fetch_product(product_id)
        if not product:
            raise ProductNotFoundError(str(product_id))
        return product

    @staticmethod
    def create_product(request: ProductCreate) -> dict[str, Any]:
        """
        Create a product; slug comes from the name.

        Raises:
            BadRequestError: Missing name or price
        """
        if not request.name:
            raise BadRequestError("Product name is required")
        if request.price is None or request.price == "":
            raise BadRequestError("Price is required")

        image = request.image_url or request.image
        row = {
            "name": request.name,
            "slug": slugify(request.name),
            "description": request.description or "",
            "price": to_float(request.price),
            "stock": to_int(request.stock),
            "category": request.category or None,
            "sku": request.sku or None,
            "image_url": image,
            "image": image,
            "images": normalize_images(request.images),
            "is_active": request.is_active if request.is_active is not None else True,
            "is_featured": request.is_featured if request.is_featured is not None else False,
            "is_new": request.is_new if request.is_new is not None else True,
        }

        client = SupabaseClient.get_client()
        try:
            response = client.table("products").insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to create product {request.name}: {e}")
            raise StoreException("Failed to create product", code="PRODUCT_CREATE_FAILED",
                                 details={"details": str(e)})

        product = response.data[0]
        logger.info(f"Created product {product.get('id')} ({product.get('name')})")
        return product

    @staticmethod
    def update_product(product_id: str, request: ProductUpdate) -> dict[str, Any]:
        """
        Replace a product's editable fields.

        Raises:
            BadRequestError: Blank name
            ProductNotFoundError: Unknown product
        """
        if not request.name or not request.name.strip():
            raise BadRequestError("Product name is required")

        updates = {
            "name": request.name.strip(),
            "description": (request.description or "").strip() or None,
            "price": to_float(request.price),
            "stock": to_int(request.stock),
            "category": request.category or None,
            "sku": request.sku or None,
            "image_url": request.image_url or request.image or None,
            "images": normalize_images(request.images),
            "is_active": request.is_active if request.is_active is not None else True,
            "is_featured": bool(request.is_featured),
            "is_new": bool(request.is_new),
            "updated_at": utc_now_iso(),
        }

        client = SupabaseClient.get_client()
        try:
            response = client.table("products").update(updates).eq("id", product_id).execute()
        except Exception as e:
            logger.error(f"Failed to update product {product_id}: {e}")
            raise StoreException("Failed to update product", code="PRODUCT_UPDATE_FAILED",
                                 details={"details": str(e)})

        if not response.data:
            raise ProductNotFoundError(str(product_id))
        return response.data[0]

    @staticmethod
    def delete_product(product_id: str) -> None:
        client = SupabaseClient.get_client()
        try:
            client.table("products").delete().eq("id", product_id).execute()
        except Exception as e:
            logger.error(f"Failed to delete product {product_id}: {e}")
            raise StoreException("Failed to delete product", code="PRODUCT_DELETE_FAILED",
                                 details={"details": str(e)})
        logger.info(f"Deleted product {product_id}")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @staticmethod
    def product_count(category_name: str) -> int:
        client = SupabaseClient.get_client()
        response = (
            client.table("products")
            .select("id", count="exact")
            .eq("category", category_name)
            .execute()
        )
        return response.count or 0

    @staticmethod
    def list_categories(active_only: bool = False) -> list[dict[str, Any]]:
        """Categories by name, each with product_count."""
        client = SupabaseClient.get_client()
        query = client.table("categories").select("*").order("name")
        if active_only:
            query = query.eq("is_active", True)

        categories = query.execute().data or []
        return [
            {**category, "product_count": CatalogService.product_count(category["name"])}
            for category in categories
        ]

    @staticmethod
    def get_category(category_id: str) -> dict[str, Any]:
        category = SupabaseClient.fetch_one("categories", "id", category_id)
        if not category:
            raise CategoryNotFoundError(str(category_id))
        return {**category, "product_count": CatalogService.product_count(category["name"])}

    @staticmethod
    def _slug_taken(slug: str, exclude_id: str | None = None) -> bool:
        client = SupabaseClient.get_client()
        query = client.table("categories").select("id").eq("slug", slug)
        if exclude_id is not None:
            query = query.neq("id", exclude_id)
        return bool(query.limit(1).execute().data)

    @staticmethod
    def create_category(request: CategoryCreate) -> dict[str, Any]:
        """
        Raises:
            BadRequestError: Missing name
            ConflictError: Slug already used
        """
        if not request.name:
            raise BadRequestError("Category name is required")

        slug = request.slug or slugify(request.name)
        if CatalogService._slug_taken(slug):
            raise ConflictError("Category with this name already exists")

        client = SupabaseClient.get_client()
        response = client.table("categories").insert({
            "name": request.name,
            "slug": slug,
            "description": request.description or None,
            "image_url": request.image_url or None,
            "is_active": request.is_active if request.is_active is not None else True,
        }).execute()

        category = response.data[0]
        logger.info(f"Created category {category.get('name')}")
        return category

    @staticmethod
    def update_category(category_id: str, request: CategoryCreate) -> dict[str, Any]:
        """
        Partial update. A new name regenerates the slug (unless one is given)
        and moves products from the old name to the new one.

        Raises:
            ConflictError: Slug used by another category
            CategoryNotFoundError: Unknown category
        """
        fields = request.model_dump(exclude_unset=True)
        updates: dict[str, Any] = {}

        if fields.get("name") is not None:
            updates["name"] = fields["name"]
            if not fields.get("slug"):
                updates["slug"] = slugify(fields["name"])
        if fields.get("slug"):
            updates["slug"] = fields["slug"]
        for key in ("description", "image_url", "is_active"):
            if key in fields:
                updates[key] = fields[key]

        if updates.get("slug") and CatalogService._slug_taken(updates["slug"], exclude_id=category_id):
            raise ConflictError("Category with this slug already exists")

        existing = SupabaseClient.fetch_one("categories", "id", category_id, columns="name")
        if not existing:
            raise CategoryNotFoundError(str(category_id))

        client = SupabaseClient.get_client()
        new_name = updates.get("name")
        if new_name and existing["name"] != new_name:
            client.table("products").update({"category": new_name}).eq("category", existing["name"]).execute()
            logger.info(f"Moved products from category {existing['name']} to {new_name}")

        response = client.table("categories").update(updates).eq("id", category_id).execute()
        if not response.data:
            raise CategoryNotFoundError(str(category_id))
        return response.data[0]

    @staticmethod
    def delete_category(category_id: str) -> None:
        """Delete a category; its products become uncategorised."""
        category = SupabaseClient.fetch_one("categories", "id", category_id, columns="name")
        client = SupabaseClient.get_client()

        if category:
            client.table("products").update({"category": None}).eq("category", category["name"]).execute()

        client.table("categories").delete().eq("id", category_id).execute()
        logger.info(f"Deleted category {category_id}")

    # -------------------------------------------------------------------------
    # Spotlight
    # -------------------------------------------------------------------------

    @staticmethod
    def _active_product(product_id: Any, columns: str = "*") -> dict[str, Any] | None:
        client = SupabaseClient.get_client()
        try:
            response = (
                client.table("products")
                .select(columns)
                .eq("id", product_id)
                .eq("is_active", True)
                .single()
                .execute()
            )
            return response.data
        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise

    @staticmethod
    def get_spotlight() -> dict[str, Any]:
        """
        The homepage spotlight product.

        Uses site_settings.spotlight_product_id when it points at an active
        product, else the newest featured active product (isFallback).
        """
        setting = SupabaseClient.fetch_one("site_settings", "key", SPOTLIGHT_KEY, columns="value")
        product_id = to_int(setting.get("value")) if setting and setting.get("value") else None

        if product_id:
            product = CatalogService._active_product(product_id)
            if product:
                return {"product": product, "productId": product_id}

        client = SupabaseClient.get_client()
        response = (
            client.table("products")
            .select("*")
            .eq("is_featured", True)
            .eq("is_active", True)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        fallback = (response.data or [None])[0]
        return {
            "product": fallback,
            "productId": fallback.get("id") if fallback else None,
            "isFallback": True,
        }

    @staticmethod
    def set_spotlight(product_id: str | int | None) -> dict[str, Any]:
        """
        Raises:
            BadRequestError: No product id
            StoreException: 404 when the product is missing or inactive
        """
        if not product_id:
            raise BadRequestError("Product ID is required")

        product = CatalogService._active_product(product_id, columns="id, name")
        if not product:
            raise StoreException(
                "Product not found or not active",
                code="PRODUCT_NOT_FOUND",
                status_code=404,
                details={"productId": str(product_id)},
            )

        client = SupabaseClient.get_client()
        try:
            client.table("site_settings").upsert(
                {"key": SPOTLIGHT_KEY, "value": str(product_id), "updated_at": utc_now_iso()},
                on_conflict="key",
            ).execute()
        except Exception as e:
            logger.error(f"Failed to save spotlight setting: {e}")
            raise StoreException("Failed to save setting", code="SETTINGS_SAVE_FAILED")

        logger.info(f"Spotlight product set to {product['name']} ({product_id})")
        return {
            "success": True,
            "message": f"Spotlight product set to: {product['name']}",
            "productId": product_id,
        }
