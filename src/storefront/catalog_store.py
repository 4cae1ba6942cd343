"""Catalog storage for storefront."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator

from .config import get_data_dir
from .errors import DuplicateReviewError, ProductNotFoundError, ValidationError
from .models import CATEGORIES, PRODUCT_STATUSES, Product, Review, _utc_now, to_decimal
from .storage import file_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
CATALOG_DIR = "catalog"
PRODUCTS_FILE = "products.json"

SORT_FIELDS = {
    "price": lambda p: p.price,
    "ratings": lambda p: p.ratings,
    "createdAt": lambda p: p.created_at,
    "name": lambda p: p.name.lower(),
}

_MONEY_FIELDS = ("price", "compare_at_price", "sale_percentage")
_READ_ONLY_FIELDS = ("id", "reviews", "ratings", "num_of_reviews", "created_at", "updated_at")


@dataclass
class ProductQuery:
    """Filters and ordering for catalog listings."""

    search: str | None = None
    category: str | None = None
    brand: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_rating: float | None = None
    featured: bool | None = None
    on_sale: bool | None = None
    sort: str | None = None
    order: str = "asc"
    include_inactive: bool = False

    def matches(self, product: Product) -> bool:
        if not self.include_inactive and product.status != "active":
            return False
        if self.search:
            needle = self.search.lower()
            haystack = [product.name, product.description, *product.tags]
            if not any(needle in text.lower() for text in haystack):
                return False
        if self.category and product.category != self.category:
            return False
        if self.brand and product.brand != self.brand:
            return False
        if self.min_price is not None and product.price < self.min_price:
            return False
        if self.max_price is not None and product.price > self.max_price:
            return False
        if self.min_rating is not None and product.ratings < self.min_rating:
            return False
        if self.featured and not product.featured:
            return False
        if self.on_sale and not product.on_sale:
            return False
        return True


def validate_product(product: Product) -> None:
    """
    Check catalog invariants before a product is written.

    Raises:
        ValidationError: With one entry per offending field.
    """
    errors: list[dict[str, str]] = []
    if not product.name or not product.name.strip():
        errors.append({"field": "name", "message": "Product name is required"})
    elif len(product.name) > 100:
        errors.append({"field": "name", "message": "Product name cannot exceed 100 characters"})
    if product.price < 0:
        errors.append({"field": "price", "message": "Price cannot be negative"})
    if product.compare_at_price is not None and product.compare_at_price < 0:
        errors.append({"field": "compareAtPrice", "message": "Compare at price cannot be negative"})
    if product.category not in CATEGORIES:
        errors.append({"field": "category", "message": "Invalid category"})
    if product.stock < 0:
        errors.append({"field": "stock", "message": "Stock cannot be negative"})
    if product.sale_percentage is not None and not 0 <= product.sale_percentage <= 100:
        errors.append({"field": "salePercentage", "message": "Sale percentage must be between 0 and 100"})
    if product.status not in PRODUCT_STATUSES:
        errors.append({"field": "status", "message": "Invalid status"})
    if errors:
        raise ValidationError("Invalid product", errors)


class CatalogStore:
    """Manages the product catalog document."""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize CatalogStore.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.config_dir = (config_dir or get_data_dir()) / CATALOG_DIR
        self.catalog_path = self.config_dir / PRODUCTS_FILE
        self.lock_path = self.config_dir / ".products.lock"

    def _load_data(self) -> dict[str, Any]:
        return read_json(self.catalog_path, {"schema_version": SCHEMA_VERSION, "products": []})

    def _load_products(self) -> dict[str, Product]:
        data = self._load_data()
        return {p["id"]: Product.from_dict(p) for p in data.get("products", [])}

    def _save_products(self, products: dict[str, Product]) -> None:
        write_json_atomic(
            self.catalog_path,
            {
                "schema_version": SCHEMA_VERSION,
                "products": [p.to_dict() for p in products.values()],
            },
        )

    @contextmanager
    def locked(self) -> Iterator[dict[str, Product]]:
        """
        Hold the catalog lock and yield the products keyed by ID.

        Changes made to the yielded mapping are written in one atomic save
        when the block exits normally; an exception discards them.
        """
        with file_lock(self.lock_path):
            products = self._load_products()
            yield products
            self._save_products(products)

    def list_products(self, query: ProductQuery | None = None) -> list[Product]:
        """List products matching query, sorted (newest first by default)."""
        query = query or ProductQuery()
        products = [p for p in self._load_products().values() if query.matches(p)]

        key = SORT_FIELDS.get(query.sort or "")
        if key is None:
            products.sort(key=lambda p: p.created_at, reverse=True)
        else:
            products.sort(key=key, reverse=query.order == "desc")
        return products

    def get_product(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self._load_products().get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def add_product(self, product: Product) -> Product:
        validate_product(product)
        with self.locked() as products:
            products[product.id] = product
        logger.info("Added product %s (%s)", product.id, product.name)
        return product

    def update_product(self, product_id: str, changes: dict[str, Any]) -> Product:
        """
        Apply field changes (attribute names) to a product.

        Raises:
            ProductNotFoundError: If product doesn't exist.
            ValidationError: If a field is unknown or the result is invalid.
        """
        known = {f.name for f in fields(Product)}
        for name in changes:
            if name not in known or name in _READ_ONLY_FIELDS:
                raise ValidationError.for_field(name, f"Field cannot be updated: {name}")

        with self.locked() as products:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            for name, value in changes.items():
                if name in _MONEY_FIELDS and value is not None:
                    value = to_decimal(value)
                setattr(product, name, value)
            validate_product(product)
            product.updated_at = _utc_now()
        return product

    def delete_product(self, product_id: str) -> Product:
        with self.locked() as products:
            product = products.pop(product_id, None)
            if product is None:
                raise ProductNotFoundError(product_id)
        logger.info("Deleted product %s", product_id)
        return product

    def add_review(self, product_id: str, review: Review) -> Product:
        """
        Add a review and recompute the product's rating.

        Raises:
            ProductNotFoundError: If product doesn't exist.
            DuplicateReviewError: If this user already reviewed the product.
            ValidationError: If the rating is outside 1-5.
        """
        if not 1 <= review.rating <= 5:
            raise ValidationError.for_field("rating", "Rating must be between 1 and 5")

        with self.locked() as products:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if any(r.user == review.user for r in product.reviews):
                raise DuplicateReviewError(product_id)
            product.reviews.append(review)
            product.refresh_ratings()
            product.updated_at = _utc_now()
        return product

    def categories(self) -> list[str]:
        return sorted({p.category for p in self._load_products().values()})

    def brands(self) -> list[str]:
        return sorted({p.brand for p in self._load_products().values() if p.brand})
