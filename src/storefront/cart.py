"""Shopping cart aggregate.

The cart mirrors the server's pricing rules so the client can show totals
before checkout. State lives in the Cart object; persistence goes through a
CartStorage port that always receives the whole snapshot.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol

from .errors import InsufficientStockError, ValidationError
from .models import Product, to_decimal
from .pricing import PriceSummary, effective_unit_price, items_subtotal, summarize
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

CartKey = tuple[str, str | None, str | None]


@dataclass
class CartItem:
    """A cart line; price and stock are snapshots taken when it was added."""

    product_id: str
    name: str
    price: Decimal
    quantity: int
    stock: int  # stock ceiling
    size: str | None = None
    color: str | None = None
    image: str = ""
    on_sale: bool = False
    sale_percentage: Decimal | None = None
    sku: str | None = None

    @property
    def key(self) -> CartKey:
        return (self.product_id, self.size, self.color)

    @property
    def unit_price(self) -> Decimal:
        return effective_unit_price(self.price, self.on_sale, self.sale_percentage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": str(self.price),
            "quantity": self.quantity,
            "stock": self.stock,
            "size": self.size,
            "color": self.color,
            "image": self.image,
            "onSale": self.on_sale,
            "salePercentage": str(self.sale_percentage) if self.sale_percentage is not None else None,
            "sku": self.sku,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        sale_pct = data.get("salePercentage")
        return cls(
            product_id=data["productId"],
            name=data.get("name", ""),
            price=to_decimal(data["price"]),
            quantity=int(data["quantity"]),
            stock=int(data.get("stock", 0)),
            size=data.get("size"),
            color=data.get("color"),
            image=data.get("image", ""),
            on_sale=data.get("onSale", False),
            sale_percentage=to_decimal(sale_pct) if sale_pct is not None else None,
            sku=data.get("sku"),
        )


def recompute_cart(items: list[CartItem]) -> tuple[int, Decimal]:
    """Return (item count, items subtotal) for a list of cart lines."""
    item_count = sum(item.quantity for item in items)
    total = items_subtotal((item.unit_price, item.quantity) for item in items)
    return item_count, total


class CartStorage(Protocol):
    """Durable home for a cart snapshot."""

    def load(self) -> dict[str, Any] | None:
        ...

    def save(self, snapshot: dict[str, Any]) -> None:
        ...


class MemoryCartStorage:
    """Keeps the last snapshot in memory."""

    def __init__(self, snapshot: dict[str, Any] | None = None):
        self.snapshot = snapshot
        self.writes = 0

    def load(self) -> dict[str, Any] | None:
        return self.snapshot

    def save(self, snapshot: dict[str, Any]) -> None:
        self.snapshot = snapshot
        self.writes += 1


class JsonFileCartStorage:
    """Stores the cart snapshot as one JSON file, replaced atomically."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dict[str, Any] | None:
        try:
            return read_json(self.path)
        except (OSError, json.JSONDecodeError) as e:
            # An unreadable cart starts over empty, like a cleared one
            logger.error("Error reading cart from %s: %s", self.path, e)
            return None

    def save(self, snapshot: dict[str, Any]) -> None:
        write_json_atomic(self.path, snapshot)


class Cart:
    """Cart line items keyed by (product id, size, color)."""

    def __init__(self, storage: CartStorage):
        self.storage = storage
        self._items: list[CartItem] = []
        snapshot = storage.load()
        if snapshot:
            self._items = [CartItem.from_dict(i) for i in snapshot.get("items", [])]
        self.item_count, self.total = recompute_cart(self._items)

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def find(self, product_id: str, size: str | None = None, color: str | None = None) -> CartItem | None:
        key = (product_id, size, color)
        for item in self._items:
            if item.key == key:
                return item
        return None

    def snapshot(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items],
            "total": str(self.total),
            "itemCount": self.item_count,
        }

    def _commit(self) -> None:
        self.item_count, self.total = recompute_cart(self._items)
        self.storage.save(self.snapshot())

    def add_item(
        self,
        product: Product,
        quantity: int = 1,
        size: str | None = None,
        color: str | None = None,
    ) -> CartItem:
        """
        Add a product variant, merging with an existing line for the same key.

        The resulting quantity is capped at the product's stock.

        Raises:
            ValidationError: If quantity is below 1.
            InsufficientStockError: If the product is out of stock.
        """
        if quantity < 1:
            raise ValidationError.for_field("quantity", "Quantity must be at least 1")
        if product.stock < 1:
            raise InsufficientStockError(product.name, quantity, product.stock)

        item = self.find(product.id, size, color)
        if item is None:
            item = CartItem(
                product_id=product.id,
                name=product.name,
                price=product.price,
                quantity=min(quantity, product.stock),
                stock=product.stock,
                size=size,
                color=color,
                image=product.primary_image,
                on_sale=product.on_sale,
                sale_percentage=product.sale_percentage,
                sku=product.sku,
            )
            self._items.append(item)
        else:
            item.stock = product.stock
            item.quantity = min(item.quantity + quantity, item.stock)

        self._commit()
        return item

    def remove_item(self, product_id: str, size: str | None = None, color: str | None = None) -> None:
        key = (product_id, size, color)
        self._items = [item for item in self._items if item.key != key]
        self._commit()

    def update_quantity(
        self,
        product_id: str,
        quantity: int,
        size: str | None = None,
        color: str | None = None,
    ) -> None:
        """Set a line's quantity; 0 or less removes it, otherwise clamp to [1, stock]."""
        item = self.find(product_id, size, color)
        if item is not None:
            if quantity <= 0:
                self._items.remove(item)
            else:
                item.quantity = min(max(1, quantity), item.stock)
        self._commit()

    def update_item_stock(self, product_id: str, stock: int) -> None:
        """
        Reconcile the stock ceiling of every line for product_id.

        Quantities above the new ceiling are lowered to it. A sold-out line
        stays in the cart at quantity 0 until remove_out_of_stock drops it.
        """
        for item in self._items:
            if item.product_id == product_id:
                item.stock = stock
                if item.quantity > stock:
                    item.quantity = stock
        self._commit()

    def remove_out_of_stock(self) -> None:
        self._items = [item for item in self._items if item.stock > 0]
        self._commit()

    def clear(self) -> None:
        self._items = []
        self._commit()

    def summary(self) -> PriceSummary:
        """Subtotal, shipping, tax and grand total for the current cart."""
        return summarize(self.total)

    def to_order_items(self) -> list[dict[str, Any]]:
        """The items payload for POST /api/orders."""
        payload = []
        for item in self._items:
            if item.quantity == 0:
                continue
            line: dict[str, Any] = {"product": item.product_id, "quantity": item.quantity}
            if item.size is not None:
                line["size"] = item.size
            if item.color is not None:
                line["color"] = item.color
            payload.append(line)
        return payload
