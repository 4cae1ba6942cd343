"""Stock reservation for order checkout.

This is the only path that decrements catalog stock. The check and the
decrement happen under one catalog lock, so concurrent checkouts cannot both
take the last unit.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from .catalog_store import CatalogStore
from .errors import InsufficientStockError, ProductNotFoundError
from .models import OrderItem, _utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockRequest:
    """One requested line of an order."""

    product: str
    quantity: int
    size: str | None = None
    color: str | None = None


def reserve_stock(catalog: CatalogStore, requests: Iterable[StockRequest]) -> list[OrderItem]:
    """
    Validate and decrement stock for every requested line, all or nothing.

    Quantities are summed per product first, so two variants of the same
    product are checked against the combined demand.

    Returns:
        Order item snapshots priced at the effective unit price read under
        the lock, in request order.

    Raises:
        ProductNotFoundError: If any product ID doesn't resolve.
        InsufficientStockError: If any product's combined demand exceeds stock.
    """
    requests = list(requests)
    demand: Counter[str] = Counter()
    for req in requests:
        demand[req.product] += req.quantity

    with catalog.locked() as products:
        for product_id in demand:
            if product_id not in products:
                raise ProductNotFoundError(product_id)

        for product_id, quantity in demand.items():
            product = products[product_id]
            if product.stock < quantity:
                logger.warning(
                    "Insufficient stock for %s: requested %d, available %d",
                    product_id, quantity, product.stock,
                )
                raise InsufficientStockError(product.name, quantity, product.stock)

        now = _utc_now()
        for product_id, quantity in demand.items():
            products[product_id].stock -= quantity
            products[product_id].updated_at = now

        return [
            OrderItem(
                product=req.product,
                name=products[req.product].name,
                quantity=req.quantity,
                price=products[req.product].effective_price,
                image=products[req.product].primary_image,
                size=req.size,
                color=req.color,
            )
            for req in requests
        ]


def release_stock(catalog: CatalogStore, items: Iterable[OrderItem]) -> None:
    """
    Return reserved quantities to stock.

    Products deleted from the catalog since the reservation are skipped.
    """
    returned: Counter[str] = Counter()
    for item in items:
        returned[item.product] += item.quantity

    with catalog.locked() as products:
        now = _utc_now()
        for product_id, quantity in returned.items():
            product = products.get(product_id)
            if product is None:
                logger.warning("Cannot restock deleted product %s", product_id)
                continue
            product.stock += quantity
            product.updated_at = now
