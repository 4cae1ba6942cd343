"""Order storage for storefront."""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator

from .config import get_data_dir
from .errors import OrderNotFoundError
from .models import Order, _utc_now, parse_timestamp
from .storage import file_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)

ORDERS_DIR = "orders"


class OrderStore:
    """Stores one JSON document per order; orders are never deleted."""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize OrderStore.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.orders_dir = (config_dir or get_data_dir()) / ORDERS_DIR
        self.lock_path = self.orders_dir / ".orders.lock"

    def _order_path(self, order_id: str) -> Path:
        # IDs come from URLs; keep them inside the orders directory
        if not order_id or "/" in order_id or order_id.startswith("."):
            raise OrderNotFoundError(order_id)
        return self.orders_dir / f"{order_id}.json"

    def _read(self, order_id: str) -> Order:
        data = read_json(self._order_path(order_id))
        if data is None:
            raise OrderNotFoundError(order_id)
        return Order.from_dict(data)

    def save(self, order: Order) -> None:
        """Write an order document atomically."""
        with file_lock(self.lock_path):
            write_json_atomic(self._order_path(order.id), order.to_dict())

    def get(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        return self._read(order_id)

    @contextmanager
    def editing(self, order_id: str) -> Iterator[Order]:
        """
        Lock, load and yield an order; save it when the block exits normally.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        with file_lock(self.lock_path):
            order = self._read(order_id)
            yield order
            order.updated_at = _utc_now()
            write_json_atomic(self._order_path(order.id), order.to_dict())

    def _iter_orders(self) -> Iterator[Order]:
        if not self.orders_dir.exists():
            return
        for file_path in self.orders_dir.glob("*.json"):
            data = read_json(file_path)
            if data is not None:
                yield Order.from_dict(data)

    def find(self, predicate: Callable[[Order], bool] | None = None) -> list[Order]:
        """Return matching orders, newest first."""
        orders = [o for o in self._iter_orders() if predicate is None or predicate(o)]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def list_for_user(self, user_id: str) -> list[Order]:
        return self.find(lambda o: o.user == user_id)

    def list_all(
        self,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Order]:
        """List every order, optionally filtered by status and creation date range."""

        def matches(order: Order) -> bool:
            if status and order.order_status.value != status:
                return False
            if start is not None or end is not None:
                created = parse_timestamp(order.created_at)
                if start is not None and created < start:
                    return False
                if end is not None and created > end:
                    return False
            return True

        return self.find(matches)
