"""Order lifecycle management.

Every operation checks the requester's role or ownership before touching the
order. Status changes follow ORDER_TRANSITIONS; totals are priced once at
creation and never recomputed.
"""

import logging
from typing import Iterable

from .catalog_store import CatalogStore
from .errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotOwnerError,
    PaymentGatewayUnavailableError,
    PaymentNotCompletedError,
    ValidationError,
)
from .models import (
    PAYMENT_METHODS,
    Address,
    Order,
    OrderStatus,
    PaymentInfo,
    User,
    _generate_id,
    _utc_now,
    resolve_billing_address,
)
from .order_store import OrderStore
from .payments import PaymentGateway
from .pricing import calculate_totals
from .reservation import StockRequest, release_stock, reserve_stock
from .utils import Pagination, paginate, parse_date_bound

logger = logging.getLogger(__name__)

DEFAULT_USER_PAGE_SIZE = 10
DEFAULT_ADMIN_PAGE_SIZE = 20

# Re-applying the current status is allowed so repeated calls are idempotent.
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PROCESSING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {OrderStatus.SHIPPED, OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.DELIVERED},
    OrderStatus.CANCELLED: {OrderStatus.CANCELLED},
    OrderStatus.REFUNDED: {OrderStatus.REFUNDED},
}

# Leaving Processing for one of these puts the items back on the shelf.
RESTOCKING_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransitionError(None, value)


def _require_admin(requester: User) -> None:
    if not requester.is_admin:
        raise ForbiddenError("Admin role required")


def _require_owner_or_admin(order: Order, requester: User) -> None:
    if order.user != requester.id and not requester.is_admin:
        raise ForbiddenError("Not authorized to access this order")


def _require_owner(order: Order, requester: User) -> None:
    if order.user != requester.id:
        raise NotOwnerError(order.id)


def validate_order_request(items: list[StockRequest], payment_method: str) -> None:
    """
    Reject malformed checkout requests before any stock is touched.

    Raises:
        ValidationError: With one entry per offending field.
    """
    errors: list[dict[str, str]] = []
    if not items:
        errors.append({"field": "items", "message": "At least one item is required"})
    for i, item in enumerate(items):
        if not item.product:
            errors.append({"field": f"items.{i}.product", "message": "Invalid product ID"})
        if item.quantity < 1:
            errors.append({"field": f"items.{i}.quantity", "message": "Quantity must be at least 1"})
    if payment_method not in PAYMENT_METHODS:
        errors.append({"field": "paymentMethod", "message": "Invalid payment method"})
    if errors:
        raise ValidationError("Invalid order", errors)


class OrderManager:
    """Creates orders and drives them through their lifecycle."""

    def __init__(self, catalog: CatalogStore, orders: OrderStore):
        self.catalog = catalog
        self.orders = orders

    def create(
        self,
        user: User,
        items: Iterable[StockRequest],
        shipping_address: Address,
        payment_method: str,
        billing_address: Address | None = None,
    ) -> Order:
        """
        Place an order: reserve stock, price the items, persist.

        Raises:
            ValidationError: If the request is malformed or empty.
            ProductNotFoundError: If a product doesn't exist.
            InsufficientStockError: If any line exceeds stock (nothing is reserved).
        """
        items = list(items)
        validate_order_request(items, payment_method)

        order_items = reserve_stock(self.catalog, items)
        prices = calculate_totals((i.price, i.quantity) for i in order_items)

        now = _utc_now()
        order = Order(
            id=_generate_id(),
            user=user.id,
            items=order_items,
            shipping_address=shipping_address,
            billing_address=resolve_billing_address(shipping_address, billing_address),
            payment_method=payment_method,
            items_price=prices.items_price,
            tax_price=prices.tax_price,
            shipping_price=prices.shipping_price,
            total_price=prices.total_price,
            payment_info=PaymentInfo(id="pending", status="pending", method=payment_method),
            created_at=now,
            updated_at=now,
        )

        try:
            self.orders.save(order)
        except Exception:
            logger.exception("Saving order %s failed; releasing reserved stock", order.id)
            release_stock(self.catalog, order_items)
            raise

        logger.info(
            "Created order %s for user %s (%d items, total %s)",
            order.id, user.id, len(order_items), order.total_price,
        )
        return order

    def get(self, order_id: str, requester: User) -> Order:
        """
        Raises:
            OrderNotFoundError: If order doesn't exist.
            ForbiddenError: If requester is neither the owner nor an admin.
        """
        order = self.orders.get(order_id)
        _require_owner_or_admin(order, requester)
        return order

    def record_payment(self, order_id: str, requester: User, payment_info: PaymentInfo) -> Order:
        """
        Overwrite the order's payment info. Only the owner may do this.

        Raises:
            ValidationError: If payment id or status is blank.
            OrderNotFoundError: If order doesn't exist.
            NotOwnerError: If requester doesn't own the order.
        """
        errors = []
        if not payment_info.id:
            errors.append({"field": "paymentInfo.id", "message": "Payment ID is required"})
        if not payment_info.status:
            errors.append({"field": "paymentInfo.status", "message": "Payment status is required"})
        if errors:
            raise ValidationError("Invalid payment info", errors)

        with self.orders.editing(order_id) as order:
            _require_owner(order, requester)
            order.payment_info = payment_info

        logger.info("Recorded payment %s (%s) on order %s", payment_info.id, payment_info.status, order_id)
        return order

    def confirm_payment(
        self,
        order_id: str,
        requester: User,
        intent_id: str,
        gateway: PaymentGateway | None,
    ) -> Order:
        """
        Record a gateway payment once the gateway reports it succeeded.

        Raises:
            PaymentGatewayUnavailableError: If no gateway is configured.
            PaymentNotCompletedError: If the intent hasn't succeeded.
        """
        if gateway is None:
            raise PaymentGatewayUnavailableError()
        if not intent_id:
            raise ValidationError.for_field("paymentIntentId", "Payment intent ID is required")

        # Ownership is checked before asking the gateway anything
        _require_owner(self.orders.get(order_id), requester)

        intent = gateway.retrieve_intent(intent_id)
        if not intent.succeeded:
            raise PaymentNotCompletedError(intent_id, intent.status)

        return self.record_payment(
            order_id,
            requester,
            PaymentInfo(id=intent.id, status=intent.status, method=intent.method),
        )

    def transition_status(
        self,
        order_id: str,
        requester: User,
        new_status: str,
        tracking_number: str | None = None,
    ) -> Order:
        """
        Move an order to new_status (admin only).

        shippedAt and deliveredAt are stamped the first time the order
        reaches Shipped and Delivered and are never overwritten.

        Raises:
            ForbiddenError: If requester isn't an admin.
            InvalidTransitionError: If the status is unknown or not reachable.
            OrderNotFoundError: If order doesn't exist.
        """
        _require_admin(requester)
        target = parse_status(new_status)

        with self.orders.editing(order_id) as order:
            current = order.order_status
            if target not in ORDER_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value)

            now = _utc_now()
            order.order_status = target
            if tracking_number:
                order.tracking_number = tracking_number
            if target == OrderStatus.SHIPPED and not order.shipped_at:
                order.shipped_at = now
            if target == OrderStatus.DELIVERED and not order.delivered_at:
                order.delivered_at = now
            if target == OrderStatus.CANCELLED and not order.cancelled_at:
                order.cancelled_at = now

        # Restock only once the new status is saved
        if current == OrderStatus.PROCESSING and target in RESTOCKING_STATUSES:
            release_stock(self.catalog, order.items)

        logger.info("Order %s status %s -> %s", order_id, current.value, target.value)
        return order

    def cancel(self, order_id: str, requester: User) -> Order:
        """
        Cancel an order that hasn't shipped yet and restock its items.

        The owner and admins may cancel.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            ForbiddenError: If requester is neither the owner nor an admin.
            InvalidTransitionError: If the order has left Processing.
        """
        with self.orders.editing(order_id) as order:
            _require_owner_or_admin(order, requester)
            if order.order_status != OrderStatus.PROCESSING:
                raise InvalidTransitionError(order.order_status.value, OrderStatus.CANCELLED.value)

            order.order_status = OrderStatus.CANCELLED
            order.cancelled_at = _utc_now()

        release_stock(self.catalog, order.items)
        logger.info("Order %s cancelled by %s", order_id, requester.id)
        return order

    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = DEFAULT_USER_PAGE_SIZE,
    ) -> tuple[list[Order], Pagination]:
        """One page of a user's orders, newest first."""
        return paginate(self.orders.list_for_user(user_id), page, page_size)

    def list_all(
        self,
        requester: User,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        page: int = 1,
        page_size: int = DEFAULT_ADMIN_PAGE_SIZE,
    ) -> tuple[list[Order], Pagination]:
        """
        One page of all orders, newest first (admin only).

        Raises:
            ForbiddenError: If requester isn't an admin.
            InvalidTransitionError: If status isn't a known order status.
            ValidationError: If a date bound can't be parsed.
        """
        _require_admin(requester)
        if status:
            parse_status(status)
        start = parse_date_bound(start_date, "startDate") if start_date else None
        end = parse_date_bound(end_date, "endDate", end_of_day=True) if end_date else None

        orders = self.orders.list_all(status=status, start=start, end=end)
        return paginate(orders, page, page_size)
