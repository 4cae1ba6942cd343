"""Custom exceptions for storefront."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when a request is malformed or missing required fields."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])


class ProductNotFoundError(StorefrontError):
    """Raised when a product ID doesn't resolve."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class OrderNotFoundError(StorefrontError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InsufficientStockError(StorefrontError):
    """Raised when a requested quantity exceeds available stock."""

    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product_name}")


class ForbiddenError(StorefrontError):
    """Raised when the requester's role doesn't allow the operation."""

    def __init__(self, reason: str = "Not authorized to perform this action"):
        super().__init__(reason)


class NotOwnerError(ForbiddenError):
    """Raised when a user acts on an order they don't own."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Not authorized to update order {order_id}")


class InvalidTransitionError(StorefrontError):
    """Raised when an order status change is unsupported."""

    def __init__(self, current: str | None, requested: str):
        self.current = current
        self.requested = requested
        if current is None:
            msg = f"Invalid order status: {requested}"
        else:
            msg = f"Cannot change order status from {current} to {requested}"
        super().__init__(msg)


class DuplicateReviewError(StorefrontError):
    """Raised when a user reviews the same product twice."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product already reviewed")


class DuplicateUserError(StorefrontError):
    """Raised when registering an email that is already taken."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists")


class NotAuthenticatedError(StorefrontError):
    """Raised when a bearer token is missing or unknown."""

    def __init__(self, reason: str = "Not authenticated"):
        super().__init__(reason)


class PaymentNotCompletedError(StorefrontError):
    """Raised when the gateway reports a payment that hasn't succeeded."""

    def __init__(self, intent_id: str, status: str):
        self.intent_id = intent_id
        self.status = status
        super().__init__(f"Payment not completed (status: {status})")


class PaymentGatewayUnavailableError(StorefrontError):
    """Raised when no payment gateway is configured."""

    def __init__(self):
        super().__init__("Payment gateway is not configured")
