"""Data models for storefront."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
import uuid

from .pricing import effective_unit_price


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new document ID."""
    return str(uuid.uuid4())


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by _utc_now (or any ISO 8601 string)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or user-supplied amount to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


CATEGORIES = (
    "Electronics",
    "Clothing",
    "Books",
    "Home & Garden",
    "Sports",
    "Beauty",
    "Toys",
    "Automotive",
    "Health",
    "Other",
)

PRODUCT_STATUSES = ("active", "inactive", "draft")

PAYMENT_METHODS = ("credit_card", "debit_card", "paypal", "stripe", "cash_on_delivery")


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass
class Review:
    """A single product review."""

    user: str
    name: str
    rating: int  # 1-5
    comment: str
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "name": self.name,
            "rating": self.rating,
            "comment": self.comment,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Review":
        return cls(
            user=data["user"],
            name=data.get("name", ""),
            rating=int(data["rating"]),
            comment=data.get("comment", ""),
            created_at=data.get("createdAt", ""),
        )


def rating_summary(reviews: list[Review]) -> tuple[float, int]:
    """Return (average rating, review count); an unreviewed product rates 0."""
    if not reviews:
        return 0.0, 0
    total = sum(r.rating for r in reviews)
    return total / len(reviews), len(reviews)


@dataclass
class Product:
    """A catalog product."""

    id: str
    name: str
    price: Decimal
    category: str
    description: str = ""
    stock: int = 0
    compare_at_price: Decimal | None = None
    brand: str | None = None
    images: list[str] = field(default_factory=list)
    sku: str | None = None
    colors: list[str] = field(default_factory=list)
    sizes: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    featured: bool = False
    on_sale: bool = False
    sale_percentage: Decimal | None = None
    status: str = "active"
    reviews: list[Review] = field(default_factory=list)
    ratings: float = 0.0
    num_of_reviews: int = 0
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def effective_price(self) -> Decimal:
        return effective_unit_price(self.price, self.on_sale, self.sale_percentage)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

    def refresh_ratings(self) -> None:
        """Recompute ratings and num_of_reviews from the review list."""
        self.ratings, self.num_of_reviews = rating_summary(self.reviews)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "category": self.category,
            "stock": self.stock,
            "images": self.images,
            "colors": self.colors,
            "sizes": self.sizes,
            "tags": self.tags,
            "featured": self.featured,
            "onSale": self.on_sale,
            "status": self.status,
            "reviews": [r.to_dict() for r in self.reviews],
            "ratings": self.ratings,
            "numOfReviews": self.num_of_reviews,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.compare_at_price is not None:
            result["compareAtPrice"] = str(self.compare_at_price)
        if self.brand is not None:
            result["brand"] = self.brand
        if self.sku is not None:
            result["sku"] = self.sku
        if self.sale_percentage is not None:
            result["salePercentage"] = str(self.sale_percentage)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        compare_at = data.get("compareAtPrice")
        sale_pct = data.get("salePercentage")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            price=to_decimal(data["price"]),
            category=data["category"],
            stock=int(data.get("stock", 0)),
            compare_at_price=to_decimal(compare_at) if compare_at is not None else None,
            brand=data.get("brand"),
            images=data.get("images", []),
            sku=data.get("sku"),
            colors=data.get("colors", []),
            sizes=data.get("sizes", []),
            tags=data.get("tags", []),
            featured=data.get("featured", False),
            on_sale=data.get("onSale", False),
            sale_percentage=to_decimal(sale_pct) if sale_pct is not None else None,
            status=data.get("status", "active"),
            reviews=[Review.from_dict(r) for r in data.get("reviews", [])],
            ratings=data.get("ratings", 0.0),
            num_of_reviews=data.get("numOfReviews", 0),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    @classmethod
    def create(cls, name: str, price: Any, category: str, **fields: Any) -> "Product":
        """Create a new product with generated ID and timestamps."""
        now = _utc_now()
        for key in ("compare_at_price", "sale_percentage"):
            if fields.get(key) is not None:
                fields[key] = to_decimal(fields[key])
        product = cls(
            id=_generate_id(),
            name=name,
            price=to_decimal(price),
            category=category,
            created_at=now,
            updated_at=now,
            **fields,
        )
        product.refresh_ratings()
        return product


@dataclass
class Address:
    name: str
    phone: str
    street: str
    city: str
    state: str
    zip_code: str
    country: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        return cls(
            name=data["name"],
            phone=data["phone"],
            street=data["street"],
            city=data["city"],
            state=data["state"],
            zip_code=data["zipCode"],
            country=data["country"],
        )


def resolve_billing_address(shipping: Address, billing: Address | None) -> Address:
    """Billing address falls back to the shipping address when omitted."""
    return billing if billing is not None else shipping


@dataclass
class PaymentInfo:
    id: str
    status: str
    method: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "status": self.status}
        if self.method is not None:
            result["method"] = self.method
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentInfo":
        return cls(id=data["id"], status=data["status"], method=data.get("method"))


@dataclass
class OrderItem:
    """Snapshot of a product line at order time."""

    product: str
    name: str
    quantity: int
    price: Decimal  # unit price at order time
    image: str = ""
    size: str | None = None
    color: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product": self.product,
            "name": self.name,
            "quantity": self.quantity,
            "price": str(self.price),
            "image": self.image,
            "size": self.size,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            product=data["product"],
            name=data["name"],
            quantity=int(data["quantity"]),
            price=to_decimal(data["price"]),
            image=data.get("image", ""),
            size=data.get("size"),
            color=data.get("color"),
        )


@dataclass
class Order:
    """A placed order; totals are fixed at creation."""

    id: str
    user: str
    items: list[OrderItem]
    shipping_address: Address
    billing_address: Address
    payment_method: str
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal
    payment_info: PaymentInfo
    order_status: OrderStatus = OrderStatus.PROCESSING
    tracking_number: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None
    cancelled_at: str | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user": self.user,
            "items": [i.to_dict() for i in self.items],
            "shippingAddress": self.shipping_address.to_dict(),
            "billingAddress": self.billing_address.to_dict(),
            "paymentMethod": self.payment_method,
            "itemsPrice": str(self.items_price),
            "taxPrice": str(self.tax_price),
            "shippingPrice": str(self.shipping_price),
            "totalPrice": str(self.total_price),
            "paymentInfo": self.payment_info.to_dict(),
            "orderStatus": self.order_status.value,
            "trackingNumber": self.tracking_number,
            "shippedAt": self.shipped_at,
            "deliveredAt": self.delivered_at,
            "cancelledAt": self.cancelled_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            user=data["user"],
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            shipping_address=Address.from_dict(data["shippingAddress"]),
            billing_address=Address.from_dict(data["billingAddress"]),
            payment_method=data["paymentMethod"],
            items_price=to_decimal(data["itemsPrice"]),
            tax_price=to_decimal(data["taxPrice"]),
            shipping_price=to_decimal(data["shippingPrice"]),
            total_price=to_decimal(data["totalPrice"]),
            payment_info=PaymentInfo.from_dict(data["paymentInfo"]),
            order_status=OrderStatus(data.get("orderStatus", OrderStatus.PROCESSING.value)),
            tracking_number=data.get("trackingNumber"),
            shipped_at=data.get("shippedAt"),
            delivered_at=data.get("deliveredAt"),
            cancelled_at=data.get("cancelledAt"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class User:
    id: str
    name: str
    email: str
    role: Role = Role.USER
    token: str = ""
    password_hash: str = ""  # scrypt$<salt hex>$<hash hex>
    created_at: str = field(default_factory=_utc_now)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "token": self.token,
            "passwordHash": self.password_hash,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            role=Role(data.get("role", Role.USER.value)),
            token=data.get("token", ""),
            password_hash=data.get("passwordHash", ""),
            created_at=data.get("createdAt", ""),
        )
