"""FastAPI REST API for the storefront."""

import logging
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import __version__
from .catalog_store import CatalogStore, ProductQuery
from .config import get_cors_origins
from .errors import (
    DuplicateReviewError,
    DuplicateUserError,
    ForbiddenError,
    InsufficientStockError,
    InvalidTransitionError,
    NotAuthenticatedError,
    OrderNotFoundError,
    PaymentGatewayUnavailableError,
    PaymentNotCompletedError,
    ProductNotFoundError,
    StorefrontError,
    ValidationError,
)
from .models import (
    Address,
    Order,
    PaymentInfo,
    Product,
    Review,
    User,
    to_decimal,
)
from .order_store import OrderStore
from .orders import DEFAULT_ADMIN_PAGE_SIZE, DEFAULT_USER_PAGE_SIZE, OrderManager
from .payments import PAYMENT_METHOD_DETAILS, PaymentGateway
from .reservation import StockRequest
from .user_store import MIN_PASSWORD_LENGTH, UserStore
from .utils import Pagination, paginate

logger = logging.getLogger(__name__)

PaymentMethod = Literal["credit_card", "debit_card", "paypal", "stripe", "cash_on_delivery"]
Category = Literal[
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
]
ProductStatus = Literal["active", "inactive", "draft"]


# --- Pydantic Schemas ---


class CamelModel(BaseModel):
    """Base schema: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginationSchema(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool


class AddressSchema(CamelModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderItemRequest(CamelModel):
    product: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class OrderCreateRequest(CamelModel):
    """Request body for placing an order."""

    items: list[OrderItemRequest] = Field(..., min_length=1)
    shipping_address: AddressSchema
    billing_address: Optional[AddressSchema] = Field(
        None, description="Defaults to the shipping address"
    )
    payment_method: PaymentMethod


class PaymentInfoSchema(CamelModel):
    id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    method: Optional[str] = None


class PaymentUpdateRequest(CamelModel):
    payment_info: PaymentInfoSchema


class StatusUpdateRequest(CamelModel):
    order_status: str
    tracking_number: Optional[str] = None


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)


class ConfirmPaymentResponse(CamelModel):
    message: str
    order_id: str
    payment_status: str


class OrderItemSchema(CamelModel):
    product: str
    name: str
    quantity: int
    price: float
    image: str = ""
    size: Optional[str] = None
    color: Optional[str] = None


class OrderSchema(CamelModel):
    id: str
    user: str
    items: list[OrderItemSchema]
    shipping_address: AddressSchema
    billing_address: AddressSchema
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    payment_info: PaymentInfoSchema
    order_status: str
    tracking_number: Optional[str] = None
    shipped_at: Optional[str] = None
    delivered_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    created_at: str
    updated_at: str


class OrderListResponse(CamelModel):
    data: list[OrderSchema]
    pagination: PaginationSchema


class ReviewSchema(CamelModel):
    user: str
    name: str
    rating: int
    comment: str
    created_at: str


class ReviewCreateRequest(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)


class ProductSchema(CamelModel):
    id: str
    name: str
    description: str
    price: float
    effective_price: float
    compare_at_price: Optional[float] = None
    category: str
    brand: Optional[str] = None
    images: list[str]
    stock: int
    sku: Optional[str] = None
    colors: list[str]
    sizes: list[str]
    tags: list[str]
    featured: bool
    on_sale: bool
    sale_percentage: Optional[float] = None
    status: str
    reviews: list[ReviewSchema]
    ratings: float
    num_of_reviews: int
    created_at: str
    updated_at: str


class ProductCreateRequest(CamelModel):
    """Request body for adding a product (admin)."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    category: Category
    stock: int = Field(default=0, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    sku: Optional[str] = None
    colors: list[str] = Field(default_factory=list)
    sizes: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    featured: bool = False
    on_sale: bool = False
    sale_percentage: Optional[float] = Field(None, ge=0, le=100)
    status: ProductStatus = "active"


class ProductUpdateRequest(CamelModel):
    """Request body for updating a product (admin). Only sent fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[Category] = None
    stock: Optional[int] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = None
    images: Optional[list[str]] = None
    sku: Optional[str] = None
    colors: Optional[list[str]] = None
    sizes: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    featured: Optional[bool] = None
    on_sale: Optional[bool] = None
    sale_percentage: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[ProductStatus] = None


class ProductListResponse(CamelModel):
    data: list[ProductSchema]
    pagination: PaginationSchema


class UserSchema(CamelModel):
    id: str
    name: str
    email: str
    role: str
    created_at: str


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    user: UserSchema
    token: str


# Fields a product update may clear by sending null
NULLABLE_PRODUCT_FIELDS = {"compare_at_price", "brand", "sku", "sale_percentage"}


# --- Helper Functions ---


def get_catalog_store() -> CatalogStore:
    """Get the CatalogStore for the configured data directory."""
    return CatalogStore()


def get_order_store() -> OrderStore:
    return OrderStore()


def get_user_store() -> UserStore:
    return UserStore()


def get_order_manager() -> OrderManager:
    return OrderManager(get_catalog_store(), get_order_store())


def get_payment_gateway() -> Optional[PaymentGateway]:
    """No gateway ships with storefront; deployments override this dependency."""
    return None


def get_current_user(authorization: Optional[str] = Header(default=None)) -> User:
    """Resolve the `Authorization: Bearer <token>` header to a user."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer "):].strip()
    return get_user_store().authenticate(token)


def pagination_to_schema(pagination: Pagination) -> PaginationSchema:
    return PaginationSchema(**pagination.to_dict())


def address_to_schema(address: Address) -> AddressSchema:
    return AddressSchema(**address.to_dict())


def schema_to_address(schema: AddressSchema) -> Address:
    return Address.from_dict(schema.model_dump(by_alias=True))


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(
        id=order.id,
        user=order.user,
        items=[
            OrderItemSchema(
                product=i.product,
                name=i.name,
                quantity=i.quantity,
                price=float(i.price),
                image=i.image,
                size=i.size,
                color=i.color,
            )
            for i in order.items
        ],
        shipping_address=address_to_schema(order.shipping_address),
        billing_address=address_to_schema(order.billing_address),
        payment_method=order.payment_method,
        items_price=float(order.items_price),
        tax_price=float(order.tax_price),
        shipping_price=float(order.shipping_price),
        total_price=float(order.total_price),
        payment_info=PaymentInfoSchema(**order.payment_info.to_dict()),
        order_status=order.order_status.value,
        tracking_number=order.tracking_number,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def product_to_schema(product: Product) -> ProductSchema:
    """Convert dataclass Product to Pydantic schema."""
    return ProductSchema(
        id=product.id,
        name=product.name,
        description=product.description,
        price=float(product.price),
        effective_price=float(product.effective_price),
        compare_at_price=float(product.compare_at_price) if product.compare_at_price is not None else None,
        category=product.category,
        brand=product.brand,
        images=product.images,
        stock=product.stock,
        sku=product.sku,
        colors=product.colors,
        sizes=product.sizes,
        tags=product.tags,
        featured=product.featured,
        on_sale=product.on_sale,
        sale_percentage=float(product.sale_percentage) if product.sale_percentage is not None else None,
        status=product.status,
        reviews=[ReviewSchema(**r.to_dict()) for r in product.reviews],
        ratings=product.ratings,
        num_of_reviews=product.num_of_reviews,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def user_to_schema(user: User) -> UserSchema:
    return UserSchema(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role.value,
        created_at=user.created_at,
    )


def _require_admin(user: User) -> None:
    if not user.is_admin:
        raise ForbiddenError("Admin role required")


# --- FastAPI App ---


app = FastAPI(
    title="storefront API",
    description="REST API for the storefront catalog, orders and payments",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handlers ---


# Map exception types to HTTP status codes; subclasses inherit their base's code
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    ProductNotFoundError: 404,
    OrderNotFoundError: 404,
    InsufficientStockError: 400,
    ForbiddenError: 403,
    InvalidTransitionError: 400,
    DuplicateReviewError: 400,
    DuplicateUserError: 400,
    PaymentNotCompletedError: 400,
    NotAuthenticatedError: 401,
    PaymentGatewayUnavailableError: 503,
}


def status_code_for(exc: StorefrontError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to appropriate HTTP responses."""
    status_code = status_code_for(exc)
    content: dict = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies and queries as 400 with per-field messages."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "error_type": "ValidationError", "errors": errors},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Returns basic service status.
    """
    try:
        products = get_catalog_store().list_products(ProductQuery(include_inactive=True))
        return {"status": "ok", "product_count": len(products)}
    except Exception as e:
        return {"status": "error", "detail": str(e)}


# --- Auth Endpoints ---


@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
def register(request: RegisterRequest):
    """Register a customer account and return its bearer token."""
    user = get_user_store().add_user(
        name=request.name, email=request.email, password=request.password
    )
    return AuthResponse(user=user_to_schema(user), token=user.token)


@app.post("/api/auth/login", response_model=AuthResponse)
def login(request: LoginRequest):
    """Exchange email and password for a fresh bearer token."""
    user = get_user_store().login(request.email, request.password)
    return AuthResponse(user=user_to_schema(user), token=user.token)


@app.get("/api/auth/me", response_model=UserSchema)
def current_user(user: User = Depends(get_current_user)):
    return user_to_schema(user)


# --- Product Endpoints ---


@app.get("/api/products", response_model=ProductListResponse)
def list_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    search: Optional[str] = Query(None, description="Text to find in name, description or tags"),
    category: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    featured: Optional[bool] = None,
    on_sale: Optional[bool] = Query(None, alias="onSale"),
    sort: Optional[Literal["price", "ratings", "createdAt", "name"]] = None,
    order: Literal["asc", "desc"] = "asc",
):
    """
    List active products with filtering, sorting, and pagination.

    Without a sort field, newest products come first.
    """
    query = ProductQuery(
        search=search,
        category=category,
        brand=brand,
        min_price=to_decimal(min_price) if min_price is not None else None,
        max_price=to_decimal(max_price) if max_price is not None else None,
        min_rating=min_rating,
        featured=featured,
        on_sale=on_sale,
        sort=sort,
        order=order,
    )
    products = get_catalog_store().list_products(query)
    page_items, pagination = paginate(products, page, limit)
    return ProductListResponse(
        data=[product_to_schema(p) for p in page_items],
        pagination=pagination_to_schema(pagination),
    )


@app.get("/api/products/categories/all")
def list_categories():
    return {"data": get_catalog_store().categories()}


@app.get("/api/products/brands/all")
def list_brands():
    return {"data": get_catalog_store().brands()}


@app.get("/api/products/{product_id}", response_model=ProductSchema)
def get_product(product_id: str):
    return product_to_schema(get_catalog_store().get_product(product_id))


@app.post("/api/products", response_model=ProductSchema, status_code=201)
def create_product(request: ProductCreateRequest, user: User = Depends(get_current_user)):
    """Add a product to the catalog (admin only)."""
    _require_admin(user)
    fields = request.model_dump(exclude={"name", "price", "category"})
    product = Product.create(
        name=request.name,
        price=request.price,
        category=request.category,
        **fields,
    )
    get_catalog_store().add_product(product)
    return product_to_schema(product)


@app.put("/api/products/{product_id}", response_model=ProductSchema)
def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    user: User = Depends(get_current_user),
):
    """Update product fields (admin only)."""
    _require_admin(user)
    changes = {
        k: v
        for k, v in request.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_PRODUCT_FIELDS
    }
    product = get_catalog_store().update_product(product_id, changes)
    return product_to_schema(product)


@app.delete("/api/products/{product_id}", response_model=ProductSchema)
def delete_product(product_id: str, user: User = Depends(get_current_user)):
    """Remove a product from the catalog (admin only)."""
    _require_admin(user)
    return product_to_schema(get_catalog_store().delete_product(product_id))


@app.post("/api/products/{product_id}/reviews", response_model=ProductSchema, status_code=201)
def create_review(
    product_id: str,
    request: ReviewCreateRequest,
    user: User = Depends(get_current_user),
):
    """Review a product; each user may review a product once."""
    review = Review(user=user.id, name=user.name, rating=request.rating, comment=request.comment.strip())
    product = get_catalog_store().add_review(product_id, review)
    return product_to_schema(product)


# --- Order Endpoints ---


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(request: OrderCreateRequest, user: User = Depends(get_current_user)):
    """Place an order for the authenticated user."""
    order = get_order_manager().create(
        user=user,
        items=[
            StockRequest(product=i.product, quantity=i.quantity, size=i.size, color=i.color)
            for i in request.items
        ],
        shipping_address=schema_to_address(request.shipping_address),
        billing_address=(
            schema_to_address(request.billing_address) if request.billing_address else None
        ),
        payment_method=request.payment_method,
    )
    return order_to_schema(order)


@app.get("/api/orders", response_model=OrderListResponse)
def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_USER_PAGE_SIZE, ge=1, le=100),
    user: User = Depends(get_current_user),
):
    """List the authenticated user's orders, newest first."""
    orders, pagination = get_order_manager().list_for_user(user.id, page, limit)
    return OrderListResponse(
        data=[order_to_schema(o) for o in orders],
        pagination=pagination_to_schema(pagination),
    )


@app.get("/api/orders/admin/all", response_model=OrderListResponse)
def list_all_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_ADMIN_PAGE_SIZE, ge=1, le=100),
    status: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
):
    """List all orders (admin only), filtered by status and creation date."""
    orders, pagination = get_order_manager().list_all(
        user,
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=limit,
    )
    return OrderListResponse(
        data=[order_to_schema(o) for o in orders],
        pagination=pagination_to_schema(pagination),
    )


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str, user: User = Depends(get_current_user)):
    """Get a single order; visible to its owner and to admins."""
    return order_to_schema(get_order_manager().get(order_id, user))


@app.put("/api/orders/{order_id}/pay", response_model=OrderSchema)
def pay_order(
    order_id: str,
    request: PaymentUpdateRequest,
    user: User = Depends(get_current_user),
):
    """Record payment details on an order (owner only)."""
    info = request.payment_info
    order = get_order_manager().record_payment(
        order_id, user, PaymentInfo(id=info.id, status=info.status, method=info.method)
    )
    return order_to_schema(order)


@app.put("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    user: User = Depends(get_current_user),
):
    """Change an order's status (admin only)."""
    order = get_order_manager().transition_status(
        order_id, user, request.order_status, request.tracking_number
    )
    return order_to_schema(order)


@app.put("/api/orders/{order_id}/cancel", response_model=OrderSchema)
def cancel_order(order_id: str, user: User = Depends(get_current_user)):
    """Cancel an order that hasn't shipped (owner or admin)."""
    return order_to_schema(get_order_manager().cancel(order_id, user))


# --- Payment Endpoints ---


@app.get("/api/payments/methods")
def list_payment_methods():
    return {"data": PAYMENT_METHOD_DETAILS}


@app.post("/api/payments/confirm-payment", response_model=ConfirmPaymentResponse)
def confirm_payment(
    request: ConfirmPaymentRequest,
    user: User = Depends(get_current_user),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
):
    """Confirm a gateway payment intent and mark the order paid."""
    order = get_order_manager().confirm_payment(
        request.order_id, user, request.payment_intent_id, gateway
    )
    return ConfirmPaymentResponse(
        message="Payment confirmed successfully",
        order_id=order.id,
        payment_status=order.payment_info.status,
    )
