"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient

from storefront.models import Role
from storefront.payments import PaymentIntent
from storefront.user_store import UserStore

SHIPPING = {
    "name": "Alice Buyer",
    "phone": "555-0100",
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "US",
}


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def register_body(name, email, password="secret123"):
    return {"name": name, "email": email, "password": password}


@pytest.fixture
def api_client(temp_dir, monkeypatch):
    """Create test client backed by a temporary data directory."""
    monkeypatch.setenv("STOREFRONT_DATA_DIR", str(temp_dir))

    from storefront.api import app

    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token(temp_dir):
    return UserStore(temp_dir).add_user("Ada Admin", "admin@example.com", role=Role.ADMIN).token


@pytest.fixture
def user_token(api_client):
    response = api_client.post(
        "/api/auth/register", json=register_body("Alice Buyer", "alice@example.com")
    )
    assert response.status_code == 201
    return response.json()["token"]


@pytest.fixture
def other_token(api_client):
    response = api_client.post(
        "/api/auth/register", json=register_body("Bob Buyer", "bob@example.com")
    )
    return response.json()["token"]


@pytest.fixture
def product_id(api_client, admin_token):
    response = api_client.post(
        "/api/products",
        json={
            "name": "Jacket",
            "description": "Warm",
            "price": 100,
            "category": "Clothing",
            "stock": 5,
            "onSale": True,
            "salePercentage": 20,
            "brand": "Northwind",
        },
        headers=auth(admin_token),
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def order_id(api_client, user_token, product_id):
    response = api_client.post(
        "/api/orders",
        json={
            "items": [{"product": product_id, "quantity": 2, "size": "M"}],
            "shippingAddress": SHIPPING,
            "paymentMethod": "credit_card",
        },
        headers=auth(user_token),
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestHealthCheck:
    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["product_count"] == 0


class TestAuth:
    def test_register_and_me(self, api_client, user_token):
        response = api_client.get("/api/auth/me", headers=auth(user_token))

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "alice@example.com"
        assert data["role"] == "user"
        assert "token" not in data

    def test_duplicate_email(self, api_client, user_token):
        response = api_client.post(
            "/api/auth/register", json=register_body("Again", "ALICE@example.com")
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "DuplicateUserError"

    def test_invalid_email(self, api_client):
        response = api_client.post("/api/auth/register", json=register_body("X", "nope"))
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "email"

    def test_missing_token(self, api_client):
        response = api_client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error_type"] == "NotAuthenticatedError"

    def test_unknown_token(self, api_client):
        response = api_client.get("/api/auth/me", headers=auth("bogus"))
        assert response.status_code == 401

    def test_short_password(self, api_client):
        response = api_client.post(
            "/api/auth/register", json=register_body("Short", "short@example.com", "abc")
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "password"

    def test_login_issues_fresh_token(self, api_client, user_token):
        response = api_client.post(
            "/api/auth/login", json={"email": "Alice@Example.com", "password": "secret123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "alice@example.com"
        assert data["token"] != user_token

        me = api_client.get("/api/auth/me", headers=auth(data["token"]))
        assert me.status_code == 200
        assert api_client.get("/api/auth/me", headers=auth(user_token)).status_code == 401

    def test_login_wrong_password(self, api_client, user_token):
        response = api_client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

        assert api_client.get("/api/auth/me", headers=auth(user_token)).status_code == 200

    def test_login_unknown_email(self, api_client):
        response = api_client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"}
        )
        assert response.status_code == 401


class TestProducts:
    def test_get_product(self, api_client, product_id):
        response = api_client.get(f"/api/products/{product_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["price"] == 100
        assert data["effectivePrice"] == pytest.approx(80)
        assert data["onSale"] is True
        assert data["numOfReviews"] == 0

    def test_get_missing_product(self, api_client):
        response = api_client.get("/api/products/nope")
        assert response.status_code == 404
        assert response.json()["error_type"] == "ProductNotFoundError"

    def test_create_requires_admin(self, api_client, user_token):
        response = api_client.post(
            "/api/products",
            json={"name": "X", "description": "Y", "price": 1, "category": "Books"},
            headers=auth(user_token),
        )
        assert response.status_code == 403

    def test_create_invalid_category(self, api_client, admin_token):
        response = api_client.post(
            "/api/products",
            json={"name": "X", "description": "Y", "price": 1, "category": "Gadgets"},
            headers=auth(admin_token),
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "category"

    def test_update_and_delete(self, api_client, admin_token, product_id):
        response = api_client.put(
            f"/api/products/{product_id}",
            json={"stock": 9, "onSale": False},
            headers=auth(admin_token),
        )
        assert response.status_code == 200
        assert response.json()["stock"] == 9
        assert response.json()["effectivePrice"] == 100

        response = api_client.delete(f"/api/products/{product_id}", headers=auth(admin_token))
        assert response.status_code == 200
        assert api_client.get(f"/api/products/{product_id}").status_code == 404

    def test_list_with_filters_and_pagination(self, api_client, admin_token, product_id):
        api_client.post(
            "/api/products",
            json={"name": "Novel", "description": "Pages", "price": 12, "category": "Books"},
            headers=auth(admin_token),
        )

        response = api_client.get("/api/products", params={"category": "Books"})
        data = response.json()
        assert [p["name"] for p in data["data"]] == ["Novel"]
        assert data["pagination"]["totalCount"] == 1

        response = api_client.get("/api/products", params={"limit": 1, "sort": "price"})
        data = response.json()
        assert data["data"][0]["name"] == "Novel"
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalCount": 2,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

    def test_categories_and_brands(self, api_client, product_id):
        assert api_client.get("/api/products/categories/all").json()["data"] == ["Clothing"]
        assert api_client.get("/api/products/brands/all").json()["data"] == ["Northwind"]

    def test_review_once(self, api_client, user_token, product_id):
        url = f"/api/products/{product_id}/reviews"
        body = {"rating": 4, "comment": "Nice"}

        response = api_client.post(url, json=body, headers=auth(user_token))
        assert response.status_code == 201
        assert response.json()["ratings"] == 4
        assert response.json()["numOfReviews"] == 1

        response = api_client.post(url, json=body, headers=auth(user_token))
        assert response.status_code == 400
        assert response.json()["detail"] == "Product already reviewed"


class TestOrders:
    def test_create_order(self, api_client, user_token, product_id):
        response = api_client.post(
            "/api/orders",
            json={
                "items": [{"product": product_id, "quantity": 2}],
                "shippingAddress": SHIPPING,
                "paymentMethod": "paypal",
            },
            headers=auth(user_token),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["itemsPrice"] == pytest.approx(160)
        assert data["shippingPrice"] == 0
        assert data["taxPrice"] == pytest.approx(12.8)
        assert data["totalPrice"] == pytest.approx(172.8)
        assert data["orderStatus"] == "Processing"
        assert data["billingAddress"] == SHIPPING
        assert data["paymentInfo"]["status"] == "pending"

        stock = api_client.get(f"/api/products/{product_id}").json()["stock"]
        assert stock == 3

    def test_empty_items_rejected(self, api_client, user_token):
        response = api_client.post(
            "/api/orders",
            json={"items": [], "shippingAddress": SHIPPING, "paymentMethod": "paypal"},
            headers=auth(user_token),
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "items"

    def test_insufficient_stock(self, api_client, user_token, product_id):
        response = api_client.post(
            "/api/orders",
            json={
                "items": [{"product": product_id, "quantity": 6}],
                "shippingAddress": SHIPPING,
                "paymentMethod": "paypal",
            },
            headers=auth(user_token),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock for Jacket"

    def test_unknown_product(self, api_client, user_token):
        response = api_client.post(
            "/api/orders",
            json={
                "items": [{"product": "ghost", "quantity": 1}],
                "shippingAddress": SHIPPING,
                "paymentMethod": "paypal",
            },
            headers=auth(user_token),
        )
        assert response.status_code == 404

    def test_requires_login(self, api_client):
        response = api_client.post("/api/orders", json={})
        assert response.status_code in (400, 401)

    def test_my_orders(self, api_client, user_token, other_token, order_id):
        response = api_client.get("/api/orders", headers=auth(user_token))
        data = response.json()
        assert [o["id"] for o in data["data"]] == [order_id]
        assert data["pagination"]["totalCount"] == 1

        response = api_client.get("/api/orders", headers=auth(other_token))
        assert response.json()["data"] == []

    def test_get_order_access(self, api_client, user_token, other_token, admin_token, order_id):
        assert api_client.get(f"/api/orders/{order_id}", headers=auth(user_token)).status_code == 200
        assert api_client.get(f"/api/orders/{order_id}", headers=auth(admin_token)).status_code == 200
        assert api_client.get(f"/api/orders/{order_id}", headers=auth(other_token)).status_code == 403

    def test_pay_owner_only(self, api_client, user_token, other_token, order_id):
        body = {"paymentInfo": {"id": "pi_1", "status": "succeeded"}}

        response = api_client.put(f"/api/orders/{order_id}/pay", json=body, headers=auth(other_token))
        assert response.status_code == 403

        response = api_client.put(f"/api/orders/{order_id}/pay", json=body, headers=auth(user_token))
        assert response.status_code == 200
        assert response.json()["paymentInfo"] == {"id": "pi_1", "status": "succeeded", "method": None}

    def test_status_flow(self, api_client, admin_token, user_token, order_id):
        url = f"/api/orders/{order_id}/status"

        response = api_client.put(url, json={"orderStatus": "Shipped"}, headers=auth(user_token))
        assert response.status_code == 403

        response = api_client.put(
            url, json={"orderStatus": "Shipped", "trackingNumber": "1Z"}, headers=auth(admin_token)
        )
        assert response.status_code == 200
        assert response.json()["shippedAt"] is not None
        assert response.json()["trackingNumber"] == "1Z"

        response = api_client.put(url, json={"orderStatus": "Bogus"}, headers=auth(admin_token))
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidTransitionError"

    def test_cancel_restocks(self, api_client, user_token, order_id, product_id):
        response = api_client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token))

        assert response.status_code == 200
        assert response.json()["orderStatus"] == "Cancelled"
        assert api_client.get(f"/api/products/{product_id}").json()["stock"] == 5

    def test_admin_list(self, api_client, admin_token, user_token, order_id):
        response = api_client.get("/api/orders/admin/all", headers=auth(admin_token))
        assert response.status_code == 200
        assert response.json()["pagination"]["totalCount"] == 1

        response = api_client.get(
            "/api/orders/admin/all", params={"status": "Delivered"}, headers=auth(admin_token)
        )
        assert response.json()["data"] == []

        response = api_client.get("/api/orders/admin/all", headers=auth(user_token))
        assert response.status_code == 403

    def test_bad_page(self, api_client, user_token):
        response = api_client.get("/api/orders", params={"page": 0}, headers=auth(user_token))
        assert response.status_code == 400


class TestPayments:
    def test_methods(self, api_client):
        data = api_client.get("/api/payments/methods").json()["data"]
        assert [m["id"] for m in data] == [
            "credit_card", "debit_card", "paypal", "stripe", "cash_on_delivery"
        ]

    def test_confirm_without_gateway(self, api_client, user_token, order_id):
        response = api_client.post(
            "/api/payments/confirm-payment",
            json={"paymentIntentId": "pi_1", "orderId": order_id},
            headers=auth(user_token),
        )
        assert response.status_code == 503

    def test_confirm_with_gateway(self, api_client, user_token, order_id):
        from storefront.api import app, get_payment_gateway

        class Gateway:
            def retrieve_intent(self, intent_id):
                return PaymentIntent(id=intent_id, status="succeeded")

        app.dependency_overrides[get_payment_gateway] = Gateway

        response = api_client.post(
            "/api/payments/confirm-payment",
            json={"paymentIntentId": "pi_9", "orderId": order_id},
            headers=auth(user_token),
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Payment confirmed successfully",
            "orderId": order_id,
            "paymentStatus": "succeeded",
        }
        order = api_client.get(f"/api/orders/{order_id}", headers=auth(user_token)).json()
        assert order["paymentInfo"]["id"] == "pi_9"
