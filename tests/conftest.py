"""Pytest fixtures for storefront tests."""

import tempfile
from pathlib import Path

import pytest

from storefront.catalog_store import CatalogStore
from storefront.models import Address, Product, Role
from storefront.order_store import OrderStore
from storefront.orders import OrderManager
from storefront.user_store import UserStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def catalog(temp_dir):
    return CatalogStore(temp_dir)


@pytest.fixture
def order_store(temp_dir):
    return OrderStore(temp_dir)


@pytest.fixture
def order_manager(catalog, order_store):
    return OrderManager(catalog, order_store)


@pytest.fixture
def user_store(temp_dir):
    return UserStore(temp_dir)


@pytest.fixture
def customer(user_store):
    return user_store.add_user("Alice Buyer", "alice@example.com")


@pytest.fixture
def other_customer(user_store):
    return user_store.add_user("Bob Buyer", "bob@example.com")


@pytest.fixture
def admin(user_store):
    return user_store.add_user("Ada Admin", "admin@example.com", role=Role.ADMIN)


@pytest.fixture
def address():
    return Address(
        name="Alice Buyer",
        phone="555-0100",
        street="1 Main St",
        city="Springfield",
        state="IL",
        zip_code="62701",
        country="US",
    )


@pytest.fixture
def make_product(catalog):
    """Factory that adds a product to the catalog and returns it."""

    def _make(name="Widget", price="100", stock=10, category="Electronics", **fields):
        product = Product.create(name=name, price=price, category=category, stock=stock, **fields)
        return catalog.add_product(product)

    return _make
