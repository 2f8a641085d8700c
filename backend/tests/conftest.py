"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, two tenants (A and B) with outlets,
warehouses, tiers and products, a test client, and an in-memory audit
queue in place of Redis.
"""

from decimal import Decimal

import pytest
import redis

from stockroom import create_app
from stockroom.config import TestConfig
from stockroom.extensions import db
from stockroom.models import (
    Business,
    Customer,
    Inventory,
    Outlet,
    PriceTier,
    Product,
    Warehouse,
)


class FakeRedis:
    """List-only stand-in for the audit queue client."""

    def __init__(self):
        self.lists = {}

    def lpush(self, name, *values):
        items = self.lists.setdefault(name, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def rpop(self, name):
        items = self.lists.get(name)
        if not items:
            return None
        return items.pop()

    def llen(self, name):
        return len(self.lists.get(name, []))

    def ping(self):
        return True


class BrokenRedis:
    """Audit queue client whose server is unreachable."""

    def lpush(self, name, *values):
        raise redis.ConnectionError("Connection refused")

    def rpop(self, name):
        raise redis.ConnectionError("Connection refused")

    def llen(self, name):
        raise redis.ConnectionError("Connection refused")

    def ping(self):
        raise redis.ConnectionError("Connection refused")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function', autouse=True)
def audit_queue(app):
    """Fresh in-memory audit queue for every test."""
    fake = FakeRedis()
    app.extensions["redis"] = fake
    yield fake
    app.extensions.pop("redis", None)


@pytest.fixture(scope='function')
def broken_audit_queue(app):
    app.extensions["redis"] = BrokenRedis()
    yield app.extensions["redis"]


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_tenant(db_session, *, name: str, code: str) -> dict:
    business = Business(name=name, code=code, is_active=True)
    db_session.add(business)
    db_session.flush()

    outlet = Outlet(business_id=business.id, name=f"{code} Main", code="MAIN")
    db_session.add(outlet)
    db_session.flush()

    warehouse = Warehouse(outlet_id=outlet.id, name=f"{code} Main Warehouse", code="WH-1")
    backroom = Warehouse(outlet_id=outlet.id, name=f"{code} Backroom", code="WH-2")
    db_session.add_all([warehouse, backroom])
    db_session.flush()
    outlet.default_warehouse_id = warehouse.id

    product = Product(
        business_id=business.id,
        sku=f"{code}-001",
        name=f"{code} Product",
        base_price_cents=2000,
    )
    db_session.add(product)
    db_session.commit()

    return {
        "business": business,
        "outlet": outlet,
        "warehouse": warehouse,
        "backroom": backroom,
        "product": product,
    }


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Business A with one outlet, two warehouses and one product (base 2000)."""
    return _make_tenant(db_session, name="Business A - Acme Corp", code="ACME")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Business B, same shape as A."""
    return _make_tenant(db_session, name="Business B - Beta Inc", code="BETA")


@pytest.fixture(scope='function')
def make_tier(db_session):
    def _make(business, code: str, *, is_default: bool = False) -> PriceTier:
        tier = PriceTier(
            business_id=business.id,
            name=code.title(),
            code=code,
            is_default=is_default,
        )
        db_session.add(tier)
        db_session.commit()
        return tier
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(business, *, tier: PriceTier | None = None, name: str = "Jane Doe") -> Customer:
        customer = Customer(
            business_id=business.id,
            name=name,
            price_tier_id=tier.id if tier is not None else None,
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def stock(db_session):
    """Seed an inventory row directly (bypasses the ledger)."""
    def _stock(product, warehouse, quantity, *, minimum="0") -> Inventory:
        inventory = Inventory(
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity_on_hand=Decimal(str(quantity)),
            minimum_stock=Decimal(str(minimum)),
        )
        db_session.add(inventory)
        db_session.commit()
        return inventory
    return _stock


def tenant_headers(business, *, user_id: int = 1, outlet=None) -> dict:
    """Gateway headers establishing tenant context."""
    headers = {"X-Business-Id": str(business.id), "X-User-Id": str(user_id)}
    if outlet is not None:
        headers["X-Outlet-Id"] = str(outlet.id)
    return headers
