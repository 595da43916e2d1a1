"""
Pytest fixtures for fulfillment backend tests.

Provides test database setup, signed-up tenants, product factories and an
authenticated test client.
"""

import itertools

import pytest

from fulfillment import create_app
from fulfillment.extensions import db
from fulfillment.models import Product, ProductWarehouseStock, User, Warehouse
from fulfillment.models.inventory import QUANTITY_FINITE, QUANTITY_INFINITE
from fulfillment.services.auth_service import signup


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(scope='function')
def tenant(db_session):
    """Tenant A, signed up with default warehouse, settings and presets."""
    tenant, _ = signup(db_session, "owner@acme.test", PASSWORD, "Acme Goods")
    return tenant


@pytest.fixture(scope='function')
def other_tenant(db_session):
    """Tenant B, used to prove isolation."""
    tenant, _ = signup(db_session, "owner@beta.test", PASSWORD, "Beta Supplies")
    return tenant


@pytest.fixture(scope='function')
def owner(db_session, tenant):
    return db_session.query(User).filter_by(tenant_id=tenant.id).one()


@pytest.fixture(scope='function')
def default_warehouse(db_session, tenant):
    return db_session.query(Warehouse).filter_by(tenant_id=tenant.id).one()


@pytest.fixture(scope='function')
def second_warehouse(db_session, tenant):
    warehouse = Warehouse(tenant_id=tenant.id, name="Overflow", active=True)
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


_codes = itertools.count(1)


def build_product(tenant_id: int, **overrides) -> Product:
    """Product row with sensible defaults (sell 10.00, stock 4.00, 5 units)."""
    per_warehouse = overrides.pop("per_warehouse", {})
    name = overrides.pop("name", f"Product {next(_codes)}")
    values = {
        "tenant_id": tenant_id,
        "id_code": f"P{next(_codes):04d}",
        "name": name,
        "sell_price_cents": 1000,
        "stock_price_cents": 400,
        "quantity_type": QUANTITY_FINITE,
        "quantity": 5,
        "group_key": name.lower(),
    }
    values.update(overrides)
    if values["quantity_type"] == QUANTITY_INFINITE:
        values["quantity"] = None

    product = Product(**values)
    for warehouse_id, entry in per_warehouse.items():
        product.warehouse_stocks.append(ProductWarehouseStock(
            warehouse_id=warehouse_id,
            quantity_type=entry.get("quantity_type", QUANTITY_FINITE),
            quantity=entry.get("quantity"),
        ))
    return product


@pytest.fixture(scope='function')
def make_product(db_session, tenant):
    """Factory: make_product(**overrides) -> persisted Product of tenant A."""
    def _make(**overrides):
        product = build_product(overrides.pop("tenant_id", tenant.id), **overrides)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(client, tenant):
    """Authorization headers for tenant A's owner."""
    return auth_headers(get_auth_token(client, "owner@acme.test", PASSWORD))
