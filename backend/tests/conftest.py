"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, tenant isolation fixtures, and test client.
"""

import os
import tempfile

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Device, Location, Product, Tenant
from stockledger.services.tenant_service import tenant_scope


@pytest.fixture(scope='session')
def app():
    """Create application for testing (in-memory SQLite, one shared connection)."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
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


def _make_tenant(session, name, slug, is_active=True):
    tenant = Tenant(name=name, slug=slug, is_active=is_active)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first tenant)."""
    return _make_tenant(db_session, "Tenant A - Acme Corp", "acme")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second tenant)."""
    return _make_tenant(db_session, "Tenant B - Beta Inc", "beta")


@pytest.fixture(scope='function')
def inactive_tenant(db_session):
    """Create a deactivated tenant."""
    return _make_tenant(db_session, "Dormant LLC", "dormant", is_active=False)


@pytest.fixture(scope='function')
def warehouse_a(db_session, tenant_a):
    location = Location(tenant_id=tenant_a.id, name="Main Warehouse", location_type="WAREHOUSE")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def store_a(db_session, tenant_a):
    location = Location(tenant_id=tenant_a.id, name="Front Store", location_type="STORE")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def warehouse_b(db_session, tenant_b):
    location = Location(tenant_id=tenant_b.id, name="Beta Warehouse", location_type="WAREHOUSE")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a product with an opening quantity (test setup only)."""
    def _make(tenant, sku, quantity=0, **kwargs):
        kwargs.setdefault("name", f"Product {sku}")
        product = Product(tenant_id=tenant.id, sku=sku, quantity=quantity, **kwargs)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product, tenant_a):
    return make_product(tenant_a, "SKU-A", quantity=10, barcode="0001112223334", cost_cents=250)


@pytest.fixture(scope='function')
def product_b(make_product, tenant_b):
    return make_product(tenant_b, "SKU-B", quantity=7, barcode="9998887776665", cost_cents=100)


@pytest.fixture(scope='function')
def device_a(db_session, tenant_a):
    device = Device(tenant_id=tenant_a.id, name="Scanner 1", status="ACTIVE")
    db_session.add(device)
    db_session.commit()
    return device


@pytest.fixture(scope='function')
def scope_a(tenant_a):
    """Tenant-scoped handle for Tenant A, released after the test."""
    with tenant_scope(tenant_a.id) as scope:
        yield scope


@pytest.fixture(scope='function')
def scope_b(tenant_b):
    """Tenant-scoped handle for Tenant B, released after the test."""
    with tenant_scope(tenant_b.id) as scope:
        yield scope


@pytest.fixture(scope='function')
def file_app():
    """
    Application on a file-backed SQLite database.

    Each thread checks out its own pooled connection, so concurrent writers
    really contend on the database lock.
    """
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'check_same_thread': False, 'timeout': 30},
        },
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()
