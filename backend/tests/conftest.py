"""
Pytest fixtures for stockledger tests.

Provides an in-memory database, eager Celery, a frozen clock, and two
companies with products so tenant isolation can be checked everywhere.
"""

from datetime import datetime, timedelta

import pytest

from stockledger import create_app
from stockledger.extensions import db, status_cache
from stockledger.models import Company, Product
from stockledger.services import inventory_service
from stockledger.time_utils import set_clock


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'CACHE_REDIS_URL': None,
    'CELERY': {
        'broker_url': 'memory://',
        'result_backend': None,
        'task_always_eager': True,
        'task_eager_propagates': False,
        'task_ignore_result': True,
    },
}


class FrozenClock:
    """Deterministic replacement for the system clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def clock():
    """Freeze utcnow() at a fixed instant for every test."""
    frozen = FrozenClock(datetime(2025, 3, 14, 12, 0, 0))
    set_clock(frozen)
    yield frozen
    set_clock(None)


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        status_cache.clear()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    company = Company(name="Company A - Acme Corp", code="ACME", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    company = Company(name="Company B - Beta Inc", code="BETA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


def make_product(session, company, sku, cost_cents, price_cents, name=None, is_active=True):
    product = Product(
        company_id=company.id,
        sku=sku,
        name=name or f"Product {sku}",
        cost_price_cents=cost_cents,
        sale_price_cents=price_cents,
        is_active=is_active,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, company_a):
    """cost 100.00, price 150.00"""
    return make_product(db_session, company_a, "PROD-001", 10000, 15000, name="Widget")


@pytest.fixture(scope='function')
def product_a2(db_session, company_a):
    """cost 200.00, price 300.00"""
    return make_product(db_session, company_a, "PROD-002", 20000, 30000, name="Gadget")


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    return make_product(db_session, company_b, "PROD-B-001", 500, 900, name="Beta Thing")


def stock_up(product, quantity, unit_cost_cents=None):
    """Record an ENTRY for a product at its cost price unless told otherwise."""
    return inventory_service.record_entry(
        company_id=product.company_id,
        product_id=product.id,
        quantity=quantity,
        unit_cost_cents=product.cost_price_cents if unit_cost_cents is None else unit_cost_cents,
    )


def company_headers(company) -> dict:
    return {'X-Company-Id': str(company.id)}
