"""
Pytest fixtures for stockbill backend tests.

Provides an in-memory application, a per-test clean database, catalog
fixtures and a seeded INVOICE sequence.
"""

import pytest
from stockbill import create_app
from stockbill.extensions import db
from stockbill.models import DocumentSequence, DocumentType, Product
from stockbill.services import sequence_service


ACTOR_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_DEFAULT_TAX_PERCENT': '19',
        'INVOICE_DEFAULT_CUSTOMER_NAME': 'General Customer',
        'STOCK_ALLOW_NEGATIVE': False,
        'DB_RETRY_ATTEMPTS': 1,
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
def invoice_sequence(db_session):
    """INVOICE sequence: FAC-<year>-000001 onwards."""
    seq = sequence_service.seed_sequence(
        DocumentType.INVOICE,
        prefix="FAC",
        include_year=True,
        pad_width=6,
    )
    db_session.commit()
    return seq


@pytest.fixture(scope='function')
def product_a(db_session):
    product = Product(
        code="PROD-A-001",
        name="Product A",
        purchase_price_cents=1500,
        sale_price_cents=2300,
        quantity=10,
        min_stock=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    product = Product(
        code="PROD-B-001",
        name="Product B",
        purchase_price_cents=1800,
        sale_price_cents=2500,
        quantity=5,
        min_stock=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


def quantity_of(product_id: int) -> int:
    """Read quantity straight from the store, bypassing the identity map."""
    return db.session.query(Product.quantity).filter(Product.id == product_id).scalar()


def next_number_of(document_type=DocumentType.INVOICE) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter(DocumentSequence.document_type == document_type)
        .scalar()
    )


def actor_headers(user_id: int = ACTOR_ID) -> dict:
    """Headers the upstream auth gateway would forward."""
    return {'X-User-Id': str(user_id)}
