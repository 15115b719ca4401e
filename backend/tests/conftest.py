"""
Pytest fixtures for SimplePOS backend tests.

Provides test database setup, catalog/transaction factories, and test client.
"""

from decimal import Decimal

import pytest
from simplepos import create_app
from simplepos.extensions import db
from simplepos.models import Item, ItemBarcode
from simplepos.services import transaction_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_LIST_LIMIT': 1000,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
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
        db.session.remove()


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: persist an active item with one or more barcodes."""
    def _make(
        name="Coca Cola",
        price="2.99",
        tax_rate="0.0875",
        quantity=24,
        barcodes=("123",),
        cost="1.50",
        is_active=True,
    ):
        item = Item(
            name=name,
            price=Decimal(price),
            tax_rate=Decimal(tax_rate),
            quantity=quantity,
            cost=Decimal(cost),
            pack_size=1,
            is_active=is_active,
        )
        item.barcodes = [ItemBarcode(barcode=code) for code in barcodes]
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def catalog(make_item):
    """Two items: cola (123) and chips (456), both taxed at 8.75%."""
    return {
        "cola": make_item(name="Coca Cola", price="2.99", quantity=24, barcodes=("123",)),
        "chips": make_item(name="Chips", price="3.49", quantity=12, barcodes=("456",), cost="1.75"),
    }


@pytest.fixture(scope='function')
def make_sale(db_session, catalog):
    """
    Factory: open a transaction, scan (barcode, qty) pairs, finalize with cash.

    Returns (transaction_id, [line_ids]).
    """
    def _make(scans=(("123", 1), ("456", 2)), cash="50.00"):
        tx = transaction_service.open_transaction()
        tx_id = tx.id
        line_ids = []
        for barcode, qty in scans:
            line, _ = transaction_service.add_line(tx_id, barcode, qty)
            line_ids.append(line.id)
        transaction_service.finalize_transaction(tx_id, cash)
        return tx_id, line_ids
    return _make
