"""
Pytest fixtures for back-office ledger tests.

Provides the application on an in-memory database, a per-test clean
database session, a test client, and factories for inventory items and
invoices. Request builders live in factories.py.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import InventoryItem
from backoffice.services.receivables_service import create_invoice
from backoffice.services.stock_ledger_service import record_opening_balance
from backoffice.time_utils import utcnow
from backoffice.validation import InvoiceLineRequest, InvoiceRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SCHEDULER_ENABLED': False,
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
def make_item(db_session):
    """Factory: inventory item with an opening 'in' movement for its stock."""
    def _make(product_name="Cement bag 50kg", stock="10", sale_price="12.50",
              purchase_price="8.00", reorder_point="2"):
        stock = Decimal(stock)
        item = InventoryItem(
            product_name=product_name,
            unit="unidades",
            category="General",
            purchase_price=Decimal(purchase_price),
            sale_price=Decimal(sale_price),
            initial_stock=stock,
            current_stock=stock,
            reorder_point=Decimal(reorder_point),
        )
        db_session.add(item)
        db_session.flush()
        record_opening_balance(item, stock, "opening balance")
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def make_invoice(db_session):
    """Factory: invoice with a single line worth `total`, due in `due_in_days`."""
    def _make(total="1000.00", due_in_days=30, issue_date=None, client_name="Acme Builders"):
        issue_date = issue_date or utcnow()
        request = InvoiceRequest(
            client_name=client_name,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_in_days),
            items=(InvoiceLineRequest(description="Services", quantity=Decimal("1"), unit_price=Decimal(total)),),
        )
        return create_invoice(request, now=issue_date)

    return _make
