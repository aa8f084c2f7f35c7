"""
Pytest fixtures for possync backend tests.

Provides test database setup, a push helper, and test client.
"""

import pytest
from possync import create_app
from possync.extensions import db
from possync.models import Account, Item
from possync.services import sync_service


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


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
def acme_account(db_session):
    """Account whose vouchers are prefixed ACM."""
    account = Account(user_id=USER_ID, company_name="Acme Traders")
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def stocked_item(db_session):
    """Item with 10 units on hand, stored through a push."""
    result = push(items=[item_payload("item-1", inventory_qty=10)])
    assert result["items"]["synced"][0]["action"] == "created"
    return db_session.get(Item, (USER_ID, "item-1"))


def push(user_id: str = USER_ID, **groups) -> dict:
    """Helper to push a batch for a user."""
    return sync_service.push_changes(user_id, groups)


def item_payload(item_id: str, **overrides) -> dict:
    """Helper to build a client item record."""
    payload = {
        "id": item_id,
        "name": f"Item {item_id}",
        "barcode": "4006381333931",
        "price": 2.5,
        "unit": "piece",
        "inventory_qty": 0,
        "updated_at": "2024-03-01T10:00:00.000Z",
        "created_at": "2024-03-01T10:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def customer_payload(customer_id: str, **overrides) -> dict:
    """Helper to build a client customer record."""
    payload = {
        "id": customer_id,
        "name": f"Customer {customer_id}",
        "phone": "+1 555 0100",
        "updated_at": "2024-03-01T10:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def transaction_payload(tx_id: str, lines=None, **overrides) -> dict:
    """Helper to build a client transaction record."""
    payload = {
        "id": tx_id,
        "provisional_voucher": f"TMP-{tx_id}",
        "date": "2024-03-01T11:00:00.000Z",
        "subtotal": 7.5,
        "grand_total": 7.5,
        "item_count": 1,
        "unit_count": 3,
        "payment_type": "cash",
        "status": "completed",
        "lines": lines if lines is not None else [],
        "updated_at": "2024-03-01T11:00:00.000Z",
    }
    payload.update(overrides)
    return payload


def auth_headers(user_id: str = USER_ID) -> dict:
    """Helper to create the trusted user id header."""
    return {'X-User-Id': user_id}
