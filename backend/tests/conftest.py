"""
Pytest fixtures for POS backend tests.

Provides an in-memory database app, per-test data cleanup, one branch with
staff for every role, a stocked product and bearer-token helpers.
"""

from decimal import Decimal

import pytest

from pos_api import create_app
from pos_api.extensions import db
from pos_api.models import Branch, Product
from pos_api.services import inventory_service, session_service, user_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POS_TAX_RATE': '0.16',
        'POS_DEFAULT_DISCOUNT_RATE': '0',
        'BCRYPT_ROUNDS': 4,
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
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def settings(app):
    return app.extensions["pos_settings"]


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(name="Centro", code="CEN")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    branch = Branch(name="Norte", code="NOR")
    db_session.add(branch)
    db_session.commit()
    return branch


def make_user(role: str, email: str, branch_id=None, first_name="Test", last_name=None):
    return user_service.create_user(
        patch={
            "email": email,
            "first_name": first_name,
            "last_name": last_name or role.title(),
            "role": role,
            "branch_id": branch_id,
        },
        password=PASSWORD,
        bcrypt_rounds=4,
    )


@pytest.fixture(scope='function')
def owner(db_session):
    return make_user("owner", "owner@pos.test")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("admin", "admin@pos.test")


@pytest.fixture(scope='function')
def manager(db_session, branch):
    return make_user("manager", "manager@pos.test", branch.id)


@pytest.fixture(scope='function')
def cashier(db_session, branch):
    return make_user("cashier", "cashier@pos.test", branch.id)


@pytest.fixture(scope='function')
def auditor(db_session):
    return make_user("auditor", "auditor@pos.test")


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(
        sku="COF-250",
        name="Ground Coffee",
        unit_price=Decimal("100.00"),
        cost_price=Decimal("60.00"),
        min_stock=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(
        sku="TEA-020",
        name="Green Tea",
        unit_price=Decimal("45.50"),
        cost_price=Decimal("20.00"),
    )
    db_session.add(product)
    db_session.commit()
    return product


def stock(product, branch, quantity, average_cost="60.00", min_stock=2):
    return inventory_service.create_inventory(
        patch={
            "product_id": product.id,
            "branch_id": branch.id,
            "current_stock": quantity,
            "average_cost": Decimal(average_cost),
            "min_stock": min_stock,
        },
    )


@pytest.fixture(scope='function')
def inventory(product, branch):
    """Ground Coffee stocked at 10 units in the Centro branch."""
    return stock(product, branch, 10)


def token_for(user) -> str:
    """Open a session for `user` without going through /login."""
    _session, token = session_service.create_session(user.id, ttl_hours=1)
    db.session.commit()
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    return auth_headers(token_for(user))


@pytest.fixture(scope='function')
def owner_headers(owner):
    return headers_for(owner)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return headers_for(manager)


@pytest.fixture(scope='function')
def cashier_headers(cashier):
    return headers_for(cashier)


@pytest.fixture(scope='function')
def auditor_headers(auditor):
    return headers_for(auditor)
