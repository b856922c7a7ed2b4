"""
Pytest fixtures for LGW Warehouse backend tests.

Provides an in-memory database, one user per role with ready-made auth
headers, and fakes for push messaging and geocoding.
"""

import os

import pytest
from warehouse import create_app
from warehouse.extensions import db
from warehouse.models import Product, User
from warehouse.services import session_service
from warehouse.services.auth_service import hash_password


PASSWORD = "Password123!"
SAMPLE_LOCATIONS = os.path.join(os.path.dirname(__file__), "data", "batangas-locations.sample.json")


class FakePushSender:
    """Records messages instead of calling FCM."""

    def __init__(self):
        self.sent = []
        self.configured = True

    def send(self, token, title, body, data):
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return f"projects/test/messages/{len(self.sent)}"


class FakeGeocoder:
    """Fixed answers per lower-cased address; everything else misses."""

    def __init__(self):
        self.results = {}
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        if not address:
            return None
        return self.results.get(address.strip().lower())

    def clear(self):
        self.results.clear()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SSE_HEARTBEAT_SECONDS': 0.05,
        'SSE_QUEUE_SIZE': 5,
        'GEOCODING_ENABLED': False,
        'LOCATIONS_FILE': SAMPLE_LOCATIONS,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()
        app.extensions["event_hub"].stop()


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


@pytest.fixture(autouse=True)
def push_sender(app):
    fake = FakePushSender()
    original = app.extensions["push_sender"]
    app.extensions["push_sender"] = fake
    yield fake
    app.extensions["push_sender"] = original


@pytest.fixture(autouse=True)
def geocoder(app):
    fake = FakeGeocoder()
    original = app.extensions["geocoder"]
    app.extensions["geocoder"] = fake
    yield fake
    app.extensions["geocoder"] = original


def make_user(db_session, name: str, email: str, role: str, banned: bool = False) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        email_verified=True,
        banned=banned,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(user: User) -> dict:
    """Create a session directly and return Authorization headers for it."""
    _, token = session_service.create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "Ada Admin", "admin@lgw.test", "admin")


@pytest.fixture
def cashier_user(db_session):
    return make_user(db_session, "Cass Cashier", "cashier@lgw.test", "cashier")


@pytest.fixture
def driver_user(db_session):
    return make_user(db_session, "Dale Driver", "driver@lgw.test", "delivery")


@pytest.fixture
def other_driver(db_session):
    return make_user(db_session, "Olive Other", "other.driver@lgw.test", "delivery")


@pytest.fixture
def plain_user(db_session):
    return make_user(db_session, "Uma User", "user@lgw.test", "user")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def cashier_headers(cashier_user):
    return auth_headers(cashier_user)


@pytest.fixture
def driver_headers(driver_user):
    return auth_headers(driver_user)


@pytest.fixture
def other_driver_headers(other_driver):
    return auth_headers(other_driver)


@pytest.fixture
def user_headers(plain_user):
    return auth_headers(plain_user)


@pytest.fixture
def product(db_session, admin_user):
    p = Product(
        name="Cement Bag",
        sku="CEM-001",
        price_cents=25000,
        stock=10,
        category="Construction",
        created_by_name=admin_user.name,
        created_by_role=admin_user.role,
    )
    db_session.add(p)
    db_session.commit()
    return p


def assignment_payload(driver: User, **overrides) -> dict:
    payload = {
        "quantity": 3,
        "deliveryPersonnel": {"id": driver.id, "email": driver.email},
        "destination": "Poblacion, Batangas City, Batangas",
        "note": "Leave at the gate",
    }
    payload.update(overrides)
    return payload
