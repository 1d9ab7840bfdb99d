"""
Pytest fixtures for Retoro backend tests.

Provides test database setup, user/retailer fixtures, and test client.
No fixture touches the network: OAuth providers are faked and outbound
HTTP helpers are monkeypatched per test.
"""

from datetime import datetime

import pytest
from retoro import create_app
from retoro.extensions import db
from retoro.models import RetailerPolicy
from retoro.services import auth_service, identity_service
from retoro.services.oauth_providers import OAuthIdentity, OAuthProvider


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'EXCHANGE_RATE_API_KEY': None,
        'N8N_INVOICE_WEBHOOK_URL': 'https://n8n.test/webhook/invoice',
        'MAILGUN_API_KEY': 'test-key',
        'MAILGUN_DOMAIN': 'mg.retoro.test',
        'RETORO_API_KEY': 'automation-key',
        'APP_CALLBACK_URL': 'retoro://callback',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost keeps the suite fast; hashes stay verifiable."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


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

        # Rates are cached per app; start every test from the fallback table
        app.extensions.pop("retoro.exchange_rates", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def retailer(db_session):
    """A 30-day retailer."""
    retailer = RetailerPolicy(name="Amazon", return_window_days=30, website_url="https://amazon.com",
                              has_free_returns=True, is_custom=False)
    db_session.add(retailer)
    db_session.commit()
    return retailer


@pytest.fixture(scope='function')
def unlimited_retailer(db_session):
    retailer = RetailerPolicy(name="Patagonia", return_window_days=0, has_free_returns=True, is_custom=False)
    db_session.add(retailer)
    db_session.commit()
    return retailer


@pytest.fixture(scope='function')
def registered(db_session):
    """A password account with a live session: (user_id, token)."""
    result = identity_service.register_user("alice@example.com", TEST_PASSWORD, name="Alice")
    return result.user.id, result.issued.token


class FakeProvider(OAuthProvider):
    """Provider double returning a fixed identity without any network call."""

    def __init__(self, name: str, subject_field: str, identity: OAuthIdentity):
        self.name = name
        self.subject_field = subject_field
        self.identity = identity
        self.calls = 0

    def verify_and_fetch_identity(self, credential):
        self.calls += 1
        return self.identity


def apple_provider(subject_id="apple-sub-1", email="alice@example.com", verified=True, name=None):
    return FakeProvider("apple", "apple_user_id", OAuthIdentity(subject_id, email, verified, name))


def google_provider(subject_id="google-sub-1", email="alice@example.com", verified=True, name=None):
    return FakeProvider("google", "google_user_id", OAuthIdentity(subject_id, email, verified, name))


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def anonymous_headers(anonymous_id: str) -> dict:
    return {'X-Anonymous-User-Id': anonymous_id}


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S.000Z")
