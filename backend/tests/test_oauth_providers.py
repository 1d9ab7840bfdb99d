"""
OAuth provider tests.

Apple identity tokens are signed with a throwaway RSA key served by a fake
JWKS client; Google's token and userinfo endpoints are answered by an httpx
MockTransport. Nothing leaves the process.
"""

import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from conftest import TEST_PASSWORD
from retoro.errors import InvalidToken, MissingEmail, UpstreamError
from retoro.models import Session, User
from retoro.services import identity_service, oauth_providers
from retoro.services.oauth_providers import APPLE_ISSUER, AppleProvider, GoogleProvider


BUNDLE_ID = "com.retoro.app"


@pytest.fixture(scope="module")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


class FakeJWKClient:
    def __init__(self, public_key):
        self.public_key = public_key

    def get_signing_key_from_jwt(self, token):
        return type("SigningKey", (), {"key": self.public_key})()


def _apple_token(private_key, **overrides):
    now = int(time.time())
    claims = {
        "iss": APPLE_ISSUER,
        "aud": BUNDLE_ID,
        "sub": "001234.abcdef",
        "iat": now,
        "exp": now + 600,
        "email": "alice@privaterelay.appleid.com",
        "email_verified": "true",
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": "test-key"})


# =============================================================================
# APPLE
# =============================================================================


class TestAppleProvider:

    def _provider(self, signing_key):
        return AppleProvider(client_id=BUNDLE_ID, jwk_client=FakeJWKClient(signing_key.public_key()))

    def test_valid_token(self, signing_key):
        identity = self._provider(signing_key).verify_and_fetch_identity({
            "identity_token": _apple_token(signing_key),
        })
        assert identity.subject_id == "001234.abcdef"
        assert identity.email == "alice@privaterelay.appleid.com"
        assert identity.email_verified is True
        assert identity.display_name is None

    def test_name_from_user_data_but_not_email(self, signing_key):
        identity = self._provider(signing_key).verify_and_fetch_identity({
            "identity_token": _apple_token(signing_key, email=None, email_verified=False),
            "user_data": {"name": {"firstName": "Alice", "lastName": "Smith"}, "email": "alice@example.com"},
        })
        assert identity.email is None
        assert identity.email_verified is False
        assert identity.display_name == "Alice Smith"

    def test_malformed_user_data_ignored(self, signing_key):
        identity = self._provider(signing_key).verify_and_fetch_identity({
            "identity_token": _apple_token(signing_key),
            "user_data": {"name": "Alice"},
        })
        assert identity.display_name is None

    def test_token_without_subject_rejected(self, signing_key):
        with pytest.raises(InvalidToken):
            self._provider(signing_key).verify_and_fetch_identity({
                "identity_token": _apple_token(signing_key, sub=None),
            })

    def test_wrong_audience_rejected(self, signing_key):
        with pytest.raises(InvalidToken):
            self._provider(signing_key).verify_and_fetch_identity({
                "identity_token": _apple_token(signing_key, aud="com.someone.else"),
            })

    def test_wrong_issuer_rejected(self, signing_key):
        with pytest.raises(InvalidToken):
            self._provider(signing_key).verify_and_fetch_identity({
                "identity_token": _apple_token(signing_key, iss="https://evil.example.com"),
            })

    def test_expired_token_rejected(self, signing_key):
        past = int(time.time()) - 3600
        with pytest.raises(InvalidToken):
            self._provider(signing_key).verify_and_fetch_identity({
                "identity_token": _apple_token(signing_key, iat=past - 600, exp=past),
            })

    def test_signature_from_other_key_rejected(self, signing_key):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(InvalidToken):
            self._provider(signing_key).verify_and_fetch_identity({
                "identity_token": _apple_token(other_key),
            })


# =============================================================================
# APPLE EMAIL AND ACCOUNT RESOLUTION
# =============================================================================


class TestAppleEmailSource:
    """The email used to find or create an account comes only from the signed token."""

    def _sign_in(self, signing_key, claims, user_data):
        provider = AppleProvider(client_id=BUNDLE_ID, jwk_client=FakeJWKClient(signing_key.public_key()))
        return identity_service.authenticate_oauth(provider, {
            "identity_token": _apple_token(signing_key, **claims),
            "user_data": user_data,
        })

    def test_user_data_email_cannot_link_existing_account(self, signing_key, db_session):
        victim = identity_service.register_user("victim@example.com", TEST_PASSWORD)

        with pytest.raises(MissingEmail):
            self._sign_in(signing_key, {"sub": "other.sub", "email": None}, {"email": "victim@example.com"})

        user = db_session.get(User, victim.user.id)
        assert user.apple_user_id is None
        assert db_session.query(Session).filter_by(user_id=user.id).count() == 1

    def test_user_data_email_cannot_create_account(self, signing_key, db_session):
        with pytest.raises(MissingEmail):
            self._sign_in(signing_key, {"sub": "new.sub", "email": None}, {"email": "someone@example.com"})
        assert db_session.query(User).count() == 0

    def test_token_email_links_existing_account(self, signing_key, db_session):
        existing = identity_service.register_user("alice@example.com", TEST_PASSWORD)

        result = self._sign_in(
            signing_key,
            {"sub": "alice.sub", "email": "alice@example.com"},
            {"email": "mallory@example.com"},
        )
        assert result.user.id == existing.user.id
        assert db_session.get(User, existing.user.id).apple_user_id == "alice.sub"


# =============================================================================
# GOOGLE
# =============================================================================


def _mock_google(monkeypatch, handler):
    real_client = httpx.Client

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(oauth_providers.httpx, "Client", client_factory)


def _google():
    return GoogleProvider("client-id", "client-secret", "https://api.retoro.test/api/auth/google/callback")


class TestGoogleProvider:

    def test_code_exchange_and_userinfo(self, monkeypatch):
        seen = {}

        def handler(request):
            if request.url == oauth_providers.GOOGLE_TOKEN_URL:
                seen["token_body"] = request.content.decode()
                return httpx.Response(200, json={"access_token": "at-123"})
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={
                "id": "10987", "email": "alice@gmail.com", "verified_email": True, "name": "Alice G",
            })

        _mock_google(monkeypatch, handler)
        identity = _google().verify_and_fetch_identity({"code": "auth-code"})

        assert identity.subject_id == "10987"
        assert identity.email == "alice@gmail.com"
        assert identity.email_verified is True
        assert identity.display_name == "Alice G"
        assert "code=auth-code" in seen["token_body"]
        assert "grant_type=authorization_code" in seen["token_body"]
        assert seen["auth"] == "Bearer at-123"

    def test_token_endpoint_error(self, monkeypatch):
        _mock_google(monkeypatch, lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(UpstreamError) as exc:
            _google().verify_and_fetch_identity({"code": "bad"})
        # Provider details stay in the logs
        assert "invalid_grant" not in exc.value.message

    def test_missing_access_token(self, monkeypatch):
        _mock_google(monkeypatch, lambda request: httpx.Response(200, json={}))
        with pytest.raises(UpstreamError):
            _google().verify_and_fetch_identity({"code": "auth-code"})

    def test_unverified_email_flag(self, monkeypatch):
        def handler(request):
            if request.url == oauth_providers.GOOGLE_TOKEN_URL:
                return httpx.Response(200, json={"access_token": "at"})
            return httpx.Response(200, json={"sub": "s-1", "email": "x@gmail.com", "email_verified": False})

        _mock_google(monkeypatch, handler)
        identity = _google().verify_and_fetch_identity({"code": "auth-code"})
        assert identity.subject_id == "s-1"
        assert identity.email_verified is False

    def test_not_configured(self):
        with pytest.raises(UpstreamError):
            GoogleProvider(None, None, None).verify_and_fetch_identity({"code": "auth-code"})
