"""
Authentication API tests.

Verifies:
- Register / login / logout / session over HTTP
- Magic-link request and verify (email sending captured, not sent)
- Apple and Google routes with fake providers
- Google web callback redirects to the app deep link
"""

import base64
import json
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import TEST_PASSWORD, anonymous_headers, apple_provider, auth_headers, google_provider
from retoro.models import ReturnItem, User
from retoro.routes import auth as auth_routes
from retoro.services import email_service, identity_service


@pytest.fixture
def outbox(monkeypatch):
    """Capture outgoing email instead of calling Mailgun."""
    sent = []

    def fake_send_email(to, subject, text, html=None, reply_to=None):
        sent.append({"to": to, "subject": subject, "text": text, "reply_to": reply_to})

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


def _token_from_email(message: dict) -> str:
    link = next(line for line in message["text"].splitlines() if "token=" in line)
    return parse_qs(urlparse(link.strip()).query)["token"][0]


# =============================================================================
# REGISTER / LOGIN / LOGOUT
# =============================================================================


class TestPasswordRoutes:

    def test_register(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "bob@example.com", "password": TEST_PASSWORD, "name": "Bob",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["email"] == "bob@example.com"
        assert body["user"]["emailVerified"] is False
        assert len(body["session"]["token"]) == 64
        assert body["session"]["expiresAt"].endswith("Z")

    def test_register_invalid_email(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": TEST_PASSWORD})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Validation failed"
        assert body["details"][0]["field"] == "email"

    def test_register_reserved_anonymous_domain(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "device@anonymous.temp", "password": TEST_PASSWORD,
        })
        assert resp.status_code == 400

    def test_register_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "bob@example.com", "password": "short"})
        assert resp.status_code == 400
        assert "at least 8" in resp.get_json()["error"]

    def test_register_duplicate(self, client, db_session, registered):
        resp = client.post("/api/auth/register", json={"email": "alice@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "User with this email already exists"

    def test_register_merges_anonymous_items(self, client, db_session, retailer):
        created = client.post("/api/return-items", headers=anonymous_headers("device-1"), json={
            "retailer_id": retailer.id, "name": "Boots", "purchase_date": "2024-01-01T00:00:00.000Z",
        })
        assert created.status_code == 201

        resp = client.post("/api/auth/register", json={
            "email": "bob@example.com", "password": TEST_PASSWORD, "anonymous_user_id": "device-1",
        })
        assert resp.status_code == 201
        token = resp.get_json()["session"]["token"]

        items = client.get("/api/return-items?includeHistory=true", headers=auth_headers(token)).get_json()
        assert [i["name"] for i in items] == ["Boots"]

    def test_login(self, client, db_session, registered):
        resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["name"] == "Alice"

    @pytest.mark.parametrize("email,password", [
        ("alice@example.com", "Wrong-pass1"),
        ("nobody@example.com", TEST_PASSWORD),
    ])
    def test_login_failure_is_uniform(self, client, db_session, registered, email, password):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid email or password"}

    def test_login_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={})
        assert resp.status_code == 400
        fields = {d["field"] for d in resp.get_json()["details"]}
        assert fields == {"email", "password"}

    def test_logout_revokes_session(self, client, db_session, registered):
        _, token = registered
        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 200

        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200
        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401

    def test_logout_without_token_still_succeeds(self, client, db_session):
        assert client.post("/api/auth/logout").status_code == 200


# =============================================================================
# SESSION
# =============================================================================


class TestSessionRoute:

    def test_authenticated(self, client, db_session, registered):
        user_id, token = registered
        body = client.get("/api/auth/session", headers=auth_headers(token)).get_json()
        assert body == {
            "userId": user_id,
            "email": "alice@example.com",
            "name": "Alice",
            "emailVerified": False,
            "isAnonymous": False,
        }

    def test_anonymous(self, client, db_session):
        body = client.get("/api/auth/session", headers=anonymous_headers("device-9")).get_json()
        assert body == {"userId": "device-9", "isAnonymous": True}

    def test_no_credentials(self, client, db_session):
        resp = client.get("/api/auth/session")
        assert resp.status_code == 401

    def test_invalid_token(self, client, db_session):
        resp = client.get("/api/auth/session", headers=auth_headers("f" * 64))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired session"


# =============================================================================
# MAGIC LINK
# =============================================================================


class TestMagicLinkRoutes:

    def test_request_and_verify(self, client, db_session, outbox):
        resp = client.post("/api/auth/magic-link", json={"email": "Link@Example.com", "name": "Lin"})
        assert resp.status_code == 200
        assert resp.get_json()["email"] == "link@example.com"

        assert len(outbox) == 1
        assert outbox[0]["to"] == "link@example.com"
        assert "/auth/verify?token=" in outbox[0]["text"]
        token = _token_from_email(outbox[0])

        verify = client.post("/api/auth/magic-link/verify", json={"token": token})
        assert verify.status_code == 200
        assert verify.get_json()["user"]["emailVerified"] is True

        again = client.post("/api/auth/magic-link/verify", json={"token": token})
        assert again.status_code == 401

    def test_verify_via_get(self, client, db_session, outbox):
        client.post("/api/auth/magic-link", json={"email": "link@example.com"})
        token = _token_from_email(outbox[0])

        resp = client.get(f"/api/auth/magic-link/verify?token={token}")
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == "link@example.com"

    def test_verify_missing_token(self, client, db_session):
        assert client.get("/api/auth/magic-link/verify").status_code == 400

    def test_email_failure_reported(self, client, db_session, monkeypatch):
        def failing_send(*args, **kwargs):
            raise email_service.EmailDeliveryError("Failed to send email")

        monkeypatch.setattr(email_service, "send_email", failing_send)
        resp = client.post("/api/auth/magic-link", json={"email": "link@example.com"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Failed to send magic link email"


# =============================================================================
# APPLE / GOOGLE
# =============================================================================


class TestOAuthRoutes:

    def test_apple_sign_in(self, client, db_session, monkeypatch):
        provider = apple_provider(email="apple@example.com", name="Ann")
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: provider)

        resp = client.post("/api/auth/apple", json={"identity_token": "header.payload.sig"})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == "apple@example.com"
        assert provider.calls == 1

    def test_apple_requires_identity_token(self, client, db_session):
        resp = client.post("/api/auth/apple", json={})
        assert resp.status_code == 400

    def test_apple_conflict(self, client, db_session, monkeypatch):
        identity_service.authenticate_oauth(apple_provider(subject_id="apple-A"), {})
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: apple_provider(subject_id="apple-B"))

        resp = client.post("/api/auth/apple", json={"identity_token": "t"})
        assert resp.status_code == 409

    def test_apple_missing_email(self, client, db_session, monkeypatch):
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: apple_provider(email=None))
        resp = client.post("/api/auth/apple", json={"identity_token": "t"})
        assert resp.status_code == 400
        assert "Email is required" in resp.get_json()["error"]

    def test_google_native(self, client, db_session, monkeypatch):
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: google_provider())
        resp = client.post("/api/auth/google", json={"code": "auth-code"})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == "alice@example.com"

    def test_google_callback_redirects_with_token(self, client, db_session, monkeypatch, retailer):
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: google_provider())
        client.post("/api/return-items", headers=anonymous_headers("device-g"), json={
            "retailer_id": retailer.id, "purchase_date": "2024-05-01T00:00:00Z",
        })

        state = base64.urlsafe_b64encode(json.dumps({"anonymous_user_id": "device-g"}).encode()).decode()
        resp = client.get(f"/api/auth/google/callback?code=auth-code&state={state}")

        assert resp.status_code == 302
        location = urlparse(resp.headers["Location"])
        assert f"{location.scheme}://{location.netloc}" == "retoro://callback"
        params = parse_qs(location.query)
        assert params["status"] == ["success"]

        user = db_session.query(User).filter_by(email="alice@example.com").one()
        assert db_session.query(ReturnItem).filter_by(user_id=user.id).count() == 1

        session = client.get("/api/auth/session", headers=auth_headers(params["token"][0])).get_json()
        assert session["userId"] == user.id

    def test_google_callback_bad_state_is_ignored(self, client, db_session, monkeypatch):
        monkeypatch.setattr(auth_routes, "get_provider", lambda name: google_provider())
        resp = client.get("/api/auth/google/callback?code=auth-code&state=not-json")
        assert resp.status_code == 302
        assert parse_qs(urlparse(resp.headers["Location"]).query)["status"] == ["success"]

    def test_google_callback_error(self, client, db_session):
        resp = client.get("/api/auth/google/callback?error=access_denied")
        assert resp.status_code == 302
        params = parse_qs(urlparse(resp.headers["Location"]).query)
        assert params["error"] == ["access_denied"]
        assert "message" in params
