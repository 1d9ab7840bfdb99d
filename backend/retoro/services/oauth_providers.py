# Overview: Sign in with Apple / Google behind one provider interface.

"""
OAuth Providers

Every provider turns a client credential into an OAuthIdentity:

    verify_and_fetch_identity(credential) -> OAuthIdentity(subject_id, email, email_verified, display_name)

and names the User column holding its subject claim (subject_field).
identity_service applies one resolution policy to all providers.

- Apple: the app posts the identity token (JWT). It is verified against
  Apple's published JWKS, issuer https://appleid.apple.com, audience = bundle id.
  Apple only sends the user's name on the first sign-in, in user_data;
  the email is taken from the token alone.
- Google: the app (or the web callback) posts an authorization code. It is
  exchanged for an access token, then the userinfo endpoint is read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
import jwt
from flask import current_app
from jwt import PyJWKClient
from jwt.exceptions import InvalidTokenError, PyJWKClientError

from ..errors import InvalidToken, UpstreamError

logger = logging.getLogger(__name__)


APPLE_JWKS_URL = "https://appleid.apple.com/auth/keys"
APPLE_ISSUER = "https://appleid.apple.com"

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass(frozen=True)
class OAuthIdentity:
    subject_id: str
    email: str | None
    email_verified: bool
    display_name: str | None = None


class OAuthProvider:
    """Base provider. Subclasses set name/subject_field and verify credentials."""
    name = ""
    subject_field = ""

    def verify_and_fetch_identity(self, credential: dict[str, Any]) -> OAuthIdentity:
        raise NotImplementedError


def _as_bool(value: Any) -> bool:
    # Apple sends email_verified as either a bool or the string "true"/"false"
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true"
    return False


class AppleProvider(OAuthProvider):
    name = "apple"
    subject_field = "apple_user_id"

    def __init__(self, client_id: str, jwk_client: PyJWKClient | None = None):
        self.client_id = client_id
        self._jwk_client = jwk_client

    @property
    def jwk_client(self) -> PyJWKClient:
        if self._jwk_client is None:
            self._jwk_client = PyJWKClient(APPLE_JWKS_URL)
        return self._jwk_client

    def decode_identity_token(self, identity_token: str) -> dict:
        try:
            signing_key = self.jwk_client.get_signing_key_from_jwt(identity_token).key
        except PyJWKClientError as exc:
            logger.error("Apple JWKS lookup failed: %s", exc)
            raise UpstreamError("Failed to authenticate with Apple")
        except InvalidTokenError as exc:
            logger.warning("Apple token verification failed: %s", exc)
            raise InvalidToken("Invalid Apple identity token")

        try:
            return jwt.decode(
                identity_token,
                signing_key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=APPLE_ISSUER,
                options={"require": ["sub", "exp", "iat"]},
            )
        except InvalidTokenError as exc:
            logger.warning("Apple token verification failed: %s", exc)
            raise InvalidToken("Invalid Apple identity token")

    def verify_and_fetch_identity(self, credential: dict[str, Any]) -> OAuthIdentity:
        payload = self.decode_identity_token(credential["identity_token"])
        user_data = credential.get("user_data") or {}
        if not isinstance(user_data, dict):
            user_data = {}

        name_parts = user_data.get("name")
        if not isinstance(name_parts, dict):
            name_parts = {}
        full_name = " ".join(
            part for part in (name_parts.get("firstName"), name_parts.get("lastName")) if part
        ) or None

        return OAuthIdentity(
            subject_id=payload["sub"],
            # Email comes from the signed token only, never from user_data
            email=payload.get("email"),
            email_verified=_as_bool(payload.get("email_verified")),
            display_name=full_name,
        )


class GoogleProvider(OAuthProvider):
    name = "google"
    subject_field = "google_user_id"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None,
        timeout: float = 15.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def exchange_code(self, client: httpx.Client, code: str, redirect_uri: str) -> str:
        response = client.post(GOOGLE_TOKEN_URL, data={
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        })
        if response.is_error:
            logger.error("Google token exchange error (%s): %s", response.status_code, response.text)
            raise UpstreamError("Failed to exchange Google authorization code")

        access_token = response.json().get("access_token")
        if not access_token:
            raise UpstreamError("No access token received from Google")
        return access_token

    def fetch_userinfo(self, client: httpx.Client, access_token: str) -> dict:
        response = client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.is_error:
            logger.error("Google userinfo error (%s): %s", response.status_code, response.text)
            raise UpstreamError("Failed to get user info from Google")
        return response.json()

    def verify_and_fetch_identity(self, credential: dict[str, Any]) -> OAuthIdentity:
        if not self.client_id or not self.client_secret:
            raise UpstreamError("Google OAuth is not configured")

        redirect_uri = credential.get("redirect_uri") or self.redirect_uri
        if not redirect_uri:
            raise UpstreamError("Google OAuth redirect URI is not configured")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                access_token = self.exchange_code(client, credential["code"], redirect_uri)
                userinfo = self.fetch_userinfo(client, access_token)
        except httpx.HTTPError as exc:
            logger.error("Google OAuth request failed: %s", exc)
            raise UpstreamError("Failed to authenticate with Google")

        # v2 userinfo names the subject "id"; OpenID userinfo names it "sub"
        subject_id = userinfo.get("sub") or userinfo.get("id")
        if not subject_id:
            raise UpstreamError("No user id received from Google")

        return OAuthIdentity(
            subject_id=str(subject_id),
            email=userinfo.get("email"),
            email_verified=userinfo.get("email_verified", userinfo.get("verified_email")) is True,
            display_name=userinfo.get("name"),
        )


def get_provider(name: str) -> OAuthProvider:
    """Build a provider from the current app config."""
    config = current_app.config
    if name == AppleProvider.name:
        return AppleProvider(client_id=config["APPLE_BUNDLE_ID"])
    if name == GoogleProvider.name:
        return GoogleProvider(
            client_id=config.get("GOOGLE_CLIENT_ID"),
            client_secret=config.get("GOOGLE_CLIENT_SECRET"),
            redirect_uri=config.get("GOOGLE_REDIRECT_URI"),
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 15.0),
        )
    raise ValueError(f"Unknown OAuth provider: {name}")
