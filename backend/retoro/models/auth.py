from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    """
    Durable user identity.

    One row per email. Password-less rows exist for OAuth-only, magic-link
    and anonymous (shadow) accounts. Apple and Google subject ids are each
    unique when present.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.UniqueConstraint("apple_user_id", name="uq_users_apple_user_id"),
        db.UniqueConstraint("google_user_id", name="uq_users_google_user_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), nullable=False, index=True)

    # Bcrypt hash; NULL for OAuth / magic-link / anonymous accounts
    password_hash = db.Column(db.String(255), nullable=True)

    name = db.Column(db.String(255), nullable=True)

    # Provider subject claims
    apple_user_id = db.Column(db.String(255), nullable=True, index=True)
    google_user_id = db.Column(db.String(255), nullable=True, index=True)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    sessions = db.relationship(
        "Session", back_populates="user", cascade="all, delete-orphan"
    )
    settings = db.relationship(
        "UserSettings", back_populates="user", uselist=False,
        cascade="all, delete-orphan",
    )
    return_items = db.relationship(
        "ReturnItem", back_populates="user", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        """Public user summary used in auth responses."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
        }


class Session(db.Model):
    """
    Bearer session bound to a user.

    The plaintext token is only ever returned to the client; the row stores
    its SHA-256 hash. anonymous_user_id remembers which anonymous identity
    was active when the session was issued so later sign-ins can merge it.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_sessions_token_hash"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    anonymous_user_id = db.Column(db.String(255), nullable=True, index=True)
    token_hash = db.Column(db.String(64), nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="sessions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "anonymous_user_id": self.anonymous_user_id,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
        }


class MagicLinkToken(db.Model):
    """Single-use email sign-in token (15 minute lifetime)."""
    __tablename__ = "magic_link_tokens"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_magic_link_tokens_token_hash"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, index=True)
    anonymous_user_id = db.Column(db.String(255), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class UserSettings(db.Model):
    """Per-user preferences. Created with defaults when an account is created."""
    __tablename__ = "user_settings"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_user_settings_user_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    preferred_currency = db.Column(db.String(3), nullable=False, default="USD")
    notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)
    email_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)
    push_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="settings")

    def to_dict(self) -> dict:
        return {
            "preferred_currency": self.preferred_currency,
            "notifications_enabled": self.notifications_enabled,
            "email_notifications_enabled": self.email_notifications_enabled,
            "push_notifications_enabled": self.push_notifications_enabled,
        }
