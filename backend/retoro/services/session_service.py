# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Opaque bearer tokens for the mobile app.

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 30-day absolute lifetime, no idle timeout
- Expired sessions are rejected on lookup and purged by the maintenance CLI
- Logout deletes the row
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Session, User
from ..time_utils import utcnow


SESSION_LIFETIME = timedelta(days=30)


@dataclass
class SessionContext:
    """Resolved bearer credential."""
    user: User
    session: Session


@dataclass
class IssuedSession:
    """A freshly created session; `token` is the only copy of the plaintext."""
    session: Session
    token: str

    @property
    def expires_at(self) -> datetime:
        return self.session.expires_at


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: str,
    anonymous_user_id: str | None = None,
    commit: bool = True,
) -> IssuedSession:
    """
    Create new session token for user.

    Returns IssuedSession; the database keeps only the token hash.
    Pass commit=False to fold the insert into the caller's transaction.
    """
    plaintext_token = generate_token()

    now = utcnow()
    session = Session(
        user_id=user_id,
        anonymous_user_id=anonymous_user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + SESSION_LIFETIME,
    )

    db.session.add(session)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return IssuedSession(session=session, token=plaintext_token)


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown or expired.
    """
    if not token:
        return None

    session = db.session.query(Session).filter(
        Session.token_hash == hash_token(token),
        Session.expires_at > utcnow(),
    ).first()

    if not session or not session.user:
        return None

    return SessionContext(user=session.user, session=session)


def delete_session(token: str) -> bool:
    """
    Delete the session for a token (logout).

    Returns True if a session was deleted.
    """
    deleted = db.session.query(Session).filter_by(token_hash=hash_token(token)).delete()
    db.session.commit()
    return deleted > 0


def delete_user_sessions(user_id: str) -> int:
    """Delete every session for a user. Returns count deleted."""
    deleted = db.session.query(Session).filter_by(user_id=user_id).delete()
    db.session.commit()
    return deleted


def cleanup_expired_sessions() -> int:
    """
    Delete sessions past their expiry.

    Returns count of sessions deleted.
    """
    deleted = db.session.query(Session).filter(
        Session.expires_at <= utcnow()
    ).delete()

    db.session.commit()
    return deleted
