# Overview: Identity reconciliation; maps every sign-in path onto one durable User and merges anonymous data.

"""
Identity Reconciliation Service

Every authentication path ends in the same place: exactly one User row,
then (optionally) a merge of the caller's anonymous data into it, then a
fresh session.

SIGN-IN PATHS:
- Password: existing user with a password hash that verifies. Failures
  never reveal whether the email exists.
- Magic link: the request creates a password-less user if the email is new;
  redeeming the single-use, 15 minute token signs that user in.
- OAuth (Apple, Google): one policy, parameterized by the provider's
  subject column:
    1. user with this subject id            -> sign in (fill a missing name)
    2. user with this email, other subject  -> AccountConflict, no mutation
    3. user with this email, no subject     -> link subject, adopt verified flag
    4. nobody                               -> create user + default settings

ANONYMOUS CALLERS:
Before registering, the app identifies itself with an opaque anonymous id.
Domain code sees an AnonymousOwner; storage backs it with a shadow User
(email "<anonymous id>@anonymous.temp") so ReturnItem.user_id always
references a real row.

MERGE:
Sessions tagged with the anonymous id and everything owned by its shadow
user are reassigned in the same transaction that issues the new session.
A failed merge is rolled back as a unit and logged; sign-in still succeeds.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    AccountConflict,
    ConflictError,
    DuplicateAccount,
    InvalidCredentials,
    InvalidToken,
    MissingEmail,
    ValidationError,
)
from ..extensions import db
from ..models import MagicLinkToken, RetailerPolicy, ReturnItem, Session, User
from ..time_utils import to_utc_z, utcnow
from . import auth_service, session_service, settings_service
from .auth_service import PasswordValidationError
from .oauth_providers import OAuthIdentity, OAuthProvider

logger = logging.getLogger(__name__)


ANONYMOUS_EMAIL_DOMAIN = "anonymous.temp"
ANONYMOUS_DISPLAY_NAME = "Anonymous User"
MAGIC_LINK_LIFETIME = timedelta(minutes=15)

# Compared against when the email is unknown so both failure paths cost one bcrypt check
_DUMMY_PASSWORD_HASH: str | None = None


# =============================================================================
# OWNERS AND RESULTS
# =============================================================================

@dataclass(frozen=True)
class RegisteredOwner:
    user_id: str
    is_anonymous = False


@dataclass(frozen=True)
class AnonymousOwner:
    anonymous_id: str
    user_id: str
    is_anonymous = True


Owner = Union[RegisteredOwner, AnonymousOwner]


@dataclass(frozen=True)
class MergeSummary:
    sessions: int = 0
    return_items: int = 0
    retailers: int = 0


@dataclass
class AuthResult:
    user: User
    issued: session_service.IssuedSession
    merge: MergeSummary | None = None

    def to_dict(self) -> dict:
        return {
            "user": self.user.to_dict(),
            "session": {
                "token": self.issued.token,
                "expiresAt": to_utc_z(self.issued.expires_at),
            },
        }


# =============================================================================
# LOOKUPS
# =============================================================================

def normalize_email(email: str) -> str:
    return email.strip().lower()


def anonymous_email(anonymous_id: str) -> str:
    return f"{anonymous_id}@{ANONYMOUS_EMAIL_DOMAIN}"


def is_anonymous_user(user: User) -> bool:
    return user.email.endswith(f"@{ANONYMOUS_EMAIL_DOMAIN}")


def find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def _new_account(email: str, name: str | None = None, **fields) -> User:
    """Add a user and its default settings. Caller commits."""
    user = User(email=email, name=name, **fields)
    db.session.add(user)
    db.session.flush()
    settings_service.create_default_settings(user.id)
    return user


# =============================================================================
# ANONYMOUS OWNERS
# =============================================================================

def get_or_create_anonymous_user(anonymous_id: str) -> User:
    """
    Resolve an anonymous id to its shadow user, creating it on first use.

    Idempotent. A concurrent request that creates the same shadow row first
    wins; this request re-reads it.
    """
    email = anonymous_email(anonymous_id)
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        return user

    user = User(email=email, name=ANONYMOUS_DISPLAY_NAME, email_verified=False)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        user = db.session.query(User).filter_by(email=email).first()
        if user is None:
            raise ConflictError("Could not resolve anonymous user")
    return user


def resolve_anonymous_owner(anonymous_id: str) -> AnonymousOwner:
    user = get_or_create_anonymous_user(anonymous_id)
    return AnonymousOwner(anonymous_id=anonymous_id, user_id=user.id)


# =============================================================================
# MERGE + SESSION ISSUE
# =============================================================================

def merge_anonymous_data(user: User, anonymous_id: str) -> MergeSummary:
    """
    Reassign the anonymous identity's sessions, return items and custom
    retailers to `user`.

    Runs inside the caller's transaction and does not commit. On a database
    error the whole transaction is rolled back and an empty summary returned.
    """
    user_id = user.id
    try:
        moved_sessions = db.session.query(Session).filter(
            Session.anonymous_user_id == anonymous_id,
            Session.user_id != user_id,
        ).update({Session.user_id: user_id}, synchronize_session=False)

        moved_items = 0
        moved_retailers = 0
        shadow = db.session.query(User).filter_by(email=anonymous_email(anonymous_id)).first()
        if shadow is not None and shadow.id != user_id:
            now = utcnow()
            moved_items = db.session.query(ReturnItem).filter(
                ReturnItem.user_id == shadow.id
            ).update(
                {ReturnItem.user_id: user_id, ReturnItem.updated_at: now},
                synchronize_session=False,
            )
            moved_retailers = db.session.query(RetailerPolicy).filter(
                RetailerPolicy.created_by == shadow.id
            ).update({RetailerPolicy.created_by: user_id}, synchronize_session=False)

        db.session.flush()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to migrate anonymous data for %s to user %s", anonymous_id, user_id)
        return MergeSummary()

    # Bulk updates bypass the identity map
    db.session.expire_all()

    summary = MergeSummary(sessions=moved_sessions, return_items=moved_items, retailers=moved_retailers)
    logger.info(
        "Migrated anonymous data for %s to user %s (sessions=%d, items=%d, retailers=%d)",
        anonymous_id, user_id, summary.sessions, summary.return_items, summary.retailers,
    )
    return summary


def complete_authentication(user: User, anonymous_id: str | None = None) -> AuthResult:
    """Merge anonymous data (if any) and issue a new session, committed together."""
    user_id = user.id
    merge = merge_anonymous_data(user, anonymous_id) if anonymous_id else None

    issued = session_service.create_session(user_id, anonymous_user_id=anonymous_id, commit=False)
    db.session.commit()

    return AuthResult(user=db.session.get(User, user_id), issued=issued, merge=merge)


# =============================================================================
# PASSWORD
# =============================================================================

def register_user(
    email: str,
    password: str,
    name: str | None = None,
    anonymous_id: str | None = None,
) -> AuthResult:
    """
    Create a password account.

    Raises:
        DuplicateAccount: If the email is taken
        ValidationError: If the password is too weak
    """
    email = normalize_email(email)
    if find_user_by_email(email):
        raise DuplicateAccount()

    try:
        password_hash = auth_service.hash_password(password)
    except PasswordValidationError as e:
        raise ValidationError(str(e))

    try:
        user = _new_account(email, name=name, password_hash=password_hash, email_verified=False)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateAccount()

    logger.info("Registered user %s", user.id)
    return complete_authentication(user, anonymous_id)


def authenticate_password(email: str, password: str, anonymous_id: str | None = None) -> AuthResult:
    """
    Sign in with email and password.

    Raises:
        InvalidCredentials: Unknown email, password-less account, or wrong password
    """
    global _DUMMY_PASSWORD_HASH

    user = find_user_by_email(email)
    if user is None or not user.password_hash:
        if _DUMMY_PASSWORD_HASH is None:
            _DUMMY_PASSWORD_HASH = auth_service.hash_password("Dummy-Passw0rd")
        auth_service.verify_password(password, _DUMMY_PASSWORD_HASH)
        raise InvalidCredentials()

    if not auth_service.verify_password(password, user.password_hash):
        raise InvalidCredentials()

    return complete_authentication(user, anonymous_id)


# =============================================================================
# MAGIC LINK
# =============================================================================

def request_magic_link(
    email: str,
    name: str | None = None,
    anonymous_id: str | None = None,
) -> tuple[User, str]:
    """
    Ensure a user exists for the email and mint a sign-in token.

    Returns (user, plaintext_token). Only the token hash is stored.
    """
    email = normalize_email(email)
    user = find_user_by_email(email)
    if user is None:
        try:
            user = _new_account(email, name=name, password_hash=None, email_verified=False)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            user = find_user_by_email(email)
            if user is None:
                raise ConflictError("Could not create account")

    token = secrets.token_urlsafe(32)
    db.session.add(MagicLinkToken(
        email=email,
        token_hash=session_service.hash_token(token),
        anonymous_user_id=anonymous_id,
        expires_at=utcnow() + MAGIC_LINK_LIFETIME,
        used=False,
    ))
    db.session.commit()
    return user, token


def redeem_magic_link(token: str, anonymous_id: str | None = None) -> AuthResult:
    """
    Exchange a magic-link token for a session.

    The token is consumed with a conditional update so two concurrent
    redemptions cannot both succeed.

    Raises:
        InvalidToken: Unknown, used or expired token
    """
    now = utcnow()
    record = db.session.query(MagicLinkToken).filter_by(
        token_hash=session_service.hash_token(token)
    ).first()
    if record is None:
        raise InvalidToken("Invalid or expired magic link")

    consumed = db.session.query(MagicLinkToken).filter(
        MagicLinkToken.id == record.id,
        MagicLinkToken.used.is_(False),
        MagicLinkToken.expires_at > now,
    ).update({MagicLinkToken.used: True, MagicLinkToken.used_at: now}, synchronize_session=False)
    if consumed != 1:
        db.session.rollback()
        raise InvalidToken("Invalid or expired magic link")

    email = record.email
    anonymous_id = anonymous_id or record.anonymous_user_id

    user = find_user_by_email(email)
    if user is None:
        user = _new_account(email, password_hash=None)

    # Clicking the link proves control of the mailbox
    user.email_verified = True
    user.updated_at = now
    db.session.commit()

    return complete_authentication(user, anonymous_id)


def cleanup_magic_links() -> int:
    """Delete used and expired magic-link tokens. Returns count deleted."""
    deleted = db.session.query(MagicLinkToken).filter(
        db.or_(MagicLinkToken.used.is_(True), MagicLinkToken.expires_at <= utcnow())
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


# =============================================================================
# OAUTH
# =============================================================================

def _commit_oauth_change() -> None:
    """Commit a link or profile update; a unique subject race becomes a 409."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Account was linked concurrently; please retry")


def resolve_oauth_identity(provider: OAuthProvider, identity: OAuthIdentity) -> User:
    """
    Map a verified provider identity onto a User (see module docstring).

    Raises:
        MissingEmail: The provider shared no email
        AccountConflict: The email belongs to a user linked to another subject
        ConflictError: Lost a create or link race on the email or subject
    """
    if not identity.email:
        raise MissingEmail(f"Email is required. Please share your email with {provider.name.title()} sign in.")

    subject_column = getattr(User, provider.subject_field)
    now = utcnow()

    user = db.session.query(User).filter(subject_column == identity.subject_id).first()
    if user is not None:
        if identity.display_name and not user.name:
            user.name = identity.display_name
            user.updated_at = now
            _commit_oauth_change()
        return user

    email = normalize_email(identity.email)
    user = find_user_by_email(email)
    if user is not None:
        linked_subject = getattr(user, provider.subject_field)
        if linked_subject and linked_subject != identity.subject_id:
            raise AccountConflict(
                f"This email is already linked to a different {provider.name.title()} account"
            )

        setattr(user, provider.subject_field, identity.subject_id)
        user.email_verified = identity.email_verified
        user.updated_at = now
        _commit_oauth_change()
        logger.info("Linked %s identity to existing user %s", provider.name, user.id)
        return user

    try:
        user = _new_account(
            email,
            name=identity.display_name,
            password_hash=None,
            email_verified=identity.email_verified,
            **{provider.subject_field: identity.subject_id},
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Account was created concurrently; please retry")

    logger.info("Created new user via %s: %s", provider.name, user.id)
    return user


def authenticate_oauth(
    provider: OAuthProvider,
    credential: dict,
    anonymous_id: str | None = None,
) -> AuthResult:
    identity = provider.verify_and_fetch_identity(credential)
    user = resolve_oauth_identity(provider, identity)
    return complete_authentication(user, anonymous_id)
