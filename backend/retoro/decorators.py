# Overview: Request decorators that resolve the caller (bearer session, anonymous id, API key) for API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import identity_service, session_service
from .services.identity_service import RegisteredOwner
from .validation import ANONYMOUS_ID_RE


ANONYMOUS_HEADER = "X-Anonymous-User-Id"
API_KEY_HEADER = "x-api-key"


def get_bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _authenticate_bearer() -> session_service.SessionContext | None:
    token = get_bearer_token()
    if not token:
        return None
    return session_service.validate_session(token)


def get_anonymous_id() -> str | None:
    """The X-Anonymous-User-Id header, or None when absent or malformed."""
    anonymous_id = (request.headers.get(ANONYMOUS_HEADER) or "").strip()
    if not anonymous_id or not ANONYMOUS_ID_RE.match(anonymous_id):
        return None
    return anonymous_id


def _set_registered(context: session_service.SessionContext) -> None:
    g.current_user = context.user
    g.session_context = context
    g.owner = RegisteredOwner(user_id=context.user.id)
    g.is_anonymous = False


def _resolve_owner() -> bool:
    """
    Populate g for a bearer session, falling back to the anonymous header.

    Returns False when the request carries neither.
    """
    context = _authenticate_bearer()
    if context:
        _set_registered(context)
        return True

    anonymous_id = get_anonymous_id()
    if not anonymous_id:
        return False

    owner = identity_service.resolve_anonymous_owner(anonymous_id)
    g.current_user = None
    g.session_context = None
    g.owner = owner
    g.is_anonymous = True
    return True


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The SessionContext (user + session row)
    - g.owner: RegisteredOwner for the user

    Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_bearer_token():
            return jsonify({"error": "No authentication token provided"}), 401

        context = _authenticate_bearer()
        if not context:
            return jsonify({"error": "Invalid or expired session"}), 401

        _set_registered(context)
        return f(*args, **kwargs)

    return decorated_function


def resolve_caller(f):
    """
    Accept a registered user or an anonymous device.

    Bearer session first; otherwise the X-Anonymous-User-Id header resolves
    (creating on first use) the anonymous owner. Sets g.owner and
    g.is_anonymous; g.current_user is None for anonymous callers.

    Returns 401 when the request carries neither.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _resolve_owner():
            return jsonify({"error": "No user ID or anonymous ID provided"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_auth_or_api_key(f):
    """
    Bearer session, or the shared automation key plus a resolvable caller.

    Internal automation (the invoice workflow) sends x-api-key together with
    the device's anonymous id or the user's bearer token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected_key = current_app.config.get("RETORO_API_KEY")
        provided_key = request.headers.get(API_KEY_HEADER)

        if expected_key and provided_key and hmac.compare_digest(provided_key, expected_key):
            if not _resolve_owner():
                return jsonify({"error": "No user ID or anonymous ID provided"}), 401
            return f(*args, **kwargs)

        return require_auth(f)(*args, **kwargs)

    return decorated_function
