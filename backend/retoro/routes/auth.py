# Overview: Flask API routes for authentication; parses input and returns JSON responses.

"""
Authentication API routes

Every sign-in path returns the same shape:

    {"user": {id, email, name, emailVerified}, "session": {token, expiresAt}}

and accepts an optional anonymous_user_id whose data is merged into the
account.

SECURITY:
- Password failures never reveal whether the email exists
- Magic-link tokens are single use and expire after 15 minutes
- Provider error details are logged, never returned
"""

import base64
import json
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request

from .. import validation
from ..decorators import get_anonymous_id, get_bearer_token
from ..errors import ApiError, api_error_response, error_response
from ..services import email_service, identity_service, session_service
from ..services.email_service import EmailDeliveryError
from ..services.oauth_providers import get_provider


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """Create a password account and sign it in (201)."""
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.REGISTER)
        result = identity_service.register_user(
            email=data["email"],
            password=data["password"],
            name=data.get("name"),
            anonymous_id=data.get("anonymous_user_id"),
        )
        return jsonify(result.to_dict()), 201

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return error_response("Failed to register user", 500)


@auth_bp.post("/login")
def login_route():
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.LOGIN)
        result = identity_service.authenticate_password(
            email=data["email"],
            password=data["password"],
            anonymous_id=data.get("anonymous_user_id"),
        )
        return jsonify(result.to_dict()), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return error_response("Failed to login", 500)


@auth_bp.post("/magic-link")
def magic_link_route():
    """
    Email a sign-in link. Creates a password-less account for new emails.

    The anonymous id is stored with the token so the merge still happens
    when the link is opened without it.
    """
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.MAGIC_LINK)
        user, token = identity_service.request_magic_link(
            email=data["email"],
            name=data.get("name"),
            anonymous_id=data.get("anonymous_user_id"),
        )
        email_service.send_magic_link_email(user.email, token, name=user.name)

        return jsonify({
            "message": "Magic link sent to your email",
            "email": user.email,
        }), 200

    except EmailDeliveryError:
        return error_response("Failed to send magic link email", 500)
    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to send magic link")
        return error_response("Failed to send magic link", 500)


def _verify_magic_link(payload: dict):
    try:
        data = validation.validate_payload(payload, validation.MAGIC_LINK_VERIFY)
        result = identity_service.redeem_magic_link(
            data["token"],
            anonymous_id=data.get("anonymous_user_id") or get_anonymous_id(),
        )
        return jsonify(result.to_dict()), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify magic link")
        return error_response("Failed to verify magic link", 500)


@auth_bp.post("/magic-link/verify")
def verify_magic_link_route():
    return _verify_magic_link(request.get_json(silent=True))


@auth_bp.get("/magic-link/verify")
def verify_magic_link_get_route():
    return _verify_magic_link({
        "token": request.args.get("token"),
        "anonymous_user_id": request.args.get("anonymous_user_id"),
    })


@auth_bp.post("/apple")
def apple_sign_in_route():
    """Sign in with an Apple identity token posted by the app."""
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.APPLE_SIGN_IN)
        result = identity_service.authenticate_oauth(
            get_provider("apple"),
            {"identity_token": data["identity_token"], "user_data": data.get("user_data")},
            anonymous_id=data.get("anonymous_user_id"),
        )
        return jsonify(result.to_dict()), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to authenticate with Apple")
        return error_response("Failed to authenticate with Apple", 500)


@auth_bp.post("/google")
def google_sign_in_route():
    """Native flow: the app posts the authorization code it received."""
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.GOOGLE_SIGN_IN)
        result = identity_service.authenticate_oauth(
            get_provider("google"),
            {"code": data["code"], "redirect_uri": data.get("redirect_uri")},
            anonymous_id=data.get("anonymous_user_id"),
        )
        return jsonify(result.to_dict()), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to authenticate with Google")
        return error_response("Failed to authenticate with Google", 500)


def _decode_state(state: str | None) -> str | None:
    """anonymous_user_id from the base64 JSON state; unparsable state is ignored."""
    if not state:
        return None
    try:
        padded = state + "=" * (-len(state) % 4)
        decoded = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, UnicodeError):
        current_app.logger.warning("Ignoring unparsable Google OAuth state")
        return None
    if not isinstance(decoded, dict):
        return None

    anonymous_id = decoded.get("anonymous_user_id")
    if isinstance(anonymous_id, str) and validation.ANONYMOUS_ID_RE.match(anonymous_id):
        return anonymous_id
    return None


def _app_redirect(**params):
    callback_url = current_app.config["APP_CALLBACK_URL"]
    separator = "&" if "?" in callback_url else "?"
    return redirect(f"{callback_url}{separator}{urlencode(params)}")


@auth_bp.get("/google/callback")
def google_callback_route():
    """Web flow: Google redirects here; the app is sent back to its deep link."""
    error = request.args.get("error")
    if error:
        return _app_redirect(error=error, message="Google sign in was cancelled")

    code = request.args.get("code")
    if not code:
        return _app_redirect(error="missing_code", message="No authorization code received")

    try:
        result = identity_service.authenticate_oauth(
            get_provider("google"),
            {"code": code},
            anonymous_id=_decode_state(request.args.get("state")),
        )
        return _app_redirect(status="success", token=result.issued.token)

    except ApiError as e:
        return _app_redirect(error="authentication_failed", message=e.message)
    except Exception:
        current_app.logger.exception("Failed to complete Google callback")
        return _app_redirect(error="authentication_failed", message="Failed to authenticate with Google")


@auth_bp.post("/logout")
def logout_route():
    """Delete the bearer session. Always reports success."""
    try:
        token = get_bearer_token()
        if token:
            session_service.delete_session(token)
    except Exception:
        current_app.logger.exception("Failed to delete session on logout")

    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/session")
def session_route():
    """Who is calling: the signed-in user, or the anonymous id alone."""
    try:
        token = get_bearer_token()
        context = session_service.validate_session(token) if token else None
        if context:
            user = context.user
            return jsonify({
                "userId": user.id,
                "email": user.email,
                "name": user.name,
                "emailVerified": user.email_verified,
                "isAnonymous": False,
            }), 200

        anonymous_id = get_anonymous_id()
        if anonymous_id:
            return jsonify({"userId": anonymous_id, "isAnonymous": True}), 200

        if token:
            return error_response("Invalid or expired session", 401)
        return error_response("No authentication token provided", 401)

    except Exception:
        current_app.logger.exception("Failed to check session")
        return error_response("Failed to check session", 500)
