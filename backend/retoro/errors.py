# Overview: Error taxonomy shared by services and routes; each error carries its HTTP status.

from __future__ import annotations

from typing import Any

from flask import jsonify


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP response."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details


class ValidationError(ApiError):
    """400-level input problem."""
    status_code = 400
    default_message = "Validation failed"


class MissingEmail(ApiError):
    """The identity provider did not share an email address."""
    status_code = 400
    default_message = "Email is required"


class InvalidCredentials(ApiError):
    """Wrong email/password. Never says which of the two was wrong."""
    status_code = 401
    default_message = "Invalid email or password"


class InvalidToken(ApiError):
    """Unknown, used, expired or unverifiable token."""
    status_code = 401
    default_message = "Invalid or expired token"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ApiError):
    """409-level business rule conflict."""
    status_code = 409
    default_message = "Conflict"


class AccountConflict(ConflictError):
    """The email is already linked to a different provider identity."""
    default_message = "This email is already linked to a different account"


class DuplicateAccount(ConflictError):
    default_message = "User with this email already exists"


class UpstreamError(ApiError):
    """A third-party dependency was unreachable or answered non-2xx."""
    status_code = 500
    default_message = "Upstream service failed"


def error_response(message: str, status: int = 400, details: Any = None):
    body = {"error": message}
    if details:
        body["details"] = details
    return jsonify(body), status


def api_error_response(err: ApiError):
    return error_response(err.message, err.status_code, err.details)
