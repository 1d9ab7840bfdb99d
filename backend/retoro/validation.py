from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlparse

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum price: 99,999,999.99 (Numeric(10, 2))
MAX_PRICE = Decimal("99999999.99")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")
ANONYMOUS_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Shadow accounts live on this domain; real sign-ups may not use it
RESERVED_EMAIL_DOMAIN = "anonymous.temp"

STRING = "string"
EMAIL = "email"
INTEGER = "integer"
PRICE = "price"
BOOLEAN = "boolean"
DATETIME = "datetime"
CURRENCY = "currency"
URL = "url"
ANONYMOUS_ID = "anonymous_id"
OBJECT = "object"


@dataclass(frozen=True)
class FieldRule:
    """
    One field of a request body:
    - kind: how the raw JSON value is checked and coerced
    - required: must be present (and non-null) on full validation
    - min_length / max_length: string bounds
    - minimum: integer lower bound
    - default: value used when the field is absent (full validation only)
    """
    kind: str
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    minimum: int | None = None
    default: Any = None


def _coerce(name: str, rule: FieldRule, value: Any):
    if rule.kind in (STRING, EMAIL, CURRENCY, URL, ANONYMOUS_ID):
        if not isinstance(value, str):
            raise ValueError(f"{name} must be a string")
        value = value.strip()
        if rule.min_length is not None and len(value) < rule.min_length:
            if rule.min_length == 1:
                raise ValueError(f"{name} is required")
            raise ValueError(f"{name} must be at least {rule.min_length} characters")
        if rule.max_length is not None and len(value) > rule.max_length:
            raise ValueError(f"{name} must be at most {rule.max_length} characters")

    if rule.kind == EMAIL:
        if not EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        if value.lower().endswith("@" + RESERVED_EMAIL_DOMAIN):
            raise ValueError("Invalid email address")
        return value

    if rule.kind == CURRENCY:
        if not CURRENCY_RE.match(value):
            raise ValueError("Currency must be 3 characters")
        return value.upper()

    if rule.kind == URL:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid URL")
        return value

    if rule.kind == ANONYMOUS_ID:
        if not ANONYMOUS_ID_RE.match(value):
            raise ValueError("Invalid anonymous user id")
        return value

    if rule.kind == STRING:
        return value

    if rule.kind == INTEGER:
        # bool is an int subclass; reject it along with floats
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer")
        if rule.minimum is not None and value < rule.minimum:
            raise ValueError(f"{name} must be {rule.minimum} or greater")
        return value

    if rule.kind == PRICE:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError("Price must be a number")
        try:
            price = Decimal(str(value))
        except InvalidOperation:
            raise ValueError("Price must be a number")
        if not price.is_finite() or price <= 0:
            raise ValueError("Price must be positive")
        if price > MAX_PRICE:
            raise ValueError(f"Price cannot exceed {MAX_PRICE}")
        return price.quantize(Decimal("0.01"))

    if rule.kind == BOOLEAN:
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a boolean")
        return value

    if rule.kind == DATETIME:
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValueError("Invalid date format")
        try:
            parsed_dt = parse_iso_datetime(value)
        except ValueError:
            raise ValueError("Invalid date format")
        if parsed_dt is None:
            raise ValueError("Invalid date format")
        return parsed_dt

    if rule.kind == OBJECT:
        if not isinstance(value, dict):
            raise ValueError(f"{name} must be an object")
        return value

    raise ValueError(f"{name}: unsupported field kind {rule.kind}")


def validate_payload(payload: Any, rules: dict[str, FieldRule], *, partial: bool = False) -> dict:
    """
    Check a JSON body against `rules` and return the cleaned values.

    partial=False: create semantics (required fields enforced, defaults applied)
    partial=True:  patch semantics (only provided keys are validated and returned)

    Unknown keys are dropped. Every failing field is reported in
    ValidationError.details as {"field", "message"}.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cleaned: dict = {}
    details: list[dict] = []

    for name, rule in rules.items():
        if name not in payload or payload[name] is None:
            if not partial and rule.required:
                details.append({"field": name, "message": f"{name} is required"})
            elif not partial and rule.default is not None:
                cleaned[name] = rule.default
            continue

        try:
            cleaned[name] = _coerce(name, rule, payload[name])
        except ValueError as e:
            details.append({"field": name, "message": str(e)})

    if details:
        raise ValidationError("Validation failed", details=details)
    return cleaned


# Auth
REGISTER = {
    "email": FieldRule(EMAIL, required=True),
    # Strength rules are enforced by auth_service.validate_password_strength
    "password": FieldRule(STRING, required=True, min_length=1),
    "name": FieldRule(STRING, max_length=100),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

LOGIN = {
    "email": FieldRule(EMAIL, required=True),
    "password": FieldRule(STRING, required=True, min_length=1),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

MAGIC_LINK = {
    "email": FieldRule(EMAIL, required=True),
    "name": FieldRule(STRING, max_length=100),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

MAGIC_LINK_VERIFY = {
    "token": FieldRule(STRING, required=True, min_length=1, max_length=512),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

APPLE_SIGN_IN = {
    "identity_token": FieldRule(STRING, required=True, min_length=1),
    "user_data": FieldRule(OBJECT),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

GOOGLE_SIGN_IN = {
    "code": FieldRule(STRING, required=True, min_length=1),
    "redirect_uri": FieldRule(URL),
    "anonymous_user_id": FieldRule(ANONYMOUS_ID),
}

# Return items
CREATE_RETURN_ITEM = {
    "retailer_id": FieldRule(STRING, required=True, min_length=1),
    "name": FieldRule(STRING, max_length=255),
    "price": FieldRule(PRICE),
    "currency": FieldRule(CURRENCY, default="USD"),
    "currency_symbol": FieldRule(STRING, max_length=8),
    "purchase_date": FieldRule(DATETIME, required=True),
}

UPDATE_RETURN_ITEM = {
    "retailer_id": FieldRule(STRING, min_length=1),
    "name": FieldRule(STRING, max_length=255),
    "price": FieldRule(PRICE),
    "currency": FieldRule(CURRENCY),
    "purchase_date": FieldRule(DATETIME),
}

PATCH_RETURN_ITEM = {
    "is_returned": FieldRule(BOOLEAN),
    "is_kept": FieldRule(BOOLEAN),
}

# Retailers
CREATE_RETAILER = {
    "name": FieldRule(STRING, required=True, min_length=1, max_length=255),
    "return_window_days": FieldRule(INTEGER, required=True, minimum=0),
    "website_url": FieldRule(URL),
    "return_portal_url": FieldRule(URL),
    "has_free_returns": FieldRule(BOOLEAN, default=False),
}

# Settings / support
CURRENCY_SETTING = {
    "currency": FieldRule(CURRENCY, required=True),
}

SUPPORT_REQUEST = {
    "subject": FieldRule(STRING, required=True, min_length=1, max_length=200),
    "message": FieldRule(STRING, required=True, min_length=10, max_length=2000),
    "email": FieldRule(EMAIL),
}
