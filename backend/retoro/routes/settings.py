# Overview: Flask API routes for user settings; parses input and returns JSON responses.

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from .. import validation
from ..decorators import require_auth, resolve_caller
from ..errors import ApiError, api_error_response, error_response
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/currency")
@resolve_caller
def get_currency_route():
    # Anonymous devices keep their preference client-side
    if g.is_anonymous:
        return jsonify({"currency": settings_service.DEFAULT_CURRENCY}), 200

    try:
        currency = settings_service.get_preferred_currency(g.owner.user_id)
        return jsonify({"currency": currency}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch currency preference")
        return error_response("Failed to fetch currency preference", 500)


@settings_bp.put("/currency")
@require_auth
def update_currency_route():
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.CURRENCY_SETTING)
        settings = settings_service.update_preferred_currency(g.current_user.id, data["currency"])
        return jsonify({"currency": settings.preferred_currency}), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update currency preference")
        return error_response("Failed to update currency preference", 500)


@settings_bp.get("")
@settings_bp.get("/")
@require_auth
def get_settings_route():
    try:
        settings = settings_service.get_settings(g.current_user.id)
        if settings is None:
            return jsonify({"currency": settings_service.DEFAULT_CURRENCY}), 200
        return jsonify(settings.to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to fetch settings")
        return error_response("Failed to fetch settings", 500)
