# Overview: Flask API routes for the retailer directory; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from .. import validation
from ..decorators import require_auth_or_api_key
from ..errors import ApiError, api_error_response, error_response
from ..services import retailer_service


retailers_bp = Blueprint("retailers", __name__, url_prefix="/api/retailers")


@retailers_bp.get("")
@retailers_bp.get("/")
def list_retailers_route():
    """Public directory. ?search= filters by a case-insensitive substring of the name."""
    try:
        retailers = retailer_service.list_retailers(request.args.get("search"))
        return jsonify([r.to_dict() for r in retailers]), 200

    except Exception:
        current_app.logger.exception("Failed to fetch retailers")
        return error_response("Failed to fetch retailers", 500)


@retailers_bp.post("")
@retailers_bp.post("/")
@require_auth_or_api_key
def create_retailer_route():
    """Create a custom retailer owned by the caller (409 on a duplicate name)."""
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.CREATE_RETAILER)
        retailer = retailer_service.create_custom_retailer(
            name=data["name"],
            return_window_days=data["return_window_days"],
            created_by=g.owner.user_id,
            website_url=data.get("website_url"),
            return_portal_url=data.get("return_portal_url"),
            has_free_returns=data["has_free_returns"],
        )
        return jsonify(retailer.to_dict()), 201

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create retailer")
        return error_response("Failed to create retailer", 500)
