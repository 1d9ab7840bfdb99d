# Overview: Flask API routes for tracked return items; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from .. import validation
from ..decorators import require_auth, resolve_caller
from ..errors import ApiError, api_error_response, error_response
from ..services import return_item_service
from ..time_utils import utcnow


return_items_bp = Blueprint("return_items", __name__, url_prefix="/api/return-items")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@return_items_bp.get("")
@return_items_bp.get("/")
@resolve_caller
def list_return_items_route():
    """
    The caller's items ordered by deadline, each with days_remaining,
    urgency and days_remaining_label.

    Query params:
    - includeHistory=true also lists returned and kept items
    """
    try:
        items = return_item_service.list_items(
            g.owner.user_id,
            include_history=_truthy(request.args.get("includeHistory")),
        )
        now = utcnow()
        return jsonify([return_item_service.serialize_item(item, now=now) for item in items]), 200

    except Exception:
        current_app.logger.exception("Failed to fetch return items")
        return error_response("Failed to fetch return items", 500)


@return_items_bp.post("")
@return_items_bp.post("/")
@resolve_caller
def create_return_item_route():
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.CREATE_RETURN_ITEM)
        item = return_item_service.create_item(
            g.owner.user_id,
            retailer_id=data["retailer_id"],
            purchase_date=data["purchase_date"],
            name=data.get("name"),
            price=data.get("price"),
            currency=data["currency"],
            currency_symbol=data.get("currency_symbol"),
        )
        return jsonify(return_item_service.serialize_item(item)), 201

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create return item")
        return error_response("Failed to create return item", 500)


@return_items_bp.get("/<item_id>")
@require_auth
def get_return_item_route(item_id: str):
    try:
        item = return_item_service.get_item(g.current_user.id, item_id)
        return jsonify(return_item_service.serialize_item(item)), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch return item")
        return error_response("Failed to fetch return item", 500)


@return_items_bp.put("/<item_id>")
@require_auth
def update_return_item_route(item_id: str):
    """Partial update; a new retailer or purchase date recomputes the deadline."""
    try:
        changes = validation.validate_payload(
            request.get_json(silent=True), validation.UPDATE_RETURN_ITEM, partial=True
        )
        item = return_item_service.update_item(g.current_user.id, item_id, changes)
        return jsonify(return_item_service.serialize_item(item)), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update return item")
        return error_response("Failed to update return item", 500)


@return_items_bp.patch("/<item_id>")
@resolve_caller
def mark_return_item_route(item_id: str):
    """Mark an item as returned and/or kept."""
    try:
        data = validation.validate_payload(
            request.get_json(silent=True), validation.PATCH_RETURN_ITEM, partial=True
        )
        return_item_service.mark_status(
            g.owner.user_id,
            item_id,
            is_returned=data.get("is_returned"),
            is_kept=data.get("is_kept"),
        )
        return jsonify({"success": True}), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update return item status")
        return error_response("Failed to update return item", 500)


@return_items_bp.delete("/<item_id>")
@resolve_caller
def delete_return_item_route(item_id: str):
    try:
        return_item_service.delete_item(g.owner.user_id, item_id)
        return jsonify({"success": True}), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete return item")
        return error_response("Failed to delete return item", 500)
