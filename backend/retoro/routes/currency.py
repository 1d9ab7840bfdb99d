# Overview: Flask API routes for currency conversion; parses input and returns JSON responses.

import math

from flask import Blueprint, current_app, jsonify, request

from ..errors import ApiError, api_error_response, error_response
from ..services.currency_service import get_exchange_rate_service


currency_bp = Blueprint("currency", __name__, url_prefix="/api/currency")


@currency_bp.get("/convert")
def convert_currency_route():
    """
    Convert an amount between two currencies via USD.

    Query params: from, to, amount
    """
    try:
        from_currency = (request.args.get("from") or "").strip().upper()
        to_currency = (request.args.get("to") or "").strip().upper()
        amount_raw = request.args.get("amount")

        if not from_currency or not to_currency or not amount_raw:
            return error_response("Missing required parameters: from, to, amount", 400)

        try:
            amount = float(amount_raw)
        except ValueError:
            return error_response("Invalid amount", 400)
        if not math.isfinite(amount):
            return error_response("Invalid amount", 400)

        result = get_exchange_rate_service().convert(amount, from_currency, to_currency)
        return jsonify(result), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert currency")
        return error_response("Failed to convert currency", 500)
