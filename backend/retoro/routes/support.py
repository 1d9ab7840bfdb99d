# Overview: Flask API routes for support requests and invoice upload; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from .. import validation
from ..decorators import resolve_caller
from ..errors import ApiError, api_error_response, error_response
from ..services import email_service, invoice_service
from ..services.email_service import EmailDeliveryError


support_bp = Blueprint("support", __name__, url_prefix="/api")


@support_bp.post("/support")
@resolve_caller
def support_request_route():
    """Email a support request to the support inbox."""
    try:
        data = validation.validate_payload(request.get_json(silent=True), validation.SUPPORT_REQUEST)

        sender_email = data.get("email")
        if not sender_email:
            sender_email = "anonymous@retoro.app" if g.is_anonymous else g.current_user.email

        email_service.send_support_email(
            sender_email=sender_email,
            subject=data["subject"],
            message=data["message"],
            user_id=g.owner.user_id,
            is_anonymous=g.is_anonymous,
        )
        current_app.logger.info("Support request sent for user %s", g.owner.user_id)
        return jsonify({
            "message": "Support request sent successfully. We'll get back to you soon.",
        }), 200

    except EmailDeliveryError:
        return error_response("Failed to send support request. Please try again later.", 500)
    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit support request")
        return error_response("Failed to submit support request", 500)


@support_bp.post("/upload/invoice")
@resolve_caller
def upload_invoice_route():
    """
    Upload an invoice (multipart field "file": JPEG, PNG or PDF, up to 10 MB).

    The parsed purchases become return items at the matched retailer.
    """
    try:
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return error_response("No file provided", 400)

        content = upload.read()
        result = invoice_service.process_invoice(
            g.owner.user_id,
            content=content,
            content_type=upload.mimetype,
            filename=upload.filename,
        )
        return jsonify(result), 200

    except ApiError as e:
        return api_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to upload invoice")
        return error_response("Failed to upload invoice", 500)
