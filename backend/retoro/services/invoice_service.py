# Overview: Invoice upload handling; forwards the file to the parsing webhook and records the parsed purchases.

"""
Invoice Processing Service

The webhook (an n8n workflow) only parses. It receives the raw file bytes
with the file's Content-Type, and the file name in Content-Disposition, and
answers either

    {"success": true, "seller_name": "...", "items": [
        {"item_name", "item_cost", "item_quantity", "item_currency", "currency_symbol"}, ...]}

or

    {"success": false, "message": "...", "document_type": "...", "confidence": 0.4}

Everything after parsing happens here: the seller is matched to (or
created as) a retailer, and one return item is created per unit of quantity,
purchased now.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

import httpx
from flask import current_app

from ..errors import UpstreamError, ValidationError
from ..extensions import db
from ..models import ReturnItem
from ..time_utils import utcnow
from . import deadline_service, retailer_service
from .currency_service import get_currency_symbol, get_exchange_rate_service

logger = logging.getLogger(__name__)


ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "application/pdf"}
MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_ITEM_QUANTITY = 100


class InvoiceProcessingError(UpstreamError):
    default_message = "Failed to process invoice"


def validate_upload(content_type: str | None, size: int) -> None:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type. Only JPEG, PNG, and PDF are allowed")
    if size > MAX_FILE_SIZE:
        raise ValidationError("File size exceeds 10MB limit")


def parse_invoice(content: bytes, content_type: str, filename: str) -> dict:
    """
    Send the file to the parsing webhook and return its JSON answer.

    Raises:
        InvoiceProcessingError: Webhook unset, unreachable, non-2xx or non-JSON
    """
    webhook_url = current_app.config.get("N8N_INVOICE_WEBHOOK_URL")
    if not webhook_url:
        logger.error("N8N_INVOICE_WEBHOOK_URL not configured")
        raise InvoiceProcessingError("Invoice processing is not configured")

    try:
        response = httpx.post(
            webhook_url,
            content=content,
            headers={"Content-Type": content_type, "Content-Disposition": filename},
            timeout=current_app.config.get("HTTP_TIMEOUT_SECONDS", 15.0),
        )
    except httpx.HTTPError as exc:
        logger.error("Invoice webhook request failed: %s", exc)
        raise InvoiceProcessingError("Failed to connect to invoice processor")

    if response.is_error:
        logger.error("Invoice webhook error (%s): %s", response.status_code, response.text)
        raise InvoiceProcessingError(f"Invoice processor error ({response.status_code})")

    try:
        parsed = response.json()
    except ValueError:
        logger.error("Invoice webhook returned non-JSON body")
        raise InvoiceProcessingError("Invoice processor returned an invalid response")

    if not isinstance(parsed, dict):
        raise InvoiceProcessingError("Invoice processor returned an invalid response")
    return parsed


def _parse_cost(value) -> Decimal | None:
    if not value:
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def record_parsed_invoice(user_id: str, parsed: dict) -> dict:
    """
    Turn a successful webhook answer into return items, committed together.

    Items that cannot be recorded are reported in `errors` instead of
    failing the whole invoice.
    """
    seller_name = (parsed.get("seller_name") or "").strip()
    if not seller_name:
        raise InvoiceProcessingError("Invoice processor did not identify a seller")

    retailer = retailer_service.find_or_create_by_name(seller_name, created_by=user_id)
    logger.info("Invoice matched retailer %s (%s)", retailer.name, retailer.id)

    purchase_date = utcnow()
    deadline = deadline_service.calculate_deadline(purchase_date, retailer.return_window_days)
    rates = get_exchange_rate_service()

    created: list[ReturnItem] = []
    errors: list[str] = []
    entries = parsed.get("items") or []
    if not isinstance(entries, list):
        entries = []

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            errors.append(f"Item {index + 1}: invalid item")
            continue

        try:
            quantity = int(entry.get("item_quantity", 1))
        except (TypeError, ValueError):
            quantity = 0
        if quantity < 1:
            errors.append(f"Item {index + 1}: invalid quantity")
            continue
        if quantity > MAX_ITEM_QUANTITY:
            errors.append(f"Item {index + 1}: quantity exceeds {MAX_ITEM_QUANTITY}")
            continue

        currency = (entry.get("item_currency") or "USD").upper()
        price = _parse_cost(entry.get("item_cost"))
        price_usd = price if currency == "USD" else rates.to_usd(price, currency)
        symbol = get_currency_symbol(currency, entry.get("currency_symbol"))

        for _ in range(quantity):
            item = ReturnItem(
                user_id=user_id,
                retailer_id=retailer.id,
                name=entry.get("item_name") or None,
                price=price,
                original_currency=currency,
                price_usd=price_usd,
                currency_symbol=symbol,
                purchase_date=purchase_date,
                return_deadline=deadline,
                is_returned=False,
                is_kept=False,
                created_at=purchase_date,
                updated_at=purchase_date,
            )
            db.session.add(item)
            created.append(item)

    db.session.commit()
    logger.info("Created %d return items from invoice for user %s", len(created), user_id)

    return {
        "message": "Invoice processed successfully",
        "items_created": [
            {
                "id": item.id,
                "name": item.name,
                "price": float(item.price) if item.price is not None else None,
                "currency": item.original_currency,
                "currency_symbol": item.currency_symbol,
            }
            for item in created
        ],
        "retailer_matched": retailer.name,
        "items_count": len(created),
        "errors": errors,
    }


def process_invoice(user_id: str, content: bytes, content_type: str, filename: str) -> dict:
    """
    Validate, parse and record an uploaded invoice.

    A parse the webhook itself reports as failed is returned as
    {error: true, message, document_type, confidence}, not raised.

    Raises:
        ValidationError: Disallowed type or oversized file
        InvoiceProcessingError: Webhook problems
        RetailerConflict: Lost a race creating the seller's retailer
    """
    validate_upload(content_type, len(content))
    parsed = parse_invoice(content, content_type, filename)

    if not parsed.get("success"):
        return {
            "error": True,
            "message": parsed.get("message") or "Failed to parse invoice",
            "document_type": parsed.get("document_type"),
            "confidence": parsed.get("confidence"),
        }

    return record_parsed_invoice(user_id, parsed)
