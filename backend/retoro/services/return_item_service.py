# Overview: Service-layer operations for tracked return items; encapsulates business logic and database work.

"""
Return Item Service

Every query is scoped to the owning user id, so an item that belongs to
someone else behaves exactly like a missing one (404).

The return deadline is never taken from the client. It is computed from the
purchase date and the retailer's window on create, and recomputed whenever
either of those changes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..errors import NotFound
from ..extensions import db
from ..models import ReturnItem
from ..time_utils import utcnow
from . import deadline_service, retailer_service
from .currency_service import get_currency_symbol, get_exchange_rate_service


class ReturnItemNotFound(NotFound):
    default_message = "Return item not found"


def serialize_item(item: ReturnItem, now: datetime | None = None) -> dict:
    """Item dict plus the derived days_remaining / urgency / label fields."""
    data = item.to_dict()
    data.update(deadline_service.describe_deadline(item.return_deadline, now=now))
    return data


def list_items(user_id: str, include_history: bool = False) -> list[ReturnItem]:
    """Items ordered by deadline. Returned and kept items only with include_history."""
    query = db.session.query(ReturnItem).filter(ReturnItem.user_id == user_id)
    if not include_history:
        query = query.filter(ReturnItem.is_returned.is_(False), ReturnItem.is_kept.is_(False))
    return query.order_by(ReturnItem.return_deadline, ReturnItem.created_at).all()


def get_item(user_id: str, item_id: str) -> ReturnItem:
    item = db.session.query(ReturnItem).filter_by(id=item_id, user_id=user_id).first()
    if item is None:
        raise ReturnItemNotFound()
    return item


def _price_in_usd(price: Decimal | None, currency: str) -> Decimal | None:
    if price is None:
        return None
    if currency == "USD":
        return Decimal(price).quantize(Decimal("0.01"))
    return get_exchange_rate_service().to_usd(price, currency)


def create_item(
    user_id: str,
    retailer_id: str,
    purchase_date: datetime,
    name: str | None = None,
    price: Decimal | None = None,
    currency: str = "USD",
    currency_symbol: str | None = None,
) -> ReturnItem:
    """
    Track a purchase.

    Raises:
        RetailerNotFound: Unknown retailer_id
    """
    retailer = retailer_service.get_retailer(retailer_id)
    now = utcnow()

    item = ReturnItem(
        user_id=user_id,
        retailer_id=retailer.id,
        name=name,
        price=price,
        original_currency=currency,
        price_usd=_price_in_usd(price, currency),
        currency_symbol=get_currency_symbol(currency, currency_symbol),
        purchase_date=purchase_date,
        return_deadline=deadline_service.calculate_deadline(purchase_date, retailer.return_window_days),
        is_returned=False,
        is_kept=False,
        created_at=now,
        updated_at=now,
    )
    db.session.add(item)
    db.session.commit()
    return item


def update_item(user_id: str, item_id: str, changes: dict) -> ReturnItem:
    """
    Apply a partial update.

    `changes` holds already-validated keys among name, price, currency,
    retailer_id, purchase_date.

    Raises:
        ReturnItemNotFound: Item missing or not owned by user_id
        RetailerNotFound: New retailer_id is unknown
    """
    item = get_item(user_id, item_id)

    if "name" in changes:
        item.name = changes["name"]
    if "price" in changes:
        item.price = changes["price"]
    if "currency" in changes:
        item.original_currency = changes["currency"]
        item.currency_symbol = get_currency_symbol(changes["currency"])
    if "price" in changes or "currency" in changes:
        item.price_usd = _price_in_usd(item.price, item.original_currency)

    if changes.get("retailer_id") or changes.get("purchase_date"):
        retailer = retailer_service.get_retailer(changes.get("retailer_id") or item.retailer_id)
        purchase_date = changes.get("purchase_date") or item.purchase_date

        item.retailer_id = retailer.id
        item.retailer = retailer
        item.purchase_date = purchase_date
        item.return_deadline = deadline_service.calculate_deadline(
            purchase_date, retailer.return_window_days
        )

    item.updated_at = utcnow()
    db.session.commit()
    return item


def mark_status(
    user_id: str,
    item_id: str,
    is_returned: bool | None = None,
    is_kept: bool | None = None,
) -> ReturnItem:
    """
    Set the returned/kept flags. Setting a flag to true stamps its date.

    Raises:
        ReturnItemNotFound: Item missing or not owned by user_id
    """
    item = get_item(user_id, item_id)
    now = utcnow()

    if is_returned is not None:
        item.is_returned = is_returned
        if is_returned:
            item.returned_date = now
    if is_kept is not None:
        item.is_kept = is_kept
        if is_kept:
            item.kept_date = now

    item.updated_at = now
    db.session.commit()
    return item


def delete_item(user_id: str, item_id: str) -> None:
    deleted = db.session.query(ReturnItem).filter_by(id=item_id, user_id=user_id).delete()
    if not deleted:
        db.session.rollback()
        raise ReturnItemNotFound()
    db.session.commit()
