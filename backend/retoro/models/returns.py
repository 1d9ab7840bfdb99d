from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class RetailerPolicy(db.Model):
    """
    A retailer's return policy.

    return_window_days == 0 means the retailer accepts returns indefinitely.
    Custom retailers are created by users (or by invoice processing) and
    remember their creator.
    """
    __tablename__ = "retailer_policies"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_retailer_policies_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False, index=True)
    return_window_days = db.Column(db.Integer, nullable=False)
    website_url = db.Column(db.String(512), nullable=True)
    return_portal_url = db.Column(db.String(512), nullable=True)
    has_free_returns = db.Column(db.Boolean, nullable=False, default=False)
    is_custom = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "return_window_days": self.return_window_days,
            "website_url": self.website_url,
            "has_free_returns": self.has_free_returns,
        }


class ReturnItem(db.Model):
    """
    A tracked purchase with its computed return deadline.

    return_deadline is derived from purchase_date and the retailer's window;
    it is only rewritten by recomputation.
    """
    __tablename__ = "return_items"
    __table_args__ = (
        db.Index("ix_return_items_user_open", "user_id", "is_returned", "is_kept"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    retailer_id = db.Column(
        db.String(36), db.ForeignKey("retailer_policies.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(255), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    original_currency = db.Column(db.String(3), nullable=False, default="USD")
    price_usd = db.Column(db.Numeric(10, 2), nullable=True)
    currency_symbol = db.Column(db.String(8), nullable=False, default="$")
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    return_deadline = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    is_returned = db.Column(db.Boolean, nullable=False, default=False)
    is_kept = db.Column(db.Boolean, nullable=False, default=False)
    returned_date = db.Column(db.DateTime(timezone=True), nullable=True)
    kept_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="return_items")
    retailer = db.relationship("RetailerPolicy")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "original_currency": self.original_currency,
            "price_usd": float(self.price_usd) if self.price_usd is not None else None,
            "currency_symbol": self.currency_symbol,
            "purchase_date": to_utc_z(self.purchase_date),
            "return_deadline": to_utc_z(self.return_deadline),
            "is_returned": self.is_returned,
            "is_kept": self.is_kept,
            "returned_date": to_utc_z(self.returned_date),
            "kept_date": to_utc_z(self.kept_date),
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "retailer": self.retailer.to_dict() if self.retailer else None,
        }
