from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from posledger.time_utils import to_utc_z, utcnow
from .catalog import QUANTITY_TYPE


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to change or delete a posted ledger row."""


class Sale(db.Model):
    """
    Completed sale transaction (append-only).

    One row per successful checkout. Totals are stored as computed at
    checkout time and never recalculated:
        total_cents = max(0, subtotal_cents - discount_cents + tax_cents)

    Payment split is three named amounts; whether they add up to the total
    is the till's concern unless REQUIRE_PAYMENT_MATCH is enabled.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_occurred_at", "occurred_at"),
        db.CheckConstraint("cash_cents >= 0 AND card_cents >= 0 AND other_cents >= 0", name="ck_sales_payment_nonneg"),
        db.CheckConstraint("discount_cents >= 0 AND discount_cents <= subtotal_cents", name="ck_sales_discount_range"),
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    cash_cents = db.Column(db.Integer, nullable=False, default=0)
    card_cents = db.Column(db.Integer, nullable=False, default=0)
    other_cents = db.Column(db.Integer, nullable=False, default=0)  # UPI / wallets

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_by = db.relationship("User", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.line_number",
        lazy=True,
    )

    @property
    def paid_cents(self) -> int:
        return self.cash_cents + self.card_cents + self.other_cents

    def payment_split_dict(self) -> dict:
        return {
            "cash_cents": self.cash_cents,
            "card_cents": self.card_cents,
            "other_cents": self.other_cents,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_split": self.payment_split_dict(),
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

    def to_receipt_dict(self) -> dict:
        """Legacy receipt shape consumed by the printing and history screens."""
        return {
            "id": self.id,
            "total_amount_cents": self.total_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "payment_split": self.payment_split_dict(),
            "receipt_date": to_utc_z(self.occurred_at),
            "created_by": self.created_by_user_id,
            "items": [
                {
                    "name": line.product.name if line.product else None,
                    "quantity": str(line.quantity),
                    "unit_price_cents": line.unit_price_cents,
                    "amount_cents": line.line_gross_cents,
                }
                for line in self.lines
            ],
        }


class SaleLine(db.Model):
    """
    One product-and-quantity entry within a sale, priced at sale time.

    line_gross_cents = round_half_up(unit_price_cents * quantity)
    discount_cents is this line's share of the bill-level discount.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_number", name="uq_sale_lines_sale_line_number"),
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    quantity = db.Column(QUANTITY_TYPE, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    line_gross_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "line_number": self.line_number,
            "quantity": str(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "line_gross_cents": self.line_gross_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
        }


def reject_update(mapper, connection, target):
    # before_update also fires for rows that are only "dirty" through a
    # collection change; only real column changes are refused.
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{type(target).__name__} {target.id} is part of the sales ledger and cannot be changed"
    )


def reject_delete(mapper, connection, target):
    raise ImmutableRecordError(
        f"{type(target).__name__} {target.id} is part of the sales ledger and cannot be deleted"
    )


for _model in (Sale, SaleLine):
    event.listen(_model, "before_update", reject_update)
    event.listen(_model, "before_delete", reject_delete)
