from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from posledger.time_utils import to_utc_z, utcnow
from .catalog import QUANTITY_TYPE
from .sales import reject_delete, reject_update

MOVEMENT_SALE = "sale"


class AuditLogEntry(db.Model):
    """
    Append-only stock movement trail.

    Checkout writes one 'sale' row per sale line, in the same DB transaction
    as the sale. Dashboards and sales reports read from here.
    IMMUTABLE: rows are never updated or deleted through the ORM.
    """
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        db.Index("ix_audit_log_occurred", "occurred_at"),
        db.Index("ix_audit_log_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)

    quantity = db.Column(QUANTITY_TYPE, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")
    sale = db.relationship("Sale", backref=db.backref("audit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sale_id": self.sale_id,
            "movement_type": self.movement_type,
            "quantity": str(self.quantity),
            "amount_cents": self.amount_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


event.listen(AuditLogEntry, "before_update", reject_update)
event.listen(AuditLogEntry, "before_delete", reject_delete)
