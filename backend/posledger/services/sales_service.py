"""
Sales ledger reads.

Sales are written only by checkout_service.checkout(); this module is the
read side used by receipts, history screens and reports.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleLine


class SaleError(Exception):
    """Raised for sale lookup errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def get_sale(sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.lines).selectinload(SaleLine.product))
        .filter(Sale.id == sale_id)
        .first()
    )
    if sale is None:
        raise SaleError("Sale not found", {"sale_id": sale_id})
    return sale


def get_sale_detail(sale_id: int) -> dict:
    sale = get_sale(sale_id)
    return {
        "sale": sale.to_dict(),
        "lines": [line.to_dict() for line in sale.lines],
    }


def get_receipt(sale_id: int) -> dict:
    """Legacy receipt projection of a sale."""
    return get_sale(sale_id).to_receipt_dict()


def list_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    limit: int | None = None,
) -> list[Sale]:
    """Sales with start <= occurred_at <= end, newest first."""
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.occurred_at >= start)
    if end is not None:
        q = q.filter(Sale.occurred_at <= end)
    q = q.order_by(Sale.occurred_at.desc(), Sale.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
