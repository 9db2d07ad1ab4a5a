# Overview: Read-only dashboard and sales-range reports over the sales ledger.

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func

from posledger.extensions import db
from posledger.models import AuditLogEntry, MOVEMENT_SALE, Product, Sale
from posledger.time_utils import day_bounds, parse_iso_datetime, to_utc_z
from .audit_service import entries_in_range
from .sales_service import list_sales

RECENT_SALES_LIMIT = 10


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start/end must be ISO-8601 datetimes")
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def _top_selling_product(start: datetime, end: datetime) -> dict | None:
    """Product with the highest sold quantity in the window (lowest id wins ties)."""
    qty = func.sum(AuditLogEntry.quantity).label("qty")
    row = (
        db.session.query(AuditLogEntry.product_id, qty)
        .filter(
            AuditLogEntry.movement_type == MOVEMENT_SALE,
            AuditLogEntry.occurred_at >= start,
            AuditLogEntry.occurred_at <= end,
        )
        .group_by(AuditLogEntry.product_id)
        .order_by(qty.desc(), AuditLogEntry.product_id.asc())
        .first()
    )
    if row is None:
        return None
    product = db.session.get(Product, row.product_id)
    return {
        "product_id": row.product_id,
        "product_name": product.name if product else None,
        "quantity": str(Decimal(str(row.qty)).quantize(Decimal("0.001"))),
    }


def today_dashboard(day: date | None = None) -> dict:
    """
    Totals for one UTC day (today by default): revenue, sale count, average
    ticket, top seller and the most recent sales.
    """
    start, end = day_bounds(day)

    totals = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_cents), 0).label("total"),
            func.count(Sale.id).label("count"),
        )
        .filter(Sale.occurred_at >= start, Sale.occurred_at <= end)
        .one()
    )
    total_sales = int(totals.total or 0)
    count = int(totals.count or 0)
    # nearest-cent rounding (half-up)
    average = (total_sales + count // 2) // count if count else 0

    top = _top_selling_product(start, end)

    return {
        "day": start.date().isoformat(),
        "metrics": {
            "total_sales_cents": total_sales,
            "transaction_count": count,
            "avg_transaction_value_cents": average,
            "top_product_name": top["product_name"] if top else None,
            "top_product": top,
        },
        "recent_sales": [s.to_dict() for s in list_sales(start, end, limit=RECENT_SALES_LIMIT)],
    }


def sales_range_report(*, start: str | None, end: str | None) -> dict:
    """Sales and sale movements in [start, end], plus their totals."""
    start_dt, end_dt = _parse_range(start, end)

    sales = list_sales(start_dt, end_dt)
    entries = entries_in_range(start_dt, end_dt, movement_type=MOVEMENT_SALE)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "summary": {
            "transaction_count": len(sales),
            "subtotal_cents": sum(s.subtotal_cents for s in sales),
            "tax_cents": sum(s.tax_cents for s in sales),
            "discount_cents": sum(s.discount_cents for s in sales),
            "total_cents": sum(s.total_cents for s in sales),
            "cash_cents": sum(s.cash_cents for s in sales),
            "card_cents": sum(s.card_cents for s in sales),
            "other_cents": sum(s.other_cents for s in sales),
        },
        "sales": [s.to_dict() for s in sales],
        "movements": [e.to_dict() for e in entries],
    }
