# Overview: Append-only stock movement log written by checkout and read by reports.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import AuditLogEntry
"""
Audit log invariants (authoritative)

- Append-only: entries are inserted, never updated or deleted.
- No domain logic here; callers decide amounts.
- Entries are written inside the same DB transaction as the sale they record.
- One 'sale' entry per sale line.
- Range filters are inclusive on both ends: start <= occurred_at <= end.
"""


def append_audit_entry(
    *,
    product_id: int,
    movement_type: str,
    quantity: Decimal,
    amount_cents: int,
    tax_cents: int = 0,
    discount_cents: int = 0,
    sale_id: int | None = None,
    occurred_at: Optional[datetime] = None,
) -> AuditLogEntry:
    """
    Append one movement row. Flushes so the id is assigned; never commits.
    """
    entry = AuditLogEntry(
        product_id=product_id,
        sale_id=sale_id,
        movement_type=movement_type,
        quantity=quantity,
        amount_cents=amount_cents,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        occurred_at=occurred_at,  # if None, column default applies
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def entries_for_sale(sale_id: int) -> list[AuditLogEntry]:
    return (
        db.session.query(AuditLogEntry)
        .filter(AuditLogEntry.sale_id == sale_id)
        .order_by(AuditLogEntry.id.asc())
        .all()
    )


def entries_in_range(
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    movement_type: str | None = None,
    product_id: int | None = None,
) -> list[AuditLogEntry]:
    """Entries in [start, end], newest first."""
    q = db.session.query(AuditLogEntry)
    if start is not None:
        q = q.filter(AuditLogEntry.occurred_at >= start)
    if end is not None:
        q = q.filter(AuditLogEntry.occurred_at <= end)
    if movement_type is not None:
        q = q.filter(AuditLogEntry.movement_type == movement_type)
    if product_id is not None:
        q = q.filter(AuditLogEntry.product_id == product_id)
    return q.order_by(AuditLogEntry.occurred_at.desc(), AuditLogEntry.id.desc()).all()
