"""
Checkout coordinator: cart in, sale ledger rows out.

One call to checkout() is one exclusive DB transaction that
    1. checks the buyer is an active user,
    2. prices the cart against the current (locked) product rows,
    3. inserts the Sale, one SaleLine + one 'sale' AuditLogEntry per line,
    4. decrements each product's quantity_on_hand,
and commits. Any failure rolls all of it back.

Validation errors (errors.py) are raised before the first write. Busy-store
and optimistic-lock failures are retried; if they persist, or the store fails
in any other way, the caller gets CheckoutFailedError and nothing is saved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import (
    CheckoutFailedError,
    EmptyCartError,
    InsufficientStockError,
    InvalidPaymentError,
    PaymentMismatchError,
    UnauthorizedActorError,
)
from ..models import MOVEMENT_SALE, Sale, SaleLine, User
from ..money import MAX_AMOUNT_CENTS
from posledger.time_utils import utcnow
from . import settings_service
from .audit_service import append_audit_entry
from .concurrency import RETRYABLE_ERRORS, begin_exclusive, run_with_retry
from .pricing_service import PricedCart, price_cart

PAYMENT_FIELDS = ("cash_cents", "card_cents", "other_cents")


@dataclass(frozen=True)
class PaymentSplit:
    cash_cents: int = 0
    card_cents: int = 0
    other_cents: int = 0

    @classmethod
    def coerce(cls, value: Any) -> "PaymentSplit":
        """Build from a PaymentSplit, a dict of the three fields, or None."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            split = value
        elif isinstance(value, dict):
            unknown = set(value) - set(PAYMENT_FIELDS)
            if unknown:
                raise InvalidPaymentError(
                    f"Unknown payment fields: {', '.join(sorted(unknown))}",
                    {"fields": sorted(unknown)},
                )
            split = cls(**{k: value.get(k) or 0 for k in PAYMENT_FIELDS})
        else:
            raise InvalidPaymentError("payment_split must be an object")

        for name in PAYMENT_FIELDS:
            amount = getattr(split, name)
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise InvalidPaymentError(f"{name} must be an integer number of cents", {"field": name})
            if amount < 0:
                raise InvalidPaymentError(f"{name} cannot be negative", {"field": name, "value": amount})
            if amount > MAX_AMOUNT_CENTS:
                raise InvalidPaymentError(
                    f"{name} cannot exceed {MAX_AMOUNT_CENTS}", {"field": name, "value": amount}
                )
        return split

    @property
    def total_cents(self) -> int:
        return self.cash_cents + self.card_cents + self.other_cents


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: int
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


def _normalize_occurred_at(value: datetime | None) -> datetime:
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _require_active_buyer(buyer_id: Any) -> User:
    if isinstance(buyer_id, bool) or not isinstance(buyer_id, int):
        raise UnauthorizedActorError(buyer_id)
    user = db.session.get(User, buyer_id)
    if user is None:
        raise UnauthorizedActorError(buyer_id)
    if not user.is_active:
        raise UnauthorizedActorError(buyer_id, "user is inactive")
    return user


def _record_sale(
    *,
    buyer: User,
    cart: PricedCart,
    split: PaymentSplit,
    occurred_at: datetime,
    allow_negative_stock: bool,
) -> Sale:
    sale = Sale(
        subtotal_cents=cart.subtotal_cents,
        tax_cents=cart.tax_cents,
        discount_cents=cart.discount_cents,
        total_cents=cart.total_cents,
        cash_cents=split.cash_cents,
        card_cents=split.card_cents,
        other_cents=split.other_cents,
        occurred_at=occurred_at,
        created_by_user_id=buyer.id,
    )
    db.session.add(sale)
    db.session.flush()

    now = utcnow()
    for line_number, line in enumerate(cart.lines, start=1):
        db.session.add(SaleLine(
            sale_id=sale.id,
            product_id=line.product_id,
            line_number=line_number,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            tax_rate_bps=line.tax_rate_bps,
            line_gross_cents=line.line_gross_cents,
            tax_cents=line.tax_cents,
            discount_cents=line.discount_cents,
        ))

        append_audit_entry(
            product_id=line.product_id,
            sale_id=sale.id,
            movement_type=MOVEMENT_SALE,
            quantity=line.quantity,
            amount_cents=line.line_gross_cents,
            tax_cents=line.tax_cents,
            discount_cents=line.discount_cents,
            occurred_at=occurred_at,
        )

        product = line.product
        product.quantity_on_hand = Decimal(product.quantity_on_hand or 0) - line.quantity
        product.updated_at = now
        if product.quantity_on_hand < 0 and not allow_negative_stock:
            raise InsufficientStockError(
                product.id, product.name, line.quantity, product.quantity_on_hand + line.quantity
            )

    db.session.flush()
    return sale


def checkout(
    *,
    buyer_id: int,
    items: Iterable[Any],
    discount_cents: int = 0,
    payment_split: Any = None,
    occurred_at: datetime | None = None,
) -> CheckoutResult:
    """
    Turn a cart into a committed sale.

    items: [{"product_id": int, "quantity": Decimal | int | str}, ...] in
    till order. discount_cents is the bill-level discount requested; it is
    clamped to [0, subtotal]. payment_split: {"cash_cents", "card_cents",
    "other_cents"}, each >= 0.

    Raises EmptyCartError, InvalidPaymentError, UnauthorizedActorError,
    ProductNotFoundError, InvalidQuantityError, InsufficientStockError,
    PaymentMismatchError (only with REQUIRE_PAYMENT_MATCH) or
    CheckoutFailedError.
    """
    requests = list(items or [])
    if not requests:
        raise EmptyCartError()
    split = PaymentSplit.coerce(payment_split)
    sale_time = _normalize_occurred_at(occurred_at)

    config = current_app.config
    logger = current_app.logger

    def _op() -> CheckoutResult:
        try:
            begin_exclusive()
            buyer = _require_active_buyer(buyer_id)
            allow_negative = settings_service.allow_negative_stock()
            cart = price_cart(
                requests,
                discount_cents,
                allow_negative_stock=allow_negative,
                lock=True,
            )

            if config.get("REQUIRE_PAYMENT_MATCH") and split.total_cents != cart.total_cents:
                raise PaymentMismatchError(split.total_cents, cart.total_cents)

            sale = _record_sale(
                buyer=buyer,
                cart=cart,
                split=split,
                occurred_at=sale_time,
                allow_negative_stock=allow_negative,
            )
            result = CheckoutResult(
                sale_id=sale.id,
                subtotal_cents=cart.subtotal_cents,
                tax_cents=cart.tax_cents,
                discount_cents=cart.discount_cents,
                total_cents=cart.total_cents,
            )
            db.session.commit()
            return result
        except RETRYABLE_ERRORS:
            # run_with_retry rolls back before the next attempt
            raise
        except Exception:
            db.session.rollback()
            raise

    try:
        result = run_with_retry(
            _op,
            attempts=int(config.get("CHECKOUT_RETRY_ATTEMPTS", 3)),
            backoff_base=float(config.get("CHECKOUT_RETRY_BACKOFF", 0.1)),
        )
    except (SQLAlchemyError, OverflowError) as exc:
        # OverflowError: the driver refused a value too large for its column type
        logger.warning("Checkout for buyer %s rolled back: %s", buyer_id, exc)
        raise CheckoutFailedError(cause=exc) from exc

    logger.info(
        "Checkout recorded sale %s: %d line(s), total_cents=%s, buyer=%s",
        result.sale_id, len(requests), result.total_cents, buyer_id,
    )
    return result
