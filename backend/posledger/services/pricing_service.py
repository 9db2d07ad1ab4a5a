# Overview: Cart pricing and bill-discount allocation; reads products, never writes.

"""
Pricing rules (all money in integer cents, half-up rounding):

    line_gross = round(unit_price * quantity)
    line_tax   = round(line_gross * tax_rate_bps / 10000)
    subtotal   = sum(line_gross)
    tax        = sum(line_tax)
    discount   = clamp(requested_discount, 0, subtotal)
    total      = max(0, subtotal - discount + tax)

Tax is charged on the gross amount; the bill discount does not reduce it.
The applied discount is split across lines in proportion to line_gross
(see money.allocate_proportionally); the shares always sum to the discount.

Clamping the discount and flooring the total are silent corrections, not
errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from ..extensions import db
from ..errors import InsufficientStockError, InvalidQuantityError, ProductNotFoundError
from ..models import Product
from ..money import (
    MAX_QUANTITY,
    allocate_proportionally,
    clamp,
    has_valid_quantity_scale,
    line_gross_cents,
    tax_cents,
    to_decimal,
)
from .concurrency import lock_for_update


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: Decimal


@dataclass
class PricedLine:
    product: Any
    quantity: Decimal
    unit_price_cents: int
    tax_rate_bps: int
    line_gross_cents: int
    tax_cents: int
    discount_cents: int = 0

    @property
    def product_id(self) -> int:
        return self.product.id


@dataclass
class PricedCart:
    lines: list[PricedLine] = field(default_factory=list)
    subtotal_cents: int = 0
    tax_cents: int = 0
    discount_cents: int = 0
    total_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "lines": [
                {
                    "product_id": line.product_id,
                    "quantity": str(line.quantity),
                    "unit_price_cents": line.unit_price_cents,
                    "line_gross_cents": line.line_gross_cents,
                    "tax_cents": line.tax_cents,
                    "discount_cents": line.discount_cents,
                }
                for line in self.lines
            ],
        }


def normalize_items(items: Iterable[Any]) -> list[LineRequest]:
    """
    Accept LineRequest objects, {"product_id", "quantity"} dicts or
    (product_id, quantity) pairs, in caller order.

    Quantities must be positive with at most three fractional digits.
    """
    requests = []
    for item in items:
        if isinstance(item, LineRequest):
            product_id, raw_qty = item.product_id, item.quantity
        elif isinstance(item, dict):
            product_id, raw_qty = item.get("product_id"), item.get("quantity")
        else:
            try:
                product_id, raw_qty = item
            except (TypeError, ValueError):
                raise InvalidQuantityError(None, item, "item must be a (product_id, quantity) pair")

        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ProductNotFoundError(product_id)
        try:
            quantity = to_decimal(raw_qty)
        except ValueError:
            raise InvalidQuantityError(product_id, raw_qty, "quantity must be a number")
        if quantity <= 0:
            raise InvalidQuantityError(product_id, quantity)
        if quantity > MAX_QUANTITY:
            raise InvalidQuantityError(product_id, quantity, f"quantity cannot exceed {MAX_QUANTITY}")
        if not has_valid_quantity_scale(quantity):
            raise InvalidQuantityError(product_id, quantity, "at most 3 decimal places allowed")

        requests.append(LineRequest(product_id=product_id, quantity=quantity))
    return requests


def price_line(product, quantity: Decimal) -> PricedLine:
    gross = line_gross_cents(product.price_cents, quantity)
    return PricedLine(
        product=product,
        quantity=quantity,
        unit_price_cents=product.price_cents,
        tax_rate_bps=product.tax_rate_bps or 0,
        line_gross_cents=gross,
        tax_cents=tax_cents(gross, product.tax_rate_bps or 0),
    )


def compute_totals(lines: list[PricedLine], requested_discount_cents: int) -> PricedCart:
    """Totals and per-line discount shares for already-priced lines (pure)."""
    subtotal = sum(line.line_gross_cents for line in lines)
    tax = sum(line.tax_cents for line in lines)
    discount = clamp(int(requested_discount_cents or 0), 0, subtotal)
    total = max(0, subtotal - discount + tax)

    shares = allocate_proportionally(discount, [line.line_gross_cents for line in lines])
    for line, share in zip(lines, shares):
        line.discount_cents = share

    return PricedCart(
        lines=lines,
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount,
        total_cents=total,
    )


def check_stock(requests: list[LineRequest], products: dict[int, Any], *, allow_negative_stock: bool) -> None:
    """
    Refuse the cart if any product would go below zero.

    Quantities are summed per product first, so the same item scanned on two
    lines cannot oversell.
    """
    if allow_negative_stock:
        return

    requested: dict[int, Decimal] = {}
    for req in requests:
        requested[req.product_id] = requested.get(req.product_id, Decimal(0)) + req.quantity

    for product_id, quantity in requested.items():
        product = products[product_id]
        on_hand = Decimal(product.quantity_on_hand or 0)
        if quantity > on_hand:
            raise InsufficientStockError(product.id, product.name, quantity, on_hand)


def load_products(product_ids: Iterable[int], *, lock: bool = False) -> dict[int, Product]:
    """
    Fetch products by id. Rows are locked in id order when lock=True so two
    checkouts touching the same products cannot deadlock each other.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
    if lock:
        query = lock_for_update(query)
    return {p.id: p for p in query.all()}


def price_cart(
    items: Iterable[Any],
    requested_discount_cents: int = 0,
    *,
    allow_negative_stock: bool = False,
    lock: bool = False,
) -> PricedCart:
    """
    Resolve products and price a cart without writing anything.

    Raises ProductNotFoundError, InvalidQuantityError or
    InsufficientStockError. Call with lock=True inside the checkout
    transaction so the stock read and the decrement share one transaction.
    """
    requests = normalize_items(items)
    products = load_products((req.product_id for req in requests), lock=lock)

    for req in requests:
        if req.product_id not in products:
            raise ProductNotFoundError(req.product_id)

    check_stock(requests, products, allow_negative_stock=allow_negative_stock)

    lines = [price_line(products[req.product_id], req.quantity) for req in requests]
    return compute_totals(lines, requested_discount_cents)
