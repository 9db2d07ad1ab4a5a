"""
Checkout error taxonomy.

Validation errors are raised before anything is written and are safe to show
to the cashier as-is. CheckoutFailedError wraps a store failure after the
unit of work has been rolled back; the caller may retry the same request.
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base class for errors reported by the checkout engine."""
    kind = "checkout_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ProductNotFoundError(CheckoutError):
    kind = "product_not_found"
    http_status = 404

    def __init__(self, product_id):
        super().__init__(f"Product not found: {product_id}", {"product_id": product_id})
        self.product_id = product_id


class InvalidQuantityError(CheckoutError):
    kind = "invalid_quantity"

    def __init__(self, product_id, quantity, reason: str = "quantity must be greater than zero"):
        super().__init__(
            f"Invalid quantity for product {product_id}: {reason}",
            {"product_id": product_id, "quantity": str(quantity)},
        )


class InsufficientStockError(CheckoutError):
    kind = "insufficient_stock"
    http_status = 409

    def __init__(self, product_id: int, product_name: str, requested, on_hand):
        super().__init__(
            f"Insufficient stock for {product_name}",
            {
                "product_id": product_id,
                "product_name": product_name,
                "requested_quantity": str(requested),
                "on_hand": str(on_hand),
            },
        )
        self.product_name = product_name


class EmptyCartError(CheckoutError):
    kind = "empty_cart"

    def __init__(self):
        super().__init__("Cannot check out an empty cart")


class UnauthorizedActorError(CheckoutError):
    kind = "unauthorized_actor"
    http_status = 403

    def __init__(self, buyer_id, reason: str = "user not found"):
        super().__init__(f"User {buyer_id} cannot record sales: {reason}", {"buyer_id": buyer_id})


class InvalidPaymentError(CheckoutError):
    kind = "invalid_payment"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details)


class PaymentMismatchError(CheckoutError):
    kind = "payment_mismatch"
    http_status = 409

    def __init__(self, paid_cents: int, total_cents: int):
        super().__init__(
            "Payment split does not add up to the sale total",
            {"paid_cents": paid_cents, "total_cents": total_cents},
        )


class CheckoutFailedError(CheckoutError):
    kind = "checkout_failed"
    http_status = 503

    def __init__(self, message: str = "Checkout could not be saved; nothing was recorded", cause: Exception | None = None):
        details = {"cause": type(cause).__name__} if cause is not None else {}
        super().__init__(message, details)
