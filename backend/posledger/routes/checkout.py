# Overview: Flask API route for checkout; parses input and returns JSON responses.

# backend/posledger/routes/checkout.py
"""Checkout API: turns a till cart into a committed sale."""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CheckoutError
from ..services import checkout_service
from ..validation import ValidationError, parse_checkout_payload

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
def checkout_route():
    """
    Record a sale.

    Body:
        {
          "buyer_id": 1,
          "discount_cents": 0,
          "payment_split": {"cash_cents": 0, "card_cents": 0, "other_cents": 0},
          "items": [{"product_id": 3, "quantity": "1.5"}]
        }

    201 {"sale": {sale_id, subtotal_cents, tax_cents, discount_cents, total_cents}}
    Errors: {"error", "kind", "details"} with the error's status code.
    """
    try:
        kwargs = parse_checkout_payload(request.get_json(silent=True))
        result = checkout_service.checkout(**kwargs)
        return jsonify({"sale": result.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "kind": "invalid_request", "details": {}}), 400
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to check out")
        return jsonify({"error": "Internal server error"}), 500
