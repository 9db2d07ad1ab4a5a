# Overview: Flask API routes for the product catalog.

# backend/posledger/routes/products.py
from flask import Blueprint, current_app, jsonify, request

from ..services import products_service
from ..validation import ConflictError, ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - low_stock: "1" to keep only products at or below their reorder level
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    result = products_service.list_products(
        low_stock_only=request.args.get("low_stock") in {"1", "true"},
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@products_bp.post("")
def create_product():
    try:
        product = products_service.create_product(request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = products_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200
