# Overview: Flask API routes for reading the sales ledger and audit trail.

# backend/posledger/routes/sales.py
"""Sales ledger read routes (sales are only written by /api/checkout)."""

from flask import Blueprint, current_app, jsonify, request

from ..services import audit_service, sales_service
from ..services.sales_service import SaleError
from ..time_utils import parse_iso_datetime

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


def _range_args():
    return (
        parse_iso_datetime(request.args.get("start")),
        parse_iso_datetime(request.args.get("end")),
    )


@sales_bp.get("")
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - start, end: ISO-8601 (inclusive, optional)
    - limit: int (optional)
    """
    try:
        start, end = _range_args()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    limit = request.args.get("limit", type=int)
    sales = sales_service.list_sales(start, end, limit=limit)
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with lines."""
    try:
        return jsonify(sales_service.get_sale_detail(sale_id)), 200
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 404


@sales_bp.get("/<int:sale_id>/receipt")
def get_receipt_route(sale_id: int):
    """Legacy receipt view used by the print screen."""
    try:
        return jsonify({"receipt": sales_service.get_receipt(sale_id)}), 200
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 404


@sales_bp.get("/<int:sale_id>/audit")
def get_sale_audit_route(sale_id: int):
    try:
        sales_service.get_sale(sale_id)
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 404

    entries = audit_service.entries_for_sale(sale_id)
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@audit_bp.get("")
def list_audit_route():
    """
    Stock movements in a range, newest first.

    Query params: start, end (ISO-8601), movement_type, product_id
    """
    try:
        start, end = _range_args()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    try:
        entries = audit_service.entries_in_range(
            start,
            end,
            movement_type=request.args.get("movement_type"),
            product_id=request.args.get("product_id", type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to load audit log")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
