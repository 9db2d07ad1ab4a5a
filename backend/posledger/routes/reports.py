# Overview: Flask API routes for the dashboard and sales reports.

from flask import Blueprint, current_app, jsonify, request

from ..services import reporting_service
from ..services.reporting_service import ReportError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/today")
def today_dashboard_route():
    try:
        return jsonify(reporting_service.today_dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/sales")
def sales_report_route():
    try:
        report = reporting_service.sales_range_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500
