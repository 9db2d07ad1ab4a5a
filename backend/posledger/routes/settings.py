# Overview: Flask API routes for store policy settings.

from flask import Blueprint, current_app, jsonify, request

from ..services import settings_service
from ..services.settings_service import SettingsError

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/store")
def get_store_settings():
    return jsonify({"settings": settings_service.effective_settings()}), 200


@settings_bp.put("/store")
def update_store_settings():
    data = request.get_json(silent=True) or {}
    if "allow_negative_stock" not in data:
        return jsonify({"error": "allow_negative_stock required"}), 400

    try:
        settings_service.update_store_settings(allow_negative_stock=data["allow_negative_stock"])
    except SettingsError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update store settings")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"settings": settings_service.effective_settings()}), 200
