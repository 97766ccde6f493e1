# Overview: Flask API routes for inventory status and stock entries.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import inventory_service
from . import company_id_from_request

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def inventory_status_route():
    try:
        company_id = company_id_from_request()
        rows = inventory_service.get_inventory_status(company_id)
        return jsonify({"data": rows}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load inventory status")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/entries")
def create_entry_route():
    """Register a stock receipt. Body: product_id, quantity, unit_cost_cents, notes?"""
    try:
        company_id = company_id_from_request()
        data = request.get_json(silent=True) or {}

        movement = inventory_service.register_inventory_entry(
            company_id=company_id,
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            unit_cost_cents=data.get("unit_cost_cents"),
            notes=data.get("notes"),
        )
        return jsonify({"message": "Inventory entry created successfully", "data": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create inventory entry")
        return jsonify({"error": "Internal server error"}), 500
