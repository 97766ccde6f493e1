# Overview: Flask API routes for sale submission and lookup.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError, SaleNotFound
from ..services import sales_service, settlement_service
from . import company_id_from_request

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Submit a sale. Body: items=[{product_id, quantity}], notes?, mode?

    mode "async" (default) queues creation and settlement and answers 202 with
    a tracking id; mode "sync" settles before answering.
    """
    try:
        company_id = company_id_from_request()
        data = request.get_json(silent=True) or {}
        items = data.get("items") or []
        notes = data.get("notes")

        if data.get("mode", "async") == "sync":
            sale = settlement_service.submit_sale(company_id, items, notes)
            return jsonify({"data": sale.to_dict()}), 201

        tracking_id = settlement_service.enqueue_sale(company_id, items, notes)
        return jsonify({
            "message": "Sale received and is being processed",
            "tracking_id": tracking_id,
        }), 202

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        company_id = company_id_from_request()
        sale = sales_service.get_sale_by_id(sale_id)
        if sale is None or sale.company_id != company_id:
            raise SaleNotFound(sale_id)
        return jsonify({"data": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/tracking/<tracking_id>")
def get_sale_by_tracking_route(tracking_id: str):
    """
    Poll an asynchronous submission.

    QUEUED means no sale exists for the tracking id yet. Company and product
    checks run before a submission is accepted; a worker that still fails
    before creating the sale (a product deleted in between) is only visible in
    the worker log.
    """
    try:
        company_id = company_id_from_request()
        sale = sales_service.get_sale_by_tracking_id(tracking_id)
        if sale is None or sale.company_id != company_id:
            # The worker may not have created the sale yet
            return jsonify({"tracking_id": tracking_id, "status": "QUEUED"}), 200
        return jsonify({"tracking_id": tracking_id, "status": sale.status, "data": sale.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale by tracking id")
        return jsonify({"error": "Internal server error"}), 500
