# Overview: Flask API routes for the sales report.

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidPageSize, LedgerError, ValidationError
from ..services import reporting_service
from . import company_id_from_request

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _per_page_arg() -> int | None:
    raw = request.args.get("per_page")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidPageSize(raw, current_app.config["SALES_REPORT_MAX_PAGE_SIZE"])


@reports_bp.get("/sales")
def sales_report_route():
    """Query: start_date, end_date (YYYY-MM-DD), sku?, per_page?, cursor?"""
    try:
        company_id = company_id_from_request()
        start = request.args.get("start_date")
        end = request.args.get("end_date")
        if not start or not end:
            raise ValidationError("start_date and end_date are required")
        sku = request.args.get("sku") or None
        cursor = request.args.get("cursor") or None
        per_page = _per_page_arg()

        page = reporting_service.sales_report(
            company_id=company_id,
            start=start,
            end=end,
            sku=sku,
            page_size=per_page,
            cursor=cursor,
        )
        metrics = reporting_service.sales_metrics(
            company_id=company_id,
            start=start,
            end=end,
            sku=sku,
        )

        return jsonify({
            "data": [sale.to_dict(include_items=False) for sale in page["items"]],
            "metrics": metrics,
            "pagination": {
                "cursor": page["cursor"],
                "next_cursor": page["next_cursor"],
                "per_page": page["page_size"],
            },
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500
