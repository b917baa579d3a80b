# Overview: Flask API routes for sales reports; parses input and returns JSON responses.

# backend/storeadmin/routes/reports.py
"""
Sales report routes.

SECURITY: All routes require authentication and the manager role.

Both reports count fulfilled orders only (confirmed or completed), dated by
when they were confirmed. Date bounds follow the inventory routes: a bare
date_to covers the whole day.
"""
from flask import Blueprint, current_app, request

from ..decorators import ROLE_MANAGER, require_auth, require_role
from ..errors import StoreError
from ..services import reporting_service
from ..validation import parse_datetime_arg

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _internal_error(message: str):
    return {"success": False, "error": "internal_error", "message": message}, 500


@reports_bp.get("/sales")
@require_auth
@require_role(ROLE_MANAGER)
def sales_report_route():
    """
    Revenue grouped by period, newest first (at most 30 periods).

    Query params: group_by (day | week | month, default day), date_from, date_to.
    """
    try:
        report = reporting_service.sales_report(
            group_by=request.args.get("group_by", "day"),
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": report}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return _internal_error("Failed to build sales report")


@reports_bp.get("/top-products")
@require_auth
@require_role(ROLE_MANAGER)
def top_products_route():
    """Query params: limit (default 10, max 100), date_from, date_to."""
    try:
        report = reporting_service.top_products(
            limit=request.args.get("limit"),
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": report}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to build top products report")
        return _internal_error("Failed to build top products report")
