# backend/storeadmin/routes/inventory.py
"""
Inventory report routes.

SECURITY: All routes require authentication and the manager role.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets, or a bare date meaning the
  end of that day; backend normalizes to UTC-naive internally.
- as_of filtering is inclusive: occurred_at <= as_of.
"""
from flask import Blueprint, current_app, request

from ..decorators import ROLE_MANAGER, require_auth, require_role
from ..errors import StoreError, ValidationError
from ..services import inventory_service
from ..validation import coerce_int, parse_datetime_arg, parse_optional_int_arg, parse_page_args

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _page_args():
    return parse_page_args(
        request.args,
        default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
        max_per_page=current_app.config["MAX_PAGE_SIZE"],
    )


def _internal_error(message: str):
    return {"success": False, "error": "internal_error", "message": message}, 500


@inventory_bp.get("/current")
@require_auth
@require_role(ROLE_MANAGER)
def current_inventory_route():
    """
    Live stock per product, lowest first.

    Query params: page, limit, search, category_id,
    stock_status (out_of_stock | low | normal | high).
    """
    try:
        page, per_page = _page_args()
        result = inventory_service.current_inventory(
            page=page,
            per_page=per_page,
            search=request.args.get("search"),
            category_id=parse_optional_int_arg(request.args, "category_id"),
            stock_status=request.args.get("stock_status"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load current inventory")
        return _internal_error("Failed to load current inventory")


@inventory_bp.get("/by-date")
@require_auth
@require_role(ROLE_MANAGER)
def inventory_by_date_route():
    """Reconstructed stock per product at ?date= (required)."""
    try:
        as_of = parse_datetime_arg(request.args, "date")
        if as_of is None:
            raise ValidationError("date is required", details={"field": "date"})
        page, per_page = _page_args()
        result = inventory_service.inventory_as_of(
            as_of=as_of,
            page=page,
            per_page=per_page,
            search=request.args.get("search"),
            category_id=parse_optional_int_arg(request.args, "category_id"),
            stock_status=request.args.get("stock_status"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to reconstruct inventory")
        return _internal_error("Failed to reconstruct inventory")


@inventory_bp.get("/as-of")
@require_auth
@require_role(ROLE_MANAGER)
def stock_as_of_route():
    """
    Reconstructed quantity and value.

    Query params: as_of (optional, defaults to now), product_id (optional).
    """
    try:
        result = inventory_service.get_stock_as_of(
            as_of=parse_datetime_arg(request.args, "as_of"),
            product_id=parse_optional_int_arg(request.args, "product_id"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to reconstruct stock")
        return _internal_error("Failed to reconstruct stock")


@inventory_bp.get("/low-stock")
@require_auth
@require_role(ROLE_MANAGER)
def low_stock_route():
    try:
        raw = request.args.get("threshold")
        threshold = coerce_int(raw, "threshold") if raw not in (None, "") else None
        return {"success": True, "data": inventory_service.low_stock(threshold)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load low stock")
        return _internal_error("Failed to load low stock")


@inventory_bp.get("/products/<int:product_id>/history")
@require_auth
@require_role(ROLE_MANAGER)
def product_history_route(product_id: int):
    """Query params: page, limit, date_from, date_to."""
    try:
        page, per_page = _page_args()
        result = inventory_service.product_history(
            product_id,
            page=page,
            per_page=per_page,
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load history for product %s", product_id)
        return _internal_error("Failed to load product history")


@inventory_bp.get("/reconcile")
@require_auth
@require_role(ROLE_MANAGER)
def reconcile_route():
    try:
        return {"success": True, "data": inventory_service.reconcile()}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Inventory reconciliation failed")
        return _internal_error("Inventory reconciliation failed")
