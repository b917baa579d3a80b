# Overview: Flask API routes for stock-in (receiving) orders.

# backend/storeadmin/routes/stock_in.py
"""
Stock-in order routes.

SECURITY: All routes require authentication and the manager role.

A stock-in order is created as a draft; only confirmation adds its
quantities to stock. Cancelling is allowed from draft only.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import ROLE_MANAGER, require_auth, require_role
from ..errors import StoreError
from ..services import fulfillment_service, stock_in_service
from ..validation import parse_datetime_arg, parse_json_object, parse_optional_int_arg, parse_page_args

stock_in_bp = Blueprint("stock_in", __name__, url_prefix="/api/stock-in")


def _internal_error(message: str):
    return {"success": False, "error": "internal_error", "message": message}, 500


@stock_in_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def create_stock_in_route():
    """
    Create a draft stock-in order.

    Body:
    - supplier_id: int (required)
    - items: [{"product_id": int, "quantity": int, "unit_cost": number}, ...]
    - note: str (optional)
    """
    try:
        payload = parse_json_object(request.get_json(silent=True))
        doc = fulfillment_service.create_stock_in_order(
            created_by=g.current_user_id,
            supplier_id=payload.get("supplier_id"),
            items=payload.get("items"),
            note=payload.get("note"),
        )
        return {"success": True, "data": doc.to_dict(include_items=True)}, 201
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create stock-in order")
        return _internal_error("Failed to create stock-in order")


@stock_in_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_stock_in_route():
    """Query params: page, limit, status, supplier_id, search, date_from, date_to."""
    try:
        page, per_page = parse_page_args(
            request.args,
            default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
            max_per_page=current_app.config["MAX_PAGE_SIZE"],
        )
        result = stock_in_service.list_stock_in_orders(
            page=page,
            per_page=per_page,
            status=request.args.get("status"),
            supplier_id=parse_optional_int_arg(request.args, "supplier_id"),
            search=request.args.get("search"),
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list stock-in orders")
        return _internal_error("Failed to list stock-in orders")


@stock_in_bp.get("/stats")
@require_auth
@require_role(ROLE_MANAGER)
def stock_in_stats_route():
    try:
        stats = stock_in_service.stock_in_stats(
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": stats}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to compute stock-in stats")
        return _internal_error("Failed to compute stock-in stats")


@stock_in_bp.get("/<int:stock_in_id>")
@require_auth
@require_role(ROLE_MANAGER)
def get_stock_in_route(stock_in_id: int):
    try:
        doc = stock_in_service.get_stock_in_order(stock_in_id)
        return {"success": True, "data": doc.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load stock-in order %s", stock_in_id)
        return _internal_error("Failed to load stock-in order")


@stock_in_bp.patch("/<int:stock_in_id>/status")
@require_auth
@require_role(ROLE_MANAGER)
def update_stock_in_status_route(stock_in_id: int):
    """Body: {"status": "confirmed" | "cancelled"}."""
    try:
        payload = parse_json_object(request.get_json(silent=True))
        doc = fulfillment_service.update_stock_in_status(
            stock_in_id, payload.get("status"), actor_id=g.current_user_id
        )
        return {"success": True, "data": doc.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update stock-in order %s", stock_in_id)
        return _internal_error("Failed to update stock-in order")


@stock_in_bp.post("/<int:stock_in_id>/confirm")
@require_auth
@require_role(ROLE_MANAGER)
def confirm_stock_in_route(stock_in_id: int):
    try:
        doc = fulfillment_service.confirm_stock_in_order(stock_in_id, actor_id=g.current_user_id)
        return {"success": True, "data": doc.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to confirm stock-in order %s", stock_in_id)
        return _internal_error("Failed to confirm stock-in order")


@stock_in_bp.post("/<int:stock_in_id>/cancel")
@require_auth
@require_role(ROLE_MANAGER)
def cancel_stock_in_route(stock_in_id: int):
    try:
        doc = fulfillment_service.cancel_stock_in_order(stock_in_id, actor_id=g.current_user_id)
        return {"success": True, "data": doc.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to cancel stock-in order %s", stock_in_id)
        return _internal_error("Failed to cancel stock-in order")
