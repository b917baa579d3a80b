# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

# backend/storeadmin/routes/orders.py
"""
Sales order routes.

SECURITY: All routes require authentication.
- Any role can create, list, view and confirm/complete orders
- Cancelling an order (directly or via PATCH status) requires the manager role

Stock semantics live in services/fulfillment_service.py: confirming deducts,
cancelling a confirmed order restocks, nothing else touches stock.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import ROLE_MANAGER, require_auth, require_role
from ..errors import StoreError
from ..services import fulfillment_service, order_service
from ..services.lifecycle import OrderStatus
from ..services.parties_service import resolve_customer
from ..validation import parse_datetime_arg, parse_json_object, parse_optional_int_arg, parse_page_args

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _page_args():
    return parse_page_args(
        request.args,
        default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
        max_per_page=current_app.config["MAX_PAGE_SIZE"],
    )


def _internal_error(message: str):
    return {"success": False, "error": "internal_error", "message": message}, 500


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create a draft order.

    Body:
    - customer_id: int (optional, omitted for walk-in sales)
    - items: [{"product_id": int, "quantity": int}, ...] (non-empty)
    - note: str (optional)

    Unit prices come from the catalog; any price in the body is ignored.
    Returns 409 conflict if a product is deleted or short on stock.
    """
    try:
        payload = parse_json_object(request.get_json(silent=True))
        order = fulfillment_service.create_order(
            created_by=g.current_user_id,
            customer_id=payload.get("customer_id"),
            items=payload.get("items"),
            note=payload.get("note"),
        )
        return {"success": True, "data": order.to_dict(include_items=True)}, 201
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create order")
        return _internal_error("Failed to create order")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders, newest first.

    Query params: page, limit, search (order id, customer name or note),
    order_status, payment_status, customer_id, date_from, date_to.
    """
    try:
        page, per_page = _page_args()
        result = order_service.list_orders(
            page=page,
            per_page=per_page,
            order_status=request.args.get("order_status"),
            payment_status=request.args.get("payment_status"),
            customer_id=parse_optional_int_arg(request.args, "customer_id"),
            search=request.args.get("search"),
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return _internal_error("Failed to list orders")


@orders_bp.get("/stats")
@require_auth
def order_stats_route():
    try:
        stats = order_service.order_stats(
            date_from=parse_datetime_arg(request.args, "date_from"),
            date_to=parse_datetime_arg(request.args, "date_to"),
        )
        return {"success": True, "data": stats}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to compute order stats")
        return _internal_error("Failed to compute order stats")


@orders_bp.get("/customer/<int:customer_id>")
@require_auth
def orders_by_customer_route(customer_id: int):
    try:
        customer = resolve_customer(customer_id)
        page, per_page = _page_args()
        result = order_service.list_orders(page=page, per_page=per_page, customer_id=customer.id)
        result["customer"] = customer.to_dict()
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list orders for customer %s", customer_id)
        return _internal_error("Failed to list customer orders")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return {"success": True, "data": order.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load order %s", order_id)
        return _internal_error("Failed to load order")


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """
    Move an order and/or its payment through their lifecycles.

    Body: {"order_status": "...", "payment_status": "...", "note": "..."}
    (at least one status). Returns 409 invalid_transition for moves the
    lifecycle does not allow, 409 conflict when confirming would oversell.
    """
    try:
        payload = parse_json_object(request.get_json(silent=True))
    except StoreError as e:
        return e.to_response()
    target = payload.get("order_status")

    if target == OrderStatus.CANCELLED.value and g.current_role != ROLE_MANAGER:
        return jsonify({
            "success": False,
            "error": "forbidden",
            "message": "Cancelling an order requires role: manager",
            "details": {"required_roles": [ROLE_MANAGER]},
        }), 403

    try:
        order = fulfillment_service.update_order_status(
            order_id,
            actor_id=g.current_user_id,
            order_status=target,
            payment_status=payload.get("payment_status"),
            note=payload.get("note"),
        )
        return {"success": True, "data": order.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update order %s", order_id)
        return _internal_error("Failed to update order")


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(ROLE_MANAGER)
def cancel_order_route(order_id: int):
    try:
        payload = parse_json_object(request.get_json(silent=True))
        order = fulfillment_service.cancel_order(
            order_id, actor_id=g.current_user_id, note=payload.get("note")
        )
        return {"success": True, "data": order.to_dict(include_items=True)}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to cancel order %s", order_id)
        return _internal_error("Failed to cancel order")
