# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/storeadmin/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations are open to any role
- Write operations require the manager role

stock_quantity is read-only here: it moves only through stock-in and sales
orders, and create/update reject it with a validation_error.
"""
from flask import Blueprint, current_app, request

from ..decorators import ROLE_MANAGER, require_auth, require_role
from ..errors import StoreError
from ..services import catalog_service
from ..validation import parse_json_object, parse_optional_int_arg, parse_page_args

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _page_args():
    return parse_page_args(
        request.args,
        default_per_page=current_app.config["DEFAULT_PAGE_SIZE"],
        max_per_page=current_app.config["MAX_PAGE_SIZE"],
    )


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products.

    Query params:
    - page, limit: paging (default 20, max 100)
    - search: substring of sku or name
    - category_id: int
    - status: active | inactive | deleted (deleted rows are hidden unless asked for)
    """
    try:
        page, per_page = _page_args()
        result = catalog_service.list_products(
            page=page,
            per_page=per_page,
            search=request.args.get("search"),
            category_id=parse_optional_int_arg(request.args, "category_id"),
            status=request.args.get("status"),
        )
        return {"success": True, "data": result}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to list products")
        return {"success": False, "error": "internal_error", "message": "Failed to list products"}, 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return {"success": True, "data": product.to_dict()}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to load product %s", product_id)
        return {"success": False, "error": "internal_error", "message": "Failed to load product"}, 500


@products_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def create_product_route():
    """Create a product. Stock starts at 0."""
    try:
        payload = parse_json_object(request.get_json(silent=True))
        product = catalog_service.create_product(payload)
        current_app.logger.info("Product %s (%s) created", product.id, product.sku)
        return {"success": True, "data": product.to_dict()}, 201
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"success": False, "error": "internal_error", "message": "Failed to create product"}, 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_MANAGER)
def update_product_route(product_id: int):
    try:
        payload = parse_json_object(request.get_json(silent=True))
        product = catalog_service.update_product(product_id, payload)
        return {"success": True, "data": product.to_dict()}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"success": False, "error": "internal_error", "message": "Failed to update product"}, 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_MANAGER)
def delete_product_route(product_id: int):
    """Soft delete. Existing orders keep referencing the product."""
    try:
        product = catalog_service.delete_product(product_id)
        current_app.logger.info("Product %s marked deleted", product.id)
        return {"success": True, "data": product.to_dict()}
    except StoreError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"success": False, "error": "internal_error", "message": "Failed to delete product"}, 500
