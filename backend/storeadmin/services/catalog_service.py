# Overview: Product catalog: lookups, guarded stock counter writes, and product edits.

"""
Product Catalog

The catalog owns Product.stock_quantity but never decides when it changes.
Stock moves only through apply_stock_delta(), called by the fulfillment
service while it holds the product row lock, inside the same transaction as
the ledger status write that justifies the change.

Create/update refuse stock_quantity outright: with stock-in and sales ledgers
in place, an edited counter would no longer equal what the ledgers replay to.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product
from ..validation import MAX_DB_INT, coerce_int, coerce_money, coerce_optional_int
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

PRODUCT_STATUSES = {"active", "inactive", "deleted"}
PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "category_id", "price", "cost_price",
    "min_stock", "max_stock", "status",
}
LEDGER_OWNED_FIELDS = {"stock_quantity", "version_id"}


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def require_sellable(product: Product) -> Product:
    if product.status == "deleted":
        raise ConflictError(
            f"Product {product.id} has been deleted",
            details={"product_id": product.id},
        )
    return product


def lock_products(product_ids) -> dict[int, Product]:
    """
    Lock product rows for a stock write, in ascending id order.

    A fixed lock order keeps two transactions that touch overlapping product
    sets from deadlocking each other.
    """
    ids = sorted(set(product_ids))
    rows = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(ids)))
        .order_by(Product.id.asc())
        .all()
    )
    found = {p.id: p for p in rows}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(
            f"Product {missing[0]} not found", details={"product_ids": missing}
        )
    return found


def apply_stock_delta(product: Product, delta: int) -> int:
    """
    Move the counter by delta on a locked product.

    Raises ConflictError (and writes nothing) if the result would be negative
    or would not fit the counter column.
    """
    new_quantity = product.stock_quantity + delta
    if new_quantity > MAX_DB_INT:
        raise ConflictError(
            f"Stock for product {product.id} would exceed the storable maximum",
            details={"product_id": product.id, "available": product.stock_quantity, "received": delta},
        )
    if new_quantity < 0:
        raise ConflictError(
            f"Insufficient stock for product {product.id}",
            details={
                "product_id": product.id,
                "available": product.stock_quantity,
                "requested": -delta,
            },
        )
    product.stock_quantity = new_quantity
    return new_quantity


def _clean_product_patch(payload: dict, *, partial: bool) -> dict:
    forbidden = LEDGER_OWNED_FIELDS & set(payload)
    if forbidden:
        raise ValidationError(
            "stock_quantity is maintained by stock-in and sales orders and cannot be set directly",
            details={"fields": sorted(forbidden)},
        )

    patch = {}
    for key, value in payload.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key in ("sku", "name"):
            value = (value or "").strip()
            if not value:
                raise ValidationError(f"{key} cannot be empty", details={"field": key})
        elif key == "description":
            value = value.strip() if isinstance(value, str) else value
        elif key in ("price", "cost_price"):
            value = coerce_money(value, key)
        elif key in ("min_stock", "max_stock"):
            value = coerce_optional_int(value, key)
            if value is not None and value < 0:
                raise ValidationError(f"{key} cannot be negative", details={"field": key})
        elif key == "category_id":
            value = coerce_optional_int(value, key)
            if value is not None and db.session.get(Category, value) is None:
                raise NotFoundError(f"Category {value} not found", details={"category_id": value})
        elif key == "status":
            if value not in PRODUCT_STATUSES:
                raise ValidationError(
                    f"status must be one of: {', '.join(sorted(PRODUCT_STATUSES))}",
                    details={"field": "status"},
                )
        patch[key] = value

    if not partial:
        for required in ("sku", "name", "price"):
            if required not in patch:
                raise ValidationError(f"{required} is required", details={"field": required})

    low = patch.get("min_stock")
    high = patch.get("max_stock")
    if low is not None and high is not None and high < low:
        raise ValidationError("max_stock cannot be below min_stock", details={"field": "max_stock"})
    return patch


def _ensure_unique_sku(sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU {sku} already exists", details={"sku": sku})


def create_product(payload: dict) -> Product:
    """Create a product. Stock always starts at 0; receive it via a stock-in order."""
    patch = _clean_product_patch(payload, partial=False)

    def _op():
        _ensure_unique_sku(patch["sku"])
        product = Product(stock_quantity=0, **patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    patch = _clean_product_patch(payload, partial=True)

    def _op():
        product = get_product(product_id)
        if "sku" in patch:
            _ensure_unique_sku(patch["sku"], exclude_id=product.id)
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> Product:
    """Soft delete: ledger rows keep referencing the product."""
    def _op():
        product = get_product(product_id)
        product.status = "deleted"
        db.session.commit()
        return product

    return run_with_retry(_op)


def list_products(
    *,
    page: int,
    per_page: int,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
) -> dict:
    q = db.session.query(Product)
    if status:
        q = q.filter(Product.status == status)
    else:
        q = q.filter(Product.status != "deleted")
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category_id is not None:
        q = q.filter(Product.category_id == coerce_int(category_id, "category_id"))

    q = q.order_by(Product.created_at.desc(), Product.id.desc())
    rows, pagination = paginate(q, page, per_page)
    return {"items": [p.to_dict() for p in rows], "pagination": pagination}
