# Overview: Existence checks for suppliers and customers referenced by ledger documents.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Supplier
from ..validation import coerce_positive_int


def require_supplier(supplier_id) -> Supplier:
    if supplier_id in (None, ""):
        raise ValidationError("supplier_id is required", details={"field": "supplier_id"})
    supplier_id = coerce_positive_int(supplier_id, "supplier_id")
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None or supplier.status == "deleted":
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def resolve_customer(customer_id) -> Customer | None:
    """None/empty means a walk-in sale."""
    if customer_id in (None, ""):
        return None
    customer_id = coerce_positive_int(customer_id, "customer_id")
    customer = db.session.get(Customer, customer_id)
    if customer is None or customer.status == "deleted":
        raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer
