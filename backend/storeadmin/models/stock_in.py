from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .catalog import money


class StockInOrder(db.Model):
    """
    Receiving document (stock-in ledger header).

    LIFECYCLE:
        draft -> confirmed   (increments product stock, terminal)
        draft -> cancelled   (no stock effect, terminal)

    Rows are never deleted. confirmed_at is the moment the receipt took
    effect on stock; the reconstructor replays receipts by that timestamp.
    """
    __tablename__ = "stock_in_orders"
    __table_args__ = (
        db.Index("ix_stock_in_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    confirmed_by = db.Column(db.Integer, nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    cancelled_by = db.Column(db.Integer, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    items = db.relationship(
        "StockInItem",
        backref="stock_in_order",
        lazy=True,
        order_by="StockInItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "status": self.status,
            "total_amount": money(self.total_amount),
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "confirmed_by": self.confirmed_by,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockInItem(db.Model):
    """Line on a stock-in order. Created with its parent; immutable."""
    __tablename__ = "stock_in_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_in_items_quantity_positive"),
        db.CheckConstraint("unit_cost >= 0", name="ck_stock_in_items_cost_non_negative"),
        db.Index("ix_stock_in_items_product", "product_id", "stock_in_order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_in_order_id = db.Column(db.Integer, db.ForeignKey("stock_in_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(14, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_in_order_id": self.stock_in_order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_cost": money(self.unit_cost),
            "total_price": money(self.total_price),
        }
