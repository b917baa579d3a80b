"""
Fulfillment coordinator tests.

Verifies:
- Stock moves only on confirmation (stock-in +, order -, confirmed cancel +)
- Lifecycle tables reject everything else, including repeats
- Live counters always equal the ledger replay
"""

from datetime import datetime
from decimal import Decimal

import pytest
from conftest import live_stock
from sqlalchemy import text

from storeadmin.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from storeadmin.extensions import db
from storeadmin.models import Order, StockInOrder
from storeadmin.services import fulfillment_service, inventory_service


def replayed(product_id: int, as_of=None) -> int:
    return inventory_service.get_stock_as_of(as_of=as_of, product_id=product_id)[0]["computed_quantity"]


# =============================================================================
# STOCK-IN ORDERS
# =============================================================================


class TestStockIn:
    def test_confirm_increments_and_totals(self, db_session, make_product, supplier):
        product = make_product()
        doc = fulfillment_service.create_stock_in_order(
            created_by=1,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": 10, "unit_cost": 1000}],
        )
        assert doc.status == "draft"
        assert doc.total_amount == Decimal("10000.00")
        assert live_stock(product.id) == 0

        doc = fulfillment_service.confirm_stock_in_order(doc.id, actor_id=1)
        assert doc.status == "confirmed"
        assert doc.confirmed_by == 1
        assert doc.confirmed_at is not None
        assert live_stock(product.id) == 10
        assert replayed(product.id) == 10

    def test_cancel_draft_has_no_stock_effect(self, db_session, make_product, supplier):
        product = make_product()
        doc = fulfillment_service.create_stock_in_order(
            created_by=1,
            supplier_id=supplier.id,
            items=[{"product_id": product.id, "quantity": 4, "unit_cost": "2.50"}],
        )
        doc = fulfillment_service.cancel_stock_in_order(doc.id, actor_id=1)
        assert doc.status == "cancelled"
        assert live_stock(product.id) == 0
        assert replayed(product.id) == 0

    @pytest.mark.parametrize("second", ["confirmed", "cancelled"])
    def test_confirmed_is_terminal(self, db_session, make_product, receive, second):
        product = make_product()
        doc = receive(product, 5)

        with pytest.raises(InvalidTransitionError):
            fulfillment_service.update_stock_in_status(doc.id, second, actor_id=1)
        assert live_stock(product.id) == 5

    def test_unknown_status_rejected(self, db_session, make_product, receive):
        doc = receive(make_product(), 1)
        with pytest.raises(ValidationError):
            fulfillment_service.update_stock_in_status(doc.id, "posted", actor_id=1)

    def test_missing_document(self, db_session):
        with pytest.raises(NotFoundError):
            fulfillment_service.confirm_stock_in_order(999999, actor_id=1)

    def test_unknown_supplier(self, db_session, make_product):
        product = make_product()
        with pytest.raises(NotFoundError):
            fulfillment_service.create_stock_in_order(
                created_by=1,
                supplier_id=424242,
                items=[{"product_id": product.id, "quantity": 1, "unit_cost": 1}],
            )

    @pytest.mark.parametrize(
        "items",
        [
            [],
            None,
            [{"product_id": 1, "quantity": 0, "unit_cost": 1}],
            [{"product_id": 1, "quantity": 2.5, "unit_cost": 1}],
            [{"product_id": 1, "quantity": 1, "unit_cost": -1}],
            [{"quantity": 1, "unit_cost": 1}],
        ],
    )
    def test_invalid_items_rejected_without_rows(self, db_session, supplier, items):
        with pytest.raises(ValidationError):
            fulfillment_service.create_stock_in_order(created_by=1, supplier_id=supplier.id, items=items)
        assert db_session.query(StockInOrder).count() == 0

    def test_deleted_product_rejected(self, db_session, make_product, supplier):
        product = make_product(status="deleted")
        with pytest.raises(ConflictError):
            fulfillment_service.create_stock_in_order(
                created_by=1,
                supplier_id=supplier.id,
                items=[{"product_id": product.id, "quantity": 1, "unit_cost": 1}],
            )


# =============================================================================
# SALES ORDERS
# =============================================================================


class TestOrders:
    def test_create_confirm_cancel_round_trip(self, db_session, make_product, receive, customer):
        product = make_product(price="1500.00")
        receive(product, 10)

        order = fulfillment_service.create_order(
            created_by=2,
            customer_id=customer.id,
            items=[{"product_id": product.id, "quantity": 4, "unit_price": "0.01"}],
        )
        assert order.order_status == "draft"
        assert order.payment_status == "pending"
        assert order.final_amount == Decimal("6000.00")
        assert order.items[0].unit_price == Decimal("1500.00")
        assert live_stock(product.id) == 10

        fulfillment_service.update_order_status(order.id, actor_id=2, order_status="confirmed")
        assert live_stock(product.id) == 6
        assert replayed(product.id) == 6

        order = fulfillment_service.cancel_order(order.id, actor_id=1, note="customer changed mind")
        assert order.order_status == "cancelled"
        assert order.cancelled_at is not None
        assert order.note == "customer changed mind"
        assert live_stock(product.id) == 10
        assert replayed(product.id) == 10

    def test_duplicate_product_lines_are_summed(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 5)

        with pytest.raises(ConflictError) as exc:
            fulfillment_service.create_order(
                created_by=2,
                items=[
                    {"product_id": product.id, "quantity": 3},
                    {"product_id": product.id, "quantity": 3},
                ],
            )
        short = exc.value.details["items"][0]
        assert short["requested_quantity"] == 6
        assert short["available_quantity"] == 5
        assert db_session.query(Order).count() == 0

    def test_cancel_draft_does_not_restock(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 3)
        order = fulfillment_service.create_order(
            created_by=2, items=[{"product_id": product.id, "quantity": 2}]
        )
        fulfillment_service.cancel_order(order.id, actor_id=1)
        assert live_stock(product.id) == 3
        assert replayed(product.id) == 3

    def test_confirm_fails_when_stock_sold_meanwhile(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 5)
        first = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 3}])
        second = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 3}])

        fulfillment_service.update_order_status(first.id, actor_id=2, order_status="confirmed")
        with pytest.raises(ConflictError):
            fulfillment_service.update_order_status(second.id, actor_id=2, order_status="confirmed")

        assert live_stock(product.id) == 2
        db_session.expire_all()
        assert db_session.get(Order, second.id).order_status == "draft"

    def test_multi_line_confirm_is_all_or_nothing(self, db_session, make_product, receive):
        plenty = make_product()
        scarce = make_product()
        receive(plenty, 10)
        receive(scarce, 2)
        order = fulfillment_service.create_order(
            created_by=2,
            items=[{"product_id": plenty.id, "quantity": 4}, {"product_id": scarce.id, "quantity": 2}],
        )
        rival = fulfillment_service.create_order(created_by=2, items=[{"product_id": scarce.id, "quantity": 1}])
        fulfillment_service.update_order_status(rival.id, actor_id=2, order_status="confirmed")

        with pytest.raises(ConflictError):
            fulfillment_service.update_order_status(order.id, actor_id=2, order_status="confirmed")

        assert live_stock(plenty.id) == 10
        assert live_stock(scarce.id) == 1

    @pytest.mark.parametrize(
        "path,bad",
        [
            ([], "completed"),
            ([], "draft"),
            (["confirmed"], "confirmed"),
            (["confirmed"], "draft"),
            (["confirmed", "completed"], "cancelled"),
            (["confirmed", "completed"], "confirmed"),
            (["cancelled"], "confirmed"),
        ],
    )
    def test_illegal_transitions(self, db_session, make_product, receive, path, bad):
        product = make_product()
        receive(product, 10)
        order = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 1}])
        for status in path:
            fulfillment_service.update_order_status(order.id, actor_id=1, order_status=status)
        before = live_stock(product.id)

        with pytest.raises(InvalidTransitionError):
            fulfillment_service.update_order_status(order.id, actor_id=1, order_status=bad)
        assert live_stock(product.id) == before

    def test_completed_keeps_stock_deducted(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 10)
        order = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 4}])
        fulfillment_service.update_order_status(order.id, actor_id=1, order_status="confirmed", payment_status="paid")
        order = fulfillment_service.update_order_status(order.id, actor_id=1, order_status="completed")
        assert order.completed_at is not None
        assert order.payment_status == "paid"
        assert live_stock(product.id) == 6

    def test_payment_lifecycle(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 1)
        order = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 1}])

        with pytest.raises(InvalidTransitionError):
            fulfillment_service.update_order_status(order.id, actor_id=1, payment_status="refunded")
        fulfillment_service.update_order_status(order.id, actor_id=1, payment_status="paid")
        order = fulfillment_service.update_order_status(order.id, actor_id=1, payment_status="refunded")
        assert order.payment_status == "refunded"
        assert live_stock(product.id) == 1

    def test_status_required(self, db_session):
        with pytest.raises(ValidationError):
            fulfillment_service.update_order_status(1, actor_id=1)

    def test_deleted_product_rejected(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 3)
        product.status = "deleted"
        db_session.commit()
        with pytest.raises(ConflictError):
            fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 1}])

    def test_unknown_product_and_customer(self, db_session, make_product):
        with pytest.raises(NotFoundError):
            fulfillment_service.create_order(created_by=2, items=[{"product_id": 987654, "quantity": 1}])
        product = make_product()
        with pytest.raises(NotFoundError):
            fulfillment_service.create_order(
                created_by=2, customer_id=987654, items=[{"product_id": product.id, "quantity": 1}]
            )

    @pytest.mark.parametrize("field", ["product_id", "quantity"])
    def test_values_beyond_integer_column_rejected(self, db_session, field):
        item = {"product_id": 1, "quantity": 1}
        item[field] = 10**20
        with pytest.raises(ValidationError) as exc:
            fulfillment_service.create_order(created_by=2, items=[item])
        assert exc.value.details == {"field": f"items[0].{field}"}
        assert db.session.query(Order).count() == 0


# =============================================================================
# POINT-IN-TIME CONSISTENCY
# =============================================================================


class TestReplayConsistency:
    def test_as_of_between_completed_order_and_later_stock_in(self, db_session, make_product, receive, monkeypatch):
        product = make_product(cost_price="10.00")
        clock = {"now": datetime(2026, 3, 1, 9, 0)}
        monkeypatch.setattr(fulfillment_service, "utcnow", lambda: clock["now"])

        receive(product, 20)
        clock["now"] = datetime(2026, 3, 2, 9, 0)
        order = fulfillment_service.create_order(created_by=2, items=[{"product_id": product.id, "quantity": 4}])
        fulfillment_service.update_order_status(order.id, actor_id=1, order_status="confirmed")
        fulfillment_service.update_order_status(order.id, actor_id=1, order_status="completed")
        clock["now"] = datetime(2026, 3, 4, 9, 0)
        receive(product, 50)

        rows = inventory_service.get_stock_as_of(as_of=datetime(2026, 3, 3, 12, 0), product_id=product.id)
        assert rows == [{"product_id": product.id, "computed_quantity": 16, "computed_value": "160.00"}]
        assert replayed(product.id, datetime(2026, 3, 1, 8, 59)) == 0
        assert replayed(product.id) == live_stock(product.id) == 66

    def test_live_matches_replay_after_mixed_history(self, db_session, make_product, receive):
        a = make_product()
        b = make_product()
        receive(a, 8)
        receive(b, 3)
        o1 = fulfillment_service.create_order(created_by=2, items=[{"product_id": a.id, "quantity": 5}, {"product_id": b.id, "quantity": 1}])
        o2 = fulfillment_service.create_order(created_by=2, items=[{"product_id": a.id, "quantity": 2}])
        fulfillment_service.update_order_status(o1.id, actor_id=1, order_status="confirmed")
        fulfillment_service.update_order_status(o2.id, actor_id=1, order_status="confirmed")
        fulfillment_service.cancel_order(o1.id, actor_id=1)

        report = inventory_service.reconcile()
        assert report["consistent"] is True
        assert report["drift"] == []
        assert live_stock(a.id) == 6
        assert live_stock(b.id) == 3

    def test_reconcile_reports_drift(self, db_session, make_product, receive):
        product = make_product()
        receive(product, 5)
        db.session.execute(
            text("UPDATE products SET stock_quantity = 9 WHERE id = :id"), {"id": product.id}
        )
        db.session.commit()

        report = inventory_service.reconcile()
        assert report["consistent"] is False
        assert report["drift"][0]["product_id"] == product.id
        assert report["drift"][0]["difference"] == 4
