"""
Sales report tests.

Verifies:
- Only confirmed/completed orders count; drafts and cancelled orders never do
- Orders are grouped by the day/week/month they were confirmed
- Top products rank by units sold and honour date bounds
"""

from datetime import datetime

import pytest

from storeadmin.errors import ValidationError
from storeadmin.services import fulfillment_service, reporting_service


@pytest.fixture
def sales_history(db_session, make_product, receive, monkeypatch):
    """
    Two products sold over two days in March 2026.

    Day 1: tea x2 (completed, paid), biscuits x1 (confirmed).
    Day 2: biscuits x4 (confirmed), tea x1 confirmed then cancelled, tea x3 left in draft.
    """
    tea = make_product(name="Tea", price="10.00")
    biscuits = make_product(name="Biscuits", price="5.00")
    clock = {"now": datetime(2026, 2, 28, 9, 0)}
    monkeypatch.setattr(fulfillment_service, "utcnow", lambda: clock["now"])
    receive(tea, 20)
    receive(biscuits, 20)

    def sell(product, quantity, *statuses):
        order = fulfillment_service.create_order(
            created_by=2, items=[{"product_id": product.id, "quantity": quantity}]
        )
        for status in statuses:
            fulfillment_service.update_order_status(order.id, actor_id=1, order_status=status)
        return order

    clock["now"] = datetime(2026, 3, 1, 10, 0)
    paid = sell(tea, 2, "confirmed", "completed")
    fulfillment_service.update_order_status(paid.id, actor_id=1, payment_status="paid")
    sell(biscuits, 1, "confirmed")

    clock["now"] = datetime(2026, 3, 2, 15, 30)
    sell(biscuits, 4, "confirmed")
    sell(tea, 1, "confirmed", "cancelled")
    sell(tea, 3)

    return {"tea": tea, "biscuits": biscuits}


class TestSalesReport:
    def test_daily_rows_newest_first(self, sales_history):
        report = reporting_service.sales_report(group_by="day")
        assert report["rows"] == [
            {
                "period": "2026-03-02",
                "total_orders": 1,
                "total_revenue": "20.00",
                "avg_order_value": "20.00",
                "paid_orders": 0,
                "completed_orders": 0,
            },
            {
                "period": "2026-03-01",
                "total_orders": 2,
                "total_revenue": "25.00",
                "avg_order_value": "12.50",
                "paid_orders": 1,
                "completed_orders": 1,
            },
        ]

    def test_monthly_and_bounded(self, sales_history):
        month = reporting_service.sales_report(group_by="month")["rows"]
        assert [(r["period"], r["total_orders"], r["total_revenue"]) for r in month] == [("2026-03", 3, "45.00")]

        bounded = reporting_service.sales_report(
            group_by="day", date_from=datetime(2026, 3, 2, 0, 0), date_to=datetime(2026, 3, 2, 23, 59, 59)
        )
        assert [r["period"] for r in bounded["rows"]] == ["2026-03-02"]
        assert bounded["date_from"] == "2026-03-02T00:00:00Z"

    def test_unknown_grouping(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.sales_report(group_by="year")

    def test_empty_ledger(self, db_session):
        assert reporting_service.sales_report()["rows"] == []


class TestTopProducts:
    def test_ranked_by_units_sold(self, sales_history):
        products = reporting_service.top_products()["products"]
        assert [(p["product_id"], p["total_sold"], p["total_revenue"], p["total_orders"]) for p in products] == [
            (sales_history["biscuits"].id, 5, "25.00", 2),
            (sales_history["tea"].id, 2, "20.00", 1),
        ]

    def test_limit_and_date_bounds(self, sales_history):
        top = reporting_service.top_products(limit="1")
        assert top["limit"] == 1
        assert [p["name"] for p in top["products"]] == ["Biscuits"]

        day_one = reporting_service.top_products(date_to=datetime(2026, 3, 1, 23, 59, 59))["products"]
        assert [(p["name"], p["total_sold"]) for p in day_one] == [("Tea", 2), ("Biscuits", 1)]

    @pytest.mark.parametrize("limit", ["0", "-3", "ten", "2.5"])
    def test_bad_limit(self, db_session, limit):
        with pytest.raises(ValidationError):
            reporting_service.top_products(limit=limit)


class TestReportRoutes:
    def test_manager_only(self, client, db_session, staff_headers):
        for path in ("/api/reports/sales", "/api/reports/top-products"):
            resp = client.get(path, headers=staff_headers)
            assert resp.status_code == 403
            assert client.get(path).status_code == 401

    def test_sales_and_top_products(self, client, sales_history, manager_headers):
        resp = client.get("/api/reports/sales?group_by=week", headers=manager_headers)
        assert resp.status_code == 200
        rows = resp.get_json()["data"]["rows"]
        assert sum(r["total_orders"] for r in rows) == 3

        resp = client.get("/api/reports/top-products?limit=5&date_from=2026-03-02", headers=manager_headers)
        assert resp.status_code == 200
        products = resp.get_json()["data"]["products"]
        assert [(p["name"], p["total_sold"]) for p in products] == [("Biscuits", 4)]

    def test_bad_params(self, client, db_session, manager_headers):
        resp = client.get("/api/reports/sales?group_by=year", headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"
        resp = client.get("/api/reports/top-products?date_from=soon", headers=manager_headers)
        assert resp.status_code == 400
