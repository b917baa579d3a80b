"""
Threaded concurrency tests against a file-backed SQLite database.

Each worker runs in its own app context (own session), the way concurrent
WSGI requests do.
"""
import os
import tempfile
import threading
import unittest
from decimal import Decimal

from storeadmin import create_app
from storeadmin.errors import ConflictError, InvalidTransitionError
from storeadmin.extensions import db
from storeadmin.models import Order, Product, Supplier
from storeadmin.services import fulfillment_service, inventory_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
            "LOCK_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            supplier = Supplier(name="Concurrency Supplier")
            db.session.add(supplier)
            product = Product(
                sku="CONCUR-1",
                name="Concurrent Product",
                price=Decimal("10.00"),
                cost_price=Decimal("4.00"),
            )
            db.session.add(product)
            db.session.commit()
            self.supplier_id = supplier.id
            self.product_id = product.id

            doc = fulfillment_service.create_stock_in_order(
                created_by=1,
                supplier_id=self.supplier_id,
                items=[{"product_id": self.product_id, "quantity": 5, "unit_cost": "4.00"}],
            )
            fulfillment_service.confirm_stock_in_order(doc.id, actor_id=1)

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _create_orders(self, count, quantity):
        with self.app.app_context():
            ids = []
            for _ in range(count):
                order = fulfillment_service.create_order(
                    created_by=2, items=[{"product_id": self.product_id, "quantity": quantity}]
                )
                ids.append(order.id)
            return ids

    def _run_workers(self, target, args_list):
        results = []
        lock = threading.Lock()

        def worker(*args):
            with self.app.app_context():
                try:
                    target(*args)
                    outcome = "ok"
                except Exception as exc:
                    outcome = exc
                finally:
                    db.session.remove()
                with lock:
                    results.append(outcome)

        threads = [threading.Thread(target=worker, args=args) for args in args_list]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _stock(self):
        with self.app.app_context():
            return db.session.get(Product, self.product_id).stock_quantity

    def test_concurrent_confirm_never_oversells(self):
        order_ids = self._create_orders(2, 3)

        def confirm(order_id):
            fulfillment_service.update_order_status(order_id, actor_id=2, order_status="confirmed")

        results = self._run_workers(confirm, [(oid,) for oid in order_ids])

        self.assertEqual(results.count("ok"), 1)
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        self.assertEqual(len(conflicts), 1, results)
        self.assertEqual(self._stock(), 2)

        with self.app.app_context():
            statuses = sorted(db.session.get(Order, oid).order_status for oid in order_ids)
            self.assertEqual(statuses, ["confirmed", "draft"])

    def test_many_workers_stock_stays_non_negative(self):
        order_ids = self._create_orders(6, 1)

        def confirm(order_id):
            fulfillment_service.update_order_status(order_id, actor_id=2, order_status="confirmed")

        results = self._run_workers(confirm, [(oid,) for oid in order_ids])

        self.assertEqual(results.count("ok"), 5)
        self.assertTrue(all(r == "ok" or isinstance(r, ConflictError) for r in results), results)
        self.assertEqual(self._stock(), 0)

        with self.app.app_context():
            report = inventory_service.reconcile()
            self.assertTrue(report["consistent"], report)

    def test_duplicate_cancel_restocks_once(self):
        [order_id] = self._create_orders(1, 4)
        with self.app.app_context():
            fulfillment_service.update_order_status(order_id, actor_id=2, order_status="confirmed")
        self.assertEqual(self._stock(), 1)

        def cancel(oid):
            fulfillment_service.cancel_order(oid, actor_id=1)

        results = self._run_workers(cancel, [(order_id,), (order_id,)])

        self.assertEqual(results.count("ok"), 1)
        self.assertEqual(sum(isinstance(r, InvalidTransitionError) for r in results), 1, results)
        self.assertEqual(self._stock(), 5)

    def test_stock_in_and_sales_interleaved(self):
        order_ids = self._create_orders(3, 2)

        with self.app.app_context():
            receipts = []
            for _ in range(3):
                doc = fulfillment_service.create_stock_in_order(
                    created_by=1,
                    supplier_id=self.supplier_id,
                    items=[{"product_id": self.product_id, "quantity": 2, "unit_cost": "4.00"}],
                )
                receipts.append(doc.id)

        def confirm_order(oid):
            fulfillment_service.update_order_status(oid, actor_id=2, order_status="confirmed")

        def confirm_receipt(doc_id):
            fulfillment_service.confirm_stock_in_order(doc_id, actor_id=1)

        def dispatch(kind, doc_id):
            (confirm_order if kind == "order" else confirm_receipt)(doc_id)

        jobs = [("order", oid) for oid in order_ids] + [("receipt", did) for did in receipts]
        results = self._run_workers(dispatch, jobs)

        self.assertTrue(all(r == "ok" or isinstance(r, ConflictError) for r in results), results)
        self.assertGreaterEqual(self._stock(), 0)
        with self.app.app_context():
            report = inventory_service.reconcile()
            self.assertTrue(report["consistent"], report)


if __name__ == "__main__":
    unittest.main()
