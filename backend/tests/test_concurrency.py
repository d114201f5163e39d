# Overview: Threaded concurrency tests against a file-backed SQLite database.

"""
Concurrency tests for foodops.

Each test runs real threads, each in its own app context and session, against
a temporary SQLite file so writers actually contend.
"""
import os
import tempfile
import threading
import unittest
from datetime import date, datetime

from foodops import create_app
from foodops.extensions import db
from foodops.models import CutoffCycle, DocumentSequence, Product, ProductLot
from foodops.models.cutoff import CYCLE_CLOSED, CYCLE_OPEN, PHASE_ADDITIONAL, PHASE_REGULAR
from foodops.errors import InsufficientStockError
from foodops.services import cutoff_service, document_service, inventory_service
from foodops.time_utils import business_today, yymmdd


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "TX_RETRY_ATTEMPTS": 20,
            "TX_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            product = inventory_service.create_product({"name": "Concurrent Cabbage", "purchase_price": 100})
            self.product_id = product.id
            inventory_service.receive_lot(self.product_id, 10, 100, lot_date=date(2025, 1, 1))

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count):
        results = []
        errors = []
        lock = threading.Lock()
        barrier = threading.Barrier(count)

        def worker():
            with self.app.app_context():
                try:
                    barrier.wait()
                    value = target()
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_document_numbers_are_unique_under_contention(self):
        today = business_today()
        with self.app.app_context():
            db.session.add(DocumentSequence(domain="purchase_order", last_number=5, counter_date=today))
            db.session.commit()

        results, errors = self._run_threads(lambda: document_service.next_document_number("purchase_order"), 2)

        self.assertFalse(errors)
        prefix = f"PO-{yymmdd(today)}"
        self.assertEqual(sorted(results), [f"{prefix}-006", f"{prefix}-007"])

    def test_many_allocations_have_no_gaps_or_duplicates(self):
        results, errors = self._run_threads(lambda: document_service.next_document_number("sale_order"), 8)

        self.assertFalse(errors)
        numbers = sorted(int(r.rsplit("-", 1)[1]) for r in results)
        self.assertEqual(numbers, list(range(1, 9)))

    def test_simultaneous_close_yields_one_transition(self):
        t0 = datetime(2025, 1, 1, 0, 0, 0)
        with self.app.app_context():
            cycle = CutoffCycle(sequence=1, status=CYCLE_OPEN, phase=PHASE_REGULAR, opened_at=t0)
            db.session.add(cycle)
            db.session.commit()
            first_id = cycle.id

        cutoff = datetime(2025, 1, 1, 8, 0, 0)
        results, errors = self._run_threads(
            lambda: cutoff_service.close(cutoff, expected_cycle_id=first_id).id,
            2,
        )

        self.assertFalse(errors)
        self.assertEqual(len(set(results)), 1)
        with self.app.app_context():
            cycles = db.session.query(CutoffCycle).order_by(CutoffCycle.sequence).all()
            self.assertEqual(len(cycles), 2)
            self.assertEqual([c.status for c in cycles], [CYCLE_CLOSED, CYCLE_OPEN])
            self.assertEqual(cycles[1].phase, PHASE_ADDITIONAL)
            self.assertEqual(cycles[1].opened_at, cutoff)

    def test_concurrent_consume_never_oversells(self):
        def consume():
            try:
                return sum(a.quantity for a in inventory_service.consume_lots(self.product_id, 6))
            except InsufficientStockError:
                return 0

        results, errors = self._run_threads(consume, 2)

        self.assertFalse(errors)
        self.assertEqual(sorted(results), [0, 6])
        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            lot_stock = sum(lot.stock for lot in db.session.query(ProductLot).filter_by(product_id=self.product_id))
            self.assertEqual(product.stock_quantity, 4)
            self.assertEqual(lot_stock, 4)


if __name__ == "__main__":
    unittest.main()
