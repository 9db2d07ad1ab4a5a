"""
Concurrent checkout tests against a file-backed SQLite database.

Two tills selling the last units of the same product must not both succeed.
"""

import os
import tempfile
import threading
import unittest
from decimal import Decimal

from posledger import create_app
from posledger.errors import InsufficientStockError
from posledger.extensions import db
from posledger.models import AuditLogEntry, Product, Sale, User
from posledger.services import checkout_service


class CheckoutConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "CHECKOUT_RETRY_ATTEMPTS": 5,
            "CHECKOUT_RETRY_BACKOFF": 0.05,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            user = User(username="till1", password_hash="dummy", is_active=True)
            db.session.add(user)
            db.session.commit()
            self.user_id = user.id

            product = Product(
                sku="CONCUR-1",
                name="Concurrent Product",
                price_cents=1000,
                quantity_on_hand=Decimal(10),
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_tills(self, quantities):
        results = []
        lock = threading.Lock()
        start = threading.Barrier(len(quantities))

        def worker(quantity):
            with self.app.app_context():
                try:
                    start.wait()
                    result = checkout_service.checkout(
                        buyer_id=self.user_id,
                        items=[{"product_id": self.product_id, "quantity": quantity}],
                    )
                    with lock:
                        results.append(result)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(q,)) for q in quantities]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_concurrent_checkout_does_not_oversell(self):
        results = self._run_tills([6, 6])

        sold = [r for r in results if isinstance(r, checkout_service.CheckoutResult)]
        refused = [r for r in results if isinstance(r, InsufficientStockError)]
        self.assertEqual(len(sold), 1, results)
        self.assertEqual(len(refused), 1, results)

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.quantity_on_hand, Decimal(4))
            self.assertEqual(db.session.query(Sale).count(), 1)
            self.assertEqual(db.session.query(AuditLogEntry).count(), 1)

    def test_many_small_checkouts_conserve_stock(self):
        results = self._run_tills([1] * 8)

        errors = [r for r in results if isinstance(r, Exception)]
        self.assertFalse(errors)

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.quantity_on_hand, Decimal(2))
            self.assertEqual(db.session.query(Sale).count(), 8)
            self.assertEqual(len({r.sale_id for r in results}), 8)


if __name__ == "__main__":
    unittest.main()
