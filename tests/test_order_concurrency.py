"""
Concurrent confirmation and ordering from separate connections.

These tests run real threads. On SQLite they rely on the file-backed test
database and BEGIN IMMEDIATE transactions; elsewhere on SELECT ... FOR UPDATE.
"""

import threading
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connections
from django.test import TransactionTestCase

from marketplace import services
from marketplace.exceptions import MarketplaceError
from marketplace.models import Listing, Order

User = get_user_model()


def run_concurrently(*calls):
    """Start every call at the same moment; return results or raised errors."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, func):
        try:
            barrier.wait()
            results[index] = func()
        except Exception as exc:
            results[index] = exc
        finally:
            connections.close_all()

    threads = [
        threading.Thread(target=worker, args=(index, func))
        for index, func in enumerate(calls)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


class ConcurrentOrderTests(TransactionTestCase):

    def setUp(self):
        self.seller = User.objects.create_user(
            username='seller1',
            email='seller1@mcm.edu.ph',
            password='Password123',
            contact='09170000001',
        )
        self.buyer = User.objects.create_user(
            username='buyer1',
            email='buyer1@mcm.edu.ph',
            password='Password123',
            contact='09170000002',
        )
        self.listing = Listing.objects.create(
            seller=self.seller,
            title='Calculus Textbook',
            price=Decimal('450.00'),
            category='Books',
            image_url='https://example.com/calculus.jpg',
        )

    def test_simultaneous_confirmations_complete_order(self):
        for _ in range(10):
            order = services.create_order(self.buyer, self.listing.pk)

            results = run_concurrently(
                lambda: services.confirm_order(self.buyer, order.pk),
                lambda: services.confirm_order(self.seller, order.pk),
            )

            self.assertTrue(all(isinstance(result, Order) for result in results), results)
            order.refresh_from_db()
            self.assertEqual(order.status, Order.STATUS_COMPLETED)
            self.assertTrue(order.confirmed_by_buyer)
            self.assertTrue(order.confirmed_by_seller)
            self.assertIsNotNone(order.completed_at)

            Listing.objects.filter(pk=self.listing.pk).update(is_sold=False)

    def test_simultaneous_orders_leave_one_pending(self):
        results = run_concurrently(
            lambda: services.create_order(self.buyer, self.listing.pk),
            lambda: services.create_order(self.buyer, self.listing.pk),
        )

        created = [result for result in results if isinstance(result, Order)]
        rejected = [result for result in results if isinstance(result, MarketplaceError)]
        self.assertEqual(len(created), 1)
        self.assertEqual(len(rejected), 1)
        self.assertEqual(
            Order.objects.filter(listing=self.listing, status=Order.STATUS_PENDING).count(),
            1,
        )

    def test_cancel_racing_confirm_ends_in_one_terminal_state(self):
        order = services.create_order(self.buyer, self.listing.pk)
        services.confirm_order(self.seller, order.pk)

        run_concurrently(
            lambda: services.confirm_order(self.buyer, order.pk),
            lambda: services.cancel_order(self.buyer, order.pk),
        )

        order.refresh_from_db()
        self.listing.refresh_from_db()
        self.assertIn(order.status, [Order.STATUS_COMPLETED, Order.STATUS_CANCELLED])
        self.assertEqual(self.listing.is_sold, order.status == Order.STATUS_COMPLETED)
