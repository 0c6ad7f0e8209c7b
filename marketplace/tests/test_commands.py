from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from marketplace.models import Listing, Order, User
from marketplace.validators import (
    validate_contact,
    validate_full_name,
    validate_school_email,
    validate_student_id,
    validate_username,
)


class ResyncListingsCommandTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user(
            username='seller1', email='seller1@mcm.edu.ph', password='Password123', contact='09170000001'
        )
        self.buyer = User.objects.create_user(
            username='buyer1', email='buyer1@mcm.edu.ph', password='Password123', contact='09170000002'
        )

        # Sold flag missing although the order completed
        self.unflagged = self.create_listing('Calculus Textbook')
        Order.objects.create(
            listing=self.unflagged,
            buyer=self.buyer,
            seller=self.seller,
            item_title=self.unflagged.title,
            item_price=self.unflagged.price,
            status=Order.STATUS_COMPLETED,
            confirmed_by_buyer=True,
            confirmed_by_seller=True,
        )

        # Flagged sold with no completed order
        self.wrongly_sold = self.create_listing('Desk Lamp')
        Listing.objects.filter(pk=self.wrongly_sold.pk).update(is_sold=True)

        # Only a pending order; stays available
        self.available = self.create_listing('PE Uniform')
        Order.objects.create(
            listing=self.available,
            buyer=self.buyer,
            seller=self.seller,
            item_title=self.available.title,
            item_price=self.available.price,
        )

    def create_listing(self, title):
        return Listing.objects.create(
            seller=self.seller,
            title=title,
            price=Decimal('100.00'),
            category='Others',
            image_url='https://example.com/item.jpg',
        )

    def test_resync_fixes_drift(self):
        out = StringIO()
        call_command('resync_listings', stdout=out)

        self.unflagged.refresh_from_db()
        self.wrongly_sold.refresh_from_db()
        self.available.refresh_from_db()

        self.assertTrue(self.unflagged.is_sold)
        self.assertFalse(self.wrongly_sold.is_sold)
        self.assertFalse(self.available.is_sold)
        self.assertIn('Processed 3 listings total, 2 out of sync.', out.getvalue())
        self.assertIn('Resync completed successfully.', out.getvalue())

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('resync_listings', '--dry-run', stdout=out)

        self.unflagged.refresh_from_db()
        self.wrongly_sold.refresh_from_db()

        self.assertFalse(self.unflagged.is_sold)
        self.assertTrue(self.wrongly_sold.is_sold)
        self.assertIn('[DRY-RUN]', out.getvalue())
        self.assertIn('Dry run completed. No changes saved.', out.getvalue())

    def test_small_batches(self):
        call_command('resync_listings', '--batch-size', '1', stdout=StringIO())

        self.unflagged.refresh_from_db()
        self.wrongly_sold.refresh_from_db()
        self.assertTrue(self.unflagged.is_sold)
        self.assertFalse(self.wrongly_sold.is_sold)

    def test_second_run_finds_nothing(self):
        call_command('resync_listings', stdout=StringIO())
        out = StringIO()
        call_command('resync_listings', stdout=out)

        self.assertIn('0 out of sync', out.getvalue())

    def test_invalid_batch_size(self):
        with self.assertRaises(CommandError):
            call_command('resync_listings', '--batch-size', '0', stdout=StringIO())


class PopulateDemoCommandTests(TestCase):
    def test_creates_requested_counts(self):
        call_command('populate_demo', '--users', '4', '--listings', '6', '--orders', '5', '--seed', '7', stdout=StringIO())

        self.assertEqual(User.objects.count(), 4)
        self.assertEqual(Listing.objects.count(), 6)
        self.assertLessEqual(Order.objects.count(), 5)

    def test_accounts_pass_registration_rules(self):
        call_command('populate_demo', '--users', '5', '--listings', '0', '--orders', '0', '--seed', '3', stdout=StringIO())

        for user in User.objects.all():
            self.assertIsNone(validate_full_name(user.name))
            self.assertIsNone(validate_school_email(user.email))
            self.assertIsNone(validate_student_id(user.student_id))
            self.assertIsNone(validate_username(user.username))
            self.assertIsNone(validate_contact(user.contact))
            self.assertTrue(user.check_password('Password123'))

    def test_sold_flags_match_completed_orders(self):
        call_command('populate_demo', '--users', '5', '--listings', '8', '--orders', '20', '--seed', '11', stdout=StringIO())

        for listing in Listing.objects.all():
            has_completed = listing.orders.filter(status=Order.STATUS_COMPLETED).exists()
            self.assertEqual(listing.is_sold, has_completed)

        for order in Order.objects.all():
            self.assertNotEqual(order.buyer_id, order.seller_id)

    def test_runs_twice_without_collisions(self):
        call_command('populate_demo', '--users', '3', '--listings', '2', '--orders', '1', '--seed', '5', stdout=StringIO())
        call_command('populate_demo', '--users', '3', '--listings', '2', '--orders', '1', '--seed', '5', stdout=StringIO())

        self.assertEqual(User.objects.count(), 6)

    def test_rejects_negative_counts(self):
        with self.assertRaises(CommandError):
            call_command('populate_demo', '--users', '-1', stdout=StringIO())

    def test_needs_two_users_for_orders(self):
        with self.assertRaises(CommandError):
            call_command('populate_demo', '--users', '1', '--listings', '1', stdout=StringIO())
