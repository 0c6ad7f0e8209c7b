# Resync Listings Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Exists, OuterRef

from marketplace.models import Listing, Order


class Command(BaseCommand):
    help = 'Recomputes Listing.is_sold from completed orders to repair drift.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report the changes without saving them.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        self.stdout.write('Resyncing listing sold flags...')

        completed_orders = Order.objects.filter(
            listing=OuterRef('pk'),
            status=Order.STATUS_COMPLETED,
        )
        listings = (
            Listing.objects
            .annotate(has_completed_order=Exists(completed_orders))
            .order_by('pk')
            .iterator(chunk_size=batch_size)
        )

        updates = []
        count = 0
        changed = 0

        for listing in listings:
            if listing.is_sold != listing.has_completed_order:
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] Listing {listing.pk} ({listing.title}): '
                        f'is_sold {listing.is_sold} -> {listing.has_completed_order}'
                    )
                listing.is_sold = listing.has_completed_order
                updates.append(listing)
                changed += 1

            if len(updates) >= batch_size:
                if not dry_run:
                    Listing.objects.bulk_update(updates, ['is_sold'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} listings...')

        if updates and not dry_run:
            Listing.objects.bulk_update(updates, ['is_sold'])

        self.stdout.write(f'Processed {count} listings total, {changed} out of sync.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Resync completed successfully.'))
