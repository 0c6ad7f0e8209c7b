# Populate Demo Data Management Command
import random
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from faker import Faker

from marketplace import services
from marketplace.exceptions import MarketplaceError
from marketplace.models import Listing, User
from marketplace.validators import (
    SCHOOL_EMAIL_DOMAIN,
    validate_contact,
    validate_full_name,
    validate_username,
)

DEMO_PASSWORD = 'Password123'

CATEGORIES = ['Books', 'Electronics', 'Clothing', 'School Supplies', 'Furniture', 'Others']
CONDITIONS = ['Brand New', 'Like New', 'Used', 'Well Used']
ITEM_NOUNS = [
    'Calculator', 'Lab Gown', 'Textbook', 'Desk Lamp', 'Backpack',
    'Drawing Set', 'Electric Fan', 'Headphones', 'Uniform', 'Study Table',
]


class Command(BaseCommand):
    help = 'Seeds demo users, listings and orders. Every generated account passes the registration rules.'

    def add_arguments(self, parser):
        parser.add_argument('--users', type=int, default=10, help='Number of users to create.')
        parser.add_argument('--listings', type=int, default=20, help='Number of listings to create.')
        parser.add_argument('--orders', type=int, default=15, help='Number of orders to attempt.')
        parser.add_argument('--seed', type=int, default=None, help='Seed for repeatable data.')

    def handle(self, *args, **options):
        num_users = options['users']
        num_listings = options['listings']
        num_orders = options['orders']

        if min(num_users, num_listings, num_orders) < 0:
            raise CommandError('Counts must not be negative.')
        if num_users < 2 and (num_listings or num_orders):
            raise CommandError('At least two users are needed to create listings and orders.')

        self.rng = random.Random(options['seed'])
        self.fake = Faker()
        if options['seed'] is not None:
            self.fake.seed_instance(options['seed'])

        with transaction.atomic():
            users = self.create_users(num_users)
            listings = self.create_listings(users, num_listings)
            self.create_orders(users, listings, num_orders)

        self.stdout.write(self.style.SUCCESS('Demo data created successfully.'))
        self.stdout.write(f'All demo accounts use the password "{DEMO_PASSWORD}".')

    def _full_name(self):
        while True:
            name = f'{self.fake.first_name()} {self.fake.last_name()}'
            if not validate_full_name(name):
                return name

    def _contact(self):
        while True:
            contact = self.fake.numerify('09#########')
            if not validate_contact(contact) and not User.objects.filter(contact=contact).exists():
                return contact

    def create_users(self, count):
        self.stdout.write(f'Creating {count} users...')
        users = []
        index = User.objects.count()

        while len(users) < count:
            index += 1
            name = self._full_name()
            username = f'{name.split()[0].lower()[:12]}{index}'
            if validate_username(username) or User.objects.filter(username=username).exists():
                continue

            user = User.objects.create_user(
                username=username,
                email=f'{username}@{SCHOOL_EMAIL_DOMAIN}',
                password=DEMO_PASSWORD,
                name=name,
                student_id=self.fake.numerify('202#######'),
                contact=self._contact(),
                gender=self.rng.choice(['male', 'female', 'other']),
                date_of_birth=self.fake.date_of_birth(minimum_age=18, maximum_age=30),
            )
            users.append(user)

        self.stdout.write(f'Created {len(users)} users.')
        return users

    def create_listings(self, users, count):
        self.stdout.write(f'Creating {count} listings...')
        listings = []

        for _ in range(count):
            seller = self.rng.choice(users)
            data = {
                'title': f'{self.rng.choice(CONDITIONS)} {self.rng.choice(ITEM_NOUNS)}',
                'description': self.fake.sentence(nb_words=12),
                'price': Decimal(self.rng.randint(50, 5000)),
                'category': self.rng.choice(CATEGORIES),
                'condition': self.rng.choice(CONDITIONS),
                'location': self.fake.street_name(),
                'image_url': self.fake.image_url(),
            }
            listings.append(services.create_listing(seller, data))

        self.stdout.write(f'Created {len(listings)} listings.')
        return listings

    def create_orders(self, users, listings, count):
        self.stdout.write(f'Creating up to {count} orders...')
        created = 0
        skipped = 0

        for _ in range(count):
            if not listings:
                break
            listing = self.rng.choice(listings)
            buyers = [user for user in users if user.pk != listing.seller_id]
            buyer = self.rng.choice(buyers)

            try:
                order = services.create_order(buyer, listing.pk)
            except MarketplaceError:
                # Sold listing or an existing pending order for this buyer
                skipped += 1
                continue

            outcome = self.rng.choice(['pending', 'completed', 'cancelled', 'half'])
            seller = User.objects.get(pk=order.seller_id)
            if outcome == 'completed':
                services.confirm_order(buyer, order.pk)
                services.confirm_order(seller, order.pk)
                listings = [item for item in listings if item.pk != listing.pk]
            elif outcome == 'cancelled':
                services.cancel_order(buyer, order.pk)
            elif outcome == 'half':
                services.confirm_order(self.rng.choice([buyer, seller]), order.pk)
            created += 1

        self.stdout.write(f'Created {created} orders ({skipped} skipped).')
        self.stdout.write(f'{Listing.objects.filter(is_sold=True).count()} listings are now sold.')
