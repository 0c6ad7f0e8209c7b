"""
Shared pytest fixtures for the ClassCart test suite.
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

User = get_user_model()

DEFAULT_PASSWORD = 'Password123'


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """
    Factory for accounts that pass every registration rule.

    Each call gets its own username, email, student ID and contact.
    """
    created = []

    def _make_user(username=None, password=DEFAULT_PASSWORD, **extra):
        number = len(created) + 1
        username = username or f'student{number}'
        fields = {
            'email': f'{username}@mcm.edu.ph',
            'name': 'Juan Dela Cruz',
            'student_id': f'202{number:07d}',
            'contact': f'0917{number:07d}',
        }
        fields.update(extra)
        user = User.objects.create_user(username=username, password=password, **fields)
        created.append(user)
        return user

    return _make_user


@pytest.fixture
def registration_payload():
    """A registration body that passes every rule."""
    return {
        'name': 'Juan Dela Cruz',
        'email': 'juan.delacruz@mcm.edu.ph',
        'studentid': '2021234567',
        'username': 'juan.dc',
        'password': 'Password123',
        'confirm': 'Password123',
        'contact': '09171234567',
        'gender': 'male',
        'dob': '2003-05-20',
    }


@pytest.fixture
def make_listing(db):
    """Factory for listings owned by ``seller``."""
    from decimal import Decimal

    from marketplace.models import Listing

    def _make_listing(seller, **extra):
        fields = {
            'title': 'Calculus Textbook',
            'description': 'Stewart, 8th edition. Light highlighting.',
            'price': Decimal('450.00'),
            'category': 'Books',
            'condition': 'Used',
            'location': 'Main Library',
            'image_url': 'https://example.com/calculus.jpg',
        }
        fields.update(extra)
        return Listing.objects.create(seller=seller, **fields)

    return _make_listing
