import pytest
from rest_framework.test import APIClient
from apps.accounts.models import User


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
        full_name='Test User',
        bio='Bakes on weekends',
        avatar='https://cdn.example.com/a.png',
        followers=['f1', 'f2'],
    )


@pytest.fixture
def user_inactive(db):
    """Create and return an inactive user."""
    return User.objects.create_user(
        email='inactive@example.com',
        password='TestPass123!',
        full_name='Inactive User',
        is_active=False,
    )


@pytest.fixture
def nameless_user(db):
    """Create and return a user without a full name."""
    return User.objects.create_user(
        email='chef.anon@example.com',
        password='TestPass123!',
    )
