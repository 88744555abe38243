# ===============================================================================
# PYTEST CONFIGURATION FOR DUKA
# ===============================================================================
"""
Global test configuration for Duka.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- tests/api/ for endpoint tests through the DRF test client
- Naming convention: test_{app}_{feature}.py

Test Discovery:
- Run specific app tests: pytest tests/orders/
- Run all tests: pytest tests/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')

    # Configure Django
    django.setup()

# ===============================================================================
# PYTEST FIXTURES
# ===============================================================================

import pytest  # noqa: E402
from django.contrib.auth import get_user_model  # noqa: E402
from rest_framework.test import APIClient  # noqa: E402

User = get_user_model()

@pytest.fixture
def user():
    """Create test customer"""
    return User.objects.create_user(
        email='customer@duka.test',
        password='testpass123',
        first_name='Wanjiku',
        last_name='Kamau',
        phone='254712345678',
    )

@pytest.fixture
def admin_user():
    """Create admin user for tests"""
    return User.objects.create_user(
        email='admin@duka.test',
        password='testpass123',
        first_name='Admin',
        last_name='User',
        is_staff=True,
        is_superuser=True,
    )

@pytest.fixture
def api_client():
    """Unauthenticated DRF client"""
    return APIClient()

@pytest.fixture
def authenticated_client(user):
    """DRF client logged in as the test customer"""
    client = APIClient()
    client.force_authenticate(user=user)
    return client
