"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(staff_member, clinic):
        assert staff_member.is_member_of(clinic.id)
"""

import pytest

from authentication.models import User
from authentication.tests.factories import UserFactory
from clinics.tests.factories import ClinicFactory


# =============================================================================
# Clinic Fixtures
# =============================================================================


@pytest.fixture
def clinic(db):
    """Create an active clinic."""
    return ClinicFactory()


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def staff_member(clinic):
    """Create an active staff member of the clinic fixture."""
    return UserFactory(clinic=clinic)


@pytest.fixture
def superuser(db):
    """Create a platform superuser (no clinic)."""
    return User.objects.create_superuser(email="admin@example.com", password="AdminPass123!")


@pytest.fixture
def deactivated_staff_member(clinic):
    """Create a staff member whose account was deactivated."""
    return UserFactory(clinic=clinic, is_active=False)
