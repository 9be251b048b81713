"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates clinic staff members, optionally without a password
- create_superuser(): Creates platform admins with elevated privileges

Related files:
    - managers.py: Implementation under test
    - models.py: User model that uses this manager
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(email="cashier@clinic.uz", password="SecurePass123!")

        assert user.pk is not None
        assert user.email == "cashier@clinic.uz"
        assert user.check_password("SecurePass123!") is True

    def test_attaches_user_to_clinic(self, clinic):
        """
        Given a clinic
        When create_user is called with clinic=
        Then the user is a member of that clinic
        """
        user = User.objects.create_user(email="doctor@clinic.uz", password="x", clinic=clinic)

        assert user.clinic_id == clinic.id
        assert user.is_member_of(clinic.id)

    def test_normalizes_email_domain_to_lowercase(self, db):
        """
        Given an email with uppercase characters in domain
        When create_user is called
        Then the domain portion is normalized to lowercase
        """
        user = User.objects.create_user(email="Cashier@CLINIC.UZ", password="TestPass123!")

        assert user.email == "Cashier@clinic.uz"

    def test_raises_valueerror_when_email_is_empty(self, db):
        """
        Given an empty email
        When create_user is called
        Then a ValueError is raised with descriptive message
        """
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="TestPass123!")

        assert "Email field must be set" in str(exc_info.value)

    def test_creates_user_without_password(self, db):
        """
        Given no password
        When create_user is called
        Then the user has an unusable password
        """
        user = User.objects.create_user(email="nopass@clinic.uz")

        assert user.has_usable_password() is False

    def test_sets_default_flags_for_regular_user(self, db):
        """Regular users are active but neither staff nor superuser."""
        user = User.objects.create_user(email="flags@clinic.uz", password="x")

        assert user.is_active is True
        assert user.is_staff is False
        assert user.is_superuser is False


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_correct_flags(self, db):
        """Superusers get is_staff and is_superuser set."""
        admin = User.objects.create_superuser(email="root@example.com", password="x")

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.clinic_id is None

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        """
        Given is_staff=False
        When create_superuser is called
        Then a ValueError is raised
        """
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(email="bad@example.com", password="x", is_staff=False)

    def test_raises_valueerror_when_is_superuser_is_false(self, db):
        """
        Given is_superuser=False
        When create_superuser is called
        Then a ValueError is raised
        """
        with pytest.raises(ValueError, match="is_superuser=True"):
            User.objects.create_superuser(
                email="bad2@example.com", password="x", is_superuser=False
            )
