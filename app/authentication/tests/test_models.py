"""
Tests for the staff User model.

Covers:
    - Email identity and string representation
    - Display name helpers
    - Clinic membership checks used by every finance operation
"""

import uuid

import pytest
from django.db import IntegrityError

from authentication.tests.factories import UserFactory
from clinics.tests.factories import ClinicFactory


# =============================================================================
# User Model Tests
# =============================================================================


class TestUserModel:
    """Tests for the User model fields and helpers."""

    def test_str_returns_email(self, staff_member):
        """Should use the email as string representation."""
        assert str(staff_member) == staff_member.email

    def test_email_must_be_unique(self, clinic):
        """Should reject a second user with the same email."""
        UserFactory(email="dup@clinic.example.com", clinic=clinic)

        with pytest.raises(IntegrityError):
            UserFactory(email="dup@clinic.example.com", clinic=clinic)

    def test_primary_key_is_uuid(self, staff_member):
        """Should use a UUID primary key."""
        assert isinstance(staff_member.pk, uuid.UUID)

    def test_get_full_name_falls_back_to_email(self, clinic):
        """Should return the email when no display name is set."""
        user = UserFactory(clinic=clinic, full_name="")

        assert user.get_full_name() == user.email

    def test_get_short_name_uses_first_word(self, clinic):
        """Should return the first word of the display name."""
        user = UserFactory(clinic=clinic, full_name="Dilnoza Karimova")

        assert user.get_short_name() == "Dilnoza"

    def test_get_short_name_without_full_name(self, clinic):
        """Should return the local part of the email when unnamed."""
        user = UserFactory(clinic=clinic, full_name="", email="cashier@clinic.uz")

        assert user.get_short_name() == "cashier"


class TestClinicMembership:
    """Tests for User.is_member_of()."""

    def test_member_of_own_clinic(self, staff_member, clinic):
        """Should be a member of the clinic the user is attached to."""
        assert staff_member.is_member_of(clinic.id) is True

    def test_accepts_string_clinic_id(self, staff_member, clinic):
        """Should compare ids regardless of UUID or string form."""
        assert staff_member.is_member_of(str(clinic.id)) is True

    def test_not_member_of_other_clinic(self, staff_member):
        """Should not be a member of another clinic."""
        other = ClinicFactory()

        assert staff_member.is_member_of(other.id) is False

    def test_inactive_user_is_not_member(self, deactivated_staff_member, clinic):
        """Should deny membership to deactivated accounts."""
        assert deactivated_staff_member.is_member_of(clinic.id) is False

    def test_user_without_clinic_is_not_member(self, superuser, clinic):
        """Should deny membership to platform users without a clinic."""
        assert superuser.clinic_id is None
        assert superuser.is_member_of(clinic.id) is False
