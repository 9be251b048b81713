"""
Factory Boy factories for authentication models.

Usage:
    from authentication.tests.factories import UserFactory

    # Staff member of a new clinic
    cashier = UserFactory()

    # Staff member of a given clinic
    doctor = UserFactory(clinic=clinic, full_name="Dr. Karimova")

    # Platform admin without a clinic
    admin = UserFactory(clinic=None, is_staff=True)
"""

import factory

from authentication.models import User


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for User model.

    Creates active clinic staff members. By default each user gets a
    new clinic; pass clinic= to attach them to an existing one.
    """

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"staff{n}@clinic.example.com")
    full_name = factory.Sequence(lambda n: f"Staff Member {n}")
    clinic = factory.SubFactory("clinics.tests.factories.ClinicFactory")
    is_active = True
    is_staff = False

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to use UserManager.create_user()."""
        password = kwargs.pop("password", "TestPass123!")
        return model_class.objects.create_user(
            email=kwargs.pop("email"), password=password, **kwargs
        )
