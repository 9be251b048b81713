"""
Django app configuration for clinics.
"""

from django.apps import AppConfig


class ClinicsConfig(AppConfig):
    """Configuration for the clinics application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "clinics"
    verbose_name = "Clinics"
