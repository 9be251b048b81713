"""
Root pytest configuration for the Django project.

This module points pytest-django at the test settings. Project-wide
fixtures live in app/conftest.py and app-specific fixtures in each app's
tests/conftest.py.
"""

import os

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings_test")
