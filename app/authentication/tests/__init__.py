"""
Tests for the authentication app.

This package contains test modules for:
- test_models.py: User model and clinic membership
- test_managers.py: UserManager create_user / create_superuser

Usage:
    pytest authentication/tests/
"""
