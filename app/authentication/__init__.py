"""
Authentication application.

Staff accounts for the clinic back office. A staff user logs in with email
and belongs to at most one clinic; that clinic scopes every financial
operation the user performs.

Usage:
    from authentication.models import User
"""
