"""
Permission classes for the finance API.

Every finance endpoint is tenant-scoped: the clinic comes from the
authenticated staff member, never from the request body.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsClinicStaff(permissions.BasePermission):
    """Allows access only to active users attached to a clinic."""

    message = "You are not a staff member of any clinic."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and user.is_active
            and getattr(user, "clinic_id", None) is not None
        )
