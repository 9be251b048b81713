"""
Django admin configuration for authentication models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model.

    Customized for email-based authentication with a clinic binding.
    """

    list_display = (
        "email",
        "full_name",
        "clinic",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = (
        "is_active",
        "is_staff",
        "is_superuser",
        "clinic",
        "date_joined",
    )
    search_fields = ("email", "full_name")
    ordering = ("-date_joined",)
    raw_id_fields = ("clinic",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Clinic", {"fields": ("full_name", "clinic")}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "last_login")},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "full_name", "clinic", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login")
