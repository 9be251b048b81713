"""
Allocation model: part of a payment applied to a specific charge.

Allocations track partial settlement of individual works. They do not
affect the patient balance, which is always payments minus charges.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin


class Allocation(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    Links an amount of a payment to a charge.

    Invariants (enforced by AllocationEngine under row locks):
        - sum of allocations per charge <= charge.total
        - sum of allocations per payment <= payment.amount
        - only positive (non-refund) payments are allocated
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="allocations",
        help_text="Clinic owning the payment and charge",
    )
    payment = models.ForeignKey(
        "finance.Payment",
        on_delete=models.PROTECT,
        related_name="allocations",
        help_text="Payment the money comes from",
    )
    charge = models.ForeignKey(
        "finance.Charge",
        on_delete=models.PROTECT,
        related_name="allocations",
        help_text="Charge the money settles",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Allocated amount (positive)",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Staff member who made the allocation",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this allocation was recorded",
    )

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="allocation_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Allocation({self.amount}: {self.payment_id} -> {self.charge_id})"
