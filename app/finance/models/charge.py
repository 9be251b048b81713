"""
Charge model: a performed, billable service (debit).

A Charge is created when a doctor completes a treatment plan item or
records a service performed during a visit. Its total is fixed at
creation and the row is never updated or deleted.

Usage:
    from finance.models import Charge

    total = Charge.compute_total(quantity=2, unit_price=Decimal("150000"),
                                 discount_percent=Decimal("10"))
    # Decimal("270000.00")
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin
from finance.types import to_money


class Charge(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    A performed work billed to a patient.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        clinic: Owning clinic
        patient: Patient being charged
        appointment: Visit during which the work was performed
        plan_item: Treatment plan item this charge completes (at most one charge each)
        service_name: Service performed
        tooth_number: FDI tooth number, if tooth-specific
        quantity: Number of units (>= 1)
        unit_price: Price per unit (>= 0)
        discount_percent: Line discount (0-100)
        total: quantity * unit_price * (1 - discount/100), fixed at creation
        doctor: Doctor who performed the work
        created_by: Staff member who recorded it
        created_at: Timestamp; ledger order is (created_at, id)

    Constraints:
        - plan_item is unique, so a plan item can never be billed twice
        - quantity >= 1, unit_price >= 0, total >= 0, discount in [0, 100]
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="charges",
        help_text="Clinic that performed the work",
    )
    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.PROTECT,
        related_name="charges",
        help_text="Patient being charged",
    )
    appointment = models.ForeignKey(
        "clinics.Appointment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="charges",
        help_text="Visit during which the work was performed",
    )
    plan_item = models.OneToOneField(
        "clinics.TreatmentPlanItem",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="charge",
        help_text="Plan item completed by this charge, if any",
    )

    service_name = models.CharField(
        max_length=255,
        help_text="Name of the performed service",
    )
    tooth_number = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="FDI tooth number for tooth-specific services",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Number of units",
    )
    unit_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Price per unit",
    )
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Line discount in percent (0-100)",
    )
    total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Charged amount after discount (fixed at creation)",
    )

    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="performed_charges",
        help_text="Doctor who performed the work",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Staff member who recorded the charge",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this charge was recorded",
    )

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["patient", "created_at"], name="finance_cha_patient_c1f0a9_idx"),
            models.Index(fields=["clinic", "created_at"], name="finance_cha_clinic__77d2b4_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="charge_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(unit_price__gte=0),
                name="charge_unit_price_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(discount_percent__gte=0) & Q(discount_percent__lte=100),
                name="charge_discount_range",
            ),
            models.CheckConstraint(
                condition=Q(total__gte=0),
                name="charge_total_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Charge({self.service_name}, {self.total})"

    @staticmethod
    def compute_total(quantity: int, unit_price: Decimal, discount_percent: Decimal) -> Decimal:
        """
        Line total after discount, rounded half-up to two places.

        Example:
            >>> Charge.compute_total(1, Decimal("350000"), Decimal("0"))
            Decimal('350000.00')
        """
        gross = Decimal(quantity) * Decimal(unit_price)
        factor = (Decimal("100") - Decimal(discount_percent)) / Decimal("100")
        return to_money(gross * factor)
