"""
Clinic, patient and treatment models.

This module defines the tenancy and clinical records that the finance
engine charges against:
- Clinic: Tenant; every other row belongs to exactly one clinic
- Patient: Person being treated; carries the cached balance shown in the UI
- Appointment: A visit with a doctor
- TreatmentPlanItem: A planned billable service, completed at most once

Related files:
    - finance/services/treatment_completion.py: Converts plan items to charges
    - finance/services/ledger_store.py: Sole writer of Patient.balance
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class AppointmentStatus(models.TextChoices):
    """Lifecycle of a visit."""

    SCHEDULED = "scheduled", "Scheduled"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    NO_SHOW = "no_show", "No Show"


class PlanItemStatus(models.TextChoices):
    """
    Status of a treatment plan item.

    Values:
        PLANNED: Not yet performed, not billed
        COMPLETED: Performed; exactly one Charge exists for it
    """

    PLANNED = "planned", "Planned"
    COMPLETED = "completed", "Completed"


class Clinic(UUIDPrimaryKeyMixin, BaseModel):
    """
    A clinic (tenant).

    Fields:
        name: Display name
        subdomain: Unique tenant slug
        is_active: Inactive clinics keep their history but accept no new work
    """

    name = models.CharField(
        max_length=255,
        help_text="Clinic display name",
    )
    subdomain = models.SlugField(
        max_length=63,
        unique=True,
        help_text="Unique tenant identifier used in URLs",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this clinic is active",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Patient(UUIDPrimaryKeyMixin, BaseModel):
    """
    A patient of one clinic.

    Fields:
        clinic: Owning clinic
        full_name: Patient's name
        phone: Contact phone number
        balance: Cached current balance (payments minus charges)

    Note:
        balance is a cache of the ledger, written only by
        LedgerStore.refresh_cached_balance inside the transaction that
        appended a financial entry. Never assign it anywhere else.
    """

    clinic = models.ForeignKey(
        Clinic,
        on_delete=models.PROTECT,
        related_name="patients",
        help_text="Clinic this patient belongs to",
    )
    full_name = models.CharField(
        max_length=255,
        help_text="Patient's full name",
    )
    phone = models.CharField(
        max_length=32,
        blank=True,
        help_text="Contact phone number",
    )
    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Cached ledger balance: positive is advance, negative is debt",
    )

    class Meta:
        ordering = ["full_name"]
        indexes = [
            models.Index(fields=["clinic", "full_name"], name="clinics_pat_clinic__5b0d3e_idx"),
        ]

    def __str__(self) -> str:
        return self.full_name


class Appointment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A patient visit with a doctor.

    Charges recorded during a visit reference the appointment so the
    ledger can show which visit produced each debit.
    """

    clinic = models.ForeignKey(
        Clinic,
        on_delete=models.PROTECT,
        related_name="appointments",
        help_text="Clinic where the visit takes place",
    )
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name="appointments",
        help_text="Patient being seen",
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="appointments",
        help_text="Doctor conducting the visit",
    )
    start_time = models.DateTimeField(
        db_index=True,
        help_text="Scheduled start of the visit",
    )
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.SCHEDULED,
        help_text="Current visit status",
    )

    class Meta:
        ordering = ["-start_time"]
        indexes = [
            models.Index(fields=["clinic", "start_time"], name="clinics_app_clinic__3c9f70_idx"),
            models.Index(fields=["patient", "start_time"], name="clinics_app_patient_a41e2d_idx"),
        ]

    def __str__(self) -> str:
        return f"Appointment({self.patient_id} @ {self.start_time:%Y-%m-%d %H:%M})"


class TreatmentPlanItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    A planned billable service for a patient.

    Moves from PLANNED to COMPLETED exactly once. The move is a
    conditional update (WHERE status='planned') performed by the
    treatment completion service, which also creates the Charge.

    Fields:
        service_name: Service performed (copied to the charge)
        tooth_number: FDI tooth number, if the service is tooth-specific
        quantity: Number of units
        unit_price: Price per unit
        discount_percent: Discount applied to the line (0-100)
        total_price: Planned line total
        status: planned or completed
        completed_at: When the item was completed
        completed_by: Doctor who completed the item
    """

    clinic = models.ForeignKey(
        Clinic,
        on_delete=models.PROTECT,
        related_name="plan_items",
        help_text="Clinic owning this plan item",
    )
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name="plan_items",
        help_text="Patient this treatment is planned for",
    )
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="plan_items",
        help_text="Visit this item is scheduled for, if any",
    )
    service_name = models.CharField(
        max_length=255,
        help_text="Name of the planned service",
    )
    tooth_number = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="FDI tooth number for tooth-specific services",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text="Number of units",
    )
    unit_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Price per unit",
    )
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        help_text="Line discount in percent (0-100)",
    )
    total_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Planned line total after discount",
    )
    status = models.CharField(
        max_length=20,
        choices=PlanItemStatus.choices,
        default=PlanItemStatus.PLANNED,
        db_index=True,
        help_text="planned or completed",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the item was completed",
    )
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="completed_plan_items",
        help_text="Doctor who completed the item",
    )

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["patient", "status"], name="clinics_tre_patient_8e41a2_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="plan_item_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(discount_percent__gte=0) & Q(discount_percent__lte=100),
                name="plan_item_discount_range",
            ),
            models.CheckConstraint(
                condition=Q(status=PlanItemStatus.PLANNED) | Q(completed_at__isnull=False),
                name="plan_item_completed_has_timestamp",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.service_name} ({self.get_status_display()})"

    @property
    def is_completed(self) -> bool:
        return self.status == PlanItemStatus.COMPLETED
