"""
Balance drift records.

A drift record is written when the cached Patient.balance differs from the
balance recomputed from the ledger. Drift means a bug somewhere wrote the
cache outside the ledger transaction; the record is evidence for
investigation and nothing is repaired automatically.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin


class DriftSource(models.TextChoices):
    """Where the drift was detected."""

    ON_DEMAND = "on_demand", "On Demand"
    PERIODIC = "periodic", "Periodic Check"


class BalanceDriftRecord(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    A detected mismatch between cached and recomputed patient balance.

    Fields:
        clinic: Patient's clinic
        patient: Patient whose balance drifted
        cached_balance: Patient.balance at detection time
        ledger_balance: Balance recomputed from charges and payments
        difference: cached_balance - ledger_balance
        source: on_demand or periodic
        detected_at: Detection timestamp
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="balance_drift_records",
        help_text="Clinic of the affected patient",
    )
    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.PROTECT,
        related_name="balance_drift_records",
        help_text="Patient whose cached balance drifted",
    )
    cached_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Cached Patient.balance when the drift was detected",
    )
    ledger_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Balance recomputed from the ledger",
    )
    difference = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="cached_balance minus ledger_balance",
    )
    source = models.CharField(
        max_length=20,
        choices=DriftSource.choices,
        default=DriftSource.ON_DEMAND,
        help_text="How the drift was detected",
    )
    detected_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the drift was detected",
    )

    class Meta:
        ordering = ["-detected_at"]

    def __str__(self) -> str:
        return f"BalanceDrift({self.patient_id}, {self.difference})"
