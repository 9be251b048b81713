"""
Fiscal receipt model tracking post-commit fiscalization of a payment.

The Payment row is immutable, so the outcome of fiscalization lives here.

State Flow:
    PENDING -> ISSUED
    PENDING -> FAILED -> PENDING (retry)

Usage:
    receipt = FiscalReceipt.objects.create(payment=payment)
    receipt.issue(receipt_number="000123", check_url="https://ofd.soliq.uz/check?...")
    receipt.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class FiscalReceiptState(models.TextChoices):
    """
    States for the FiscalReceipt lifecycle.

    Terminal state: ISSUED
    """

    PENDING = "pending", "Pending"
    ISSUED = "issued", "Issued"
    FAILED = "failed", "Failed"


class FiscalReceipt(UUIDPrimaryKeyMixin, BaseModel):
    """
    Government receipt issued for a payment after it commits.

    Fields:
        payment: The payment (or refund) being fiscalized
        state: Current FSM state
        receipt_number: Number assigned by the fiscal provider
        check_url: Public URL of the fiscal check
        error_message: Last failure reason
        attempts: Number of issuance attempts made
        issued_at: When the receipt was issued
    """

    payment = models.OneToOneField(
        "finance.Payment",
        on_delete=models.PROTECT,
        related_name="fiscal_receipt",
        help_text="Payment this receipt was issued for",
    )
    state = FSMField(
        default=FiscalReceiptState.PENDING,
        choices=FiscalReceiptState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the receipt (managed by FSM)",
    )
    receipt_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Receipt number assigned by the fiscal provider",
    )
    check_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Public URL of the fiscal check",
    )
    error_message = models.TextField(
        blank=True,
        default="",
        help_text="Reason for the last failed attempt",
    )
    attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of issuance attempts",
    )
    issued_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the receipt was issued",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["state", "created_at"], name="finance_fis_state_4d12c8_idx"),
        ]

    def __str__(self) -> str:
        return f"FiscalReceipt({self.payment_id}, {self.state})"

    @transition(
        field=state,
        source=FiscalReceiptState.PENDING,
        target=FiscalReceiptState.ISSUED,
    )
    def issue(self, receipt_number: str, check_url: str = ""):
        """
        Record a successful issuance.

        Transition: PENDING -> ISSUED
        """
        self.receipt_number = receipt_number
        self.check_url = check_url
        self.error_message = ""
        self.issued_at = timezone.now()

    @transition(
        field=state,
        source=FiscalReceiptState.PENDING,
        target=FiscalReceiptState.FAILED,
    )
    def fail(self, reason: str):
        """
        Record a failed attempt.

        Transition: PENDING -> FAILED
        """
        self.error_message = reason

    @transition(
        field=state,
        source=FiscalReceiptState.FAILED,
        target=FiscalReceiptState.PENDING,
    )
    def retry(self):
        """
        Re-queue a failed receipt.

        Transition: FAILED -> PENDING
        """

    @property
    def is_issued(self) -> bool:
        return self.state == FiscalReceiptState.ISSUED
