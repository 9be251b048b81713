"""
Payment model: money received from (or returned to) a patient.

Payments are credits on the patient ledger. Refunds are stored as
Payment rows with a negative amount that reference the original
payment through refund_of, so the ledger stays a single append-only
stream of signed amounts.

Usage:
    from finance.models import Payment, PaymentMethod

    Payment.objects.filter(patient=patient, amount__gt=0)   # payments
    Payment.objects.filter(patient=patient, amount__lt=0)   # refunds
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin


class PaymentMethod(models.TextChoices):
    """
    How the money was received or returned.

    Local card schemes (uzcard, humo) and wallets (click, payme, uzum)
    are listed separately because cash registers reconcile them separately.
    """

    CASH = "cash", "Cash"
    CARD_TERMINAL = "card_terminal", "Card Terminal"
    UZCARD = "uzcard", "Uzcard"
    HUMO = "humo", "Humo"
    VISA = "visa", "Visa"
    MASTERCARD = "mastercard", "Mastercard"
    CLICK = "click", "Click"
    PAYME = "payme", "Payme"
    UZUM = "uzum", "Uzum"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"


class Payment(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
    """
    A signed monetary credit on a patient's ledger.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        clinic: Owning clinic
        patient: Paying patient
        amount: Signed amount; positive = payment, negative = refund
        method: Payment method
        idempotency_key: Client-supplied key; unique per clinic when present
        notes: Free-text notes (refund reason for refunds)
        appointment: Visit the payment was taken at, if any
        refund_of: Original payment, set only on refunds
        fiscal_check_url: Fiscal check URL entered by the cashier, if any
        resulting_balance: Patient balance committed by this transaction
        processed_by: Staff member who took the payment
        created_at: Timestamp; ledger order is (created_at, id)

    Constraints:
        - amount != 0
        - positive amounts have no refund_of; negative amounts have one
        - (clinic, idempotency_key) unique where the key is not null

    Note:
        resulting_balance lets an idempotent retry return the same
        new_balance as the original call without recomputing it.
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Clinic that received the payment",
    )
    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Patient the payment is credited to",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Signed amount: positive for payments, negative for refunds",
    )
    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        help_text="Payment method",
    )
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Client-supplied key preventing duplicate payments",
    )
    notes = models.TextField(
        blank=True,
        default="",
        help_text="Free-text notes or refund reason",
    )
    appointment = models.ForeignKey(
        "clinics.Appointment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Visit the payment was taken at",
    )
    refund_of = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="refunds",
        help_text="Original payment this refund returns money from",
    )
    fiscal_check_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Fiscal check URL entered at payment time",
    )
    resulting_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Patient balance committed together with this payment",
    )
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="processed_payments",
        help_text="Staff member who processed the payment",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this payment was recorded",
    )

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["patient", "created_at"], name="finance_pay_patient_9a3e51_idx"),
            models.Index(fields=["clinic", "created_at"], name="finance_pay_clinic__2b8c06_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="payment_amount_non_zero",
            ),
            models.CheckConstraint(
                condition=(
                    Q(amount__gt=0, refund_of__isnull=True)
                    | Q(amount__lt=0, refund_of__isnull=False)
                ),
                name="payment_refund_shape",
            ),
            models.UniqueConstraint(
                fields=["clinic", "idempotency_key"],
                condition=Q(idempotency_key__isnull=False),
                name="unique_payment_idempotency_key_per_clinic",
            ),
        ]

    def __str__(self) -> str:
        kind = "Refund" if self.is_refund else "Payment"
        return f"{kind}({self.amount}, {self.method})"

    @property
    def is_refund(self) -> bool:
        """Refunds are negative payments."""
        return self.amount < 0
