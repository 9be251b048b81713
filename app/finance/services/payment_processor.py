"""
Payment processor: validates and records payments and refunds.

Every payment or refund:
    1. Is validated before any write (amount, method, identifiers)
    2. Locks the patient row, so writers for one patient are serialized
    3. Replays the earlier result when the idempotency key was already used
    4. Appends the Payment row and refreshes the cached balance
    5. After commit, queues fiscalization and sends balance_changed

Usage:
    from finance.services import PaymentProcessor

    result = PaymentProcessor.record_payment(
        clinic_id=clinic.id,
        patient_id=patient.id,
        amount=Decimal("100000"),
        method="cash",
        processed_by=request.user,
        idempotency_key="k1",
    )
    if result.success:
        print(result.data.new_balance)
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Sum

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult, service_operation
from finance.exceptions import InvalidAmountError, RefundExceedsPaymentError
from finance.models import FiscalReceipt, Payment, PaymentMethod
from finance.services.ledger_store import LedgerStore
from finance.signals import send_balance_changed_on_commit
from finance.types import MAX_AMOUNT, ZERO, PaymentResult, to_money

if TYPE_CHECKING:
    import uuid

    from authentication.models import User

MAX_IDEMPOTENCY_KEY_LENGTH = 255


class PaymentProcessor(BaseService):
    """
    Records payments and refunds against a patient's ledger.

    Idempotency:
        A key is unique per clinic. Retrying with the same key returns the
        original payment_id and new_balance with replayed=True and writes
        nothing. A concurrent racer that loses the unique constraint rolls
        back to its savepoint and returns the winner's result.
    """

    @classmethod
    @service_operation
    def record_payment(
        cls,
        clinic_id: uuid.UUID,
        patient_id: uuid.UUID,
        amount: Decimal,
        method: str,
        processed_by: User | uuid.UUID,
        notes: str | None = None,
        idempotency_key: str | None = None,
        appointment_id: uuid.UUID | None = None,
        fiscal_check_url: str | None = None,
    ) -> ServiceResult[PaymentResult]:
        """
        Record a payment received from a patient.

        Args:
            clinic_id: Clinic of the staff member taking the payment
            patient_id: Paying patient
            amount: Positive amount
            method: One of PaymentMethod values
            processed_by: Staff user (or id) taking the payment
            notes: Optional notes
            idempotency_key: Optional client key for safe retries
            appointment_id: Optional visit the payment belongs to
            fiscal_check_url: Optional fiscal check URL entered by the cashier

        Returns:
            ServiceResult with PaymentResult on success
        """
        missing = cls.validate_required(
            clinic_id=clinic_id, patient_id=patient_id, processed_by=processed_by
        )
        if missing is not None:
            return missing
        amount = cls._validate_amount(amount)
        cls._validate_method(method)
        key = cls._normalize_key(idempotency_key)
        staff = LedgerStore.get_staff_member(processed_by, clinic_id)

        with cls.atomic():
            patient = LedgerStore.lock_patient(patient_id, clinic_id=clinic_id)

            if key:
                existing = cls._find_by_idempotency_key(clinic_id, key)
                if existing is not None:
                    return ServiceResult.success(
                        cls._replay(existing, patient.id, amount, method, refund_of_id=None)
                    )

            appointment = None
            if appointment_id:
                appointment = LedgerStore.get_appointment(appointment_id, clinic_id=clinic_id)
                if appointment.patient_id != patient.id:
                    raise ValidationError(
                        "Appointment belongs to another patient",
                        error_code="APPOINTMENT_PATIENT_MISMATCH",
                        details={"appointment_id": str(appointment.id)},
                    )

            resulting_balance = LedgerStore.compute_balance(patient.id) + amount
            try:
                payment = LedgerStore.append_payment(
                    patient=patient,
                    amount=amount,
                    method=method,
                    processed_by=staff,
                    resulting_balance=resulting_balance,
                    idempotency_key=key,
                    notes=notes or "",
                    appointment=appointment,
                    fiscal_check_url=fiscal_check_url or "",
                )
            except IntegrityError:
                winner = cls._find_by_idempotency_key(clinic_id, key) if key else None
                if winner is None:
                    raise
                return ServiceResult.success(
                    cls._replay(winner, patient.id, amount, method, refund_of_id=None)
                )

            new_balance = cls._after_append(payment, patient, resulting_balance, reason="payment")

        cls.get_logger().info(
            "Payment recorded",
            extra={
                "payment_id": str(payment.id),
                "patient_id": str(patient.id),
                "amount": str(amount),
                "method": method,
                "new_balance": str(new_balance),
            },
        )
        return ServiceResult.success(
            PaymentResult(payment_id=payment.id, amount=payment.amount, new_balance=new_balance)
        )

    @classmethod
    @service_operation
    def record_refund(
        cls,
        clinic_id: uuid.UUID,
        patient_id: uuid.UUID,
        payment_id: uuid.UUID,
        amount: Decimal,
        method: str,
        processed_by: User | uuid.UUID,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[PaymentResult]:
        """
        Return money from an earlier payment.

        Appends a negative Payment referencing the original. Cumulative
        refunds of one payment may not exceed its amount.

        Args:
            amount: Positive amount to return (stored negated)
            reason: Optional refund reason, stored as the refund's notes

        Returns:
            ServiceResult with PaymentResult (negative amount) on success
        """
        missing = cls.validate_required(
            clinic_id=clinic_id,
            patient_id=patient_id,
            payment_id=payment_id,
            processed_by=processed_by,
        )
        if missing is not None:
            return missing
        amount = cls._validate_amount(amount)
        cls._validate_method(method)
        key = cls._normalize_key(idempotency_key)
        staff = LedgerStore.get_staff_member(processed_by, clinic_id)

        with cls.atomic():
            patient = LedgerStore.lock_patient(patient_id, clinic_id=clinic_id)

            if key:
                existing = cls._find_by_idempotency_key(clinic_id, key)
                if existing is not None:
                    return ServiceResult.success(
                        cls._replay(existing, patient.id, -amount, method, refund_of_id=payment_id)
                    )

            original = cls._lock_refundable_payment(payment_id, clinic_id, patient.id)
            refunded = -(
                Payment.objects.filter(refund_of=original).aggregate(total=Sum("amount"))["total"]
                or ZERO
            )
            available = original.amount - to_money(refunded)
            if amount > available:
                raise RefundExceedsPaymentError(
                    payment_id=original.id, requested=amount, available=available
                )

            resulting_balance = LedgerStore.compute_balance(patient.id) - amount
            try:
                refund = LedgerStore.append_payment(
                    patient=patient,
                    amount=-amount,
                    method=method,
                    processed_by=staff,
                    resulting_balance=resulting_balance,
                    idempotency_key=key,
                    notes=reason or "",
                    appointment=original.appointment,
                    refund_of=original,
                )
            except IntegrityError:
                winner = cls._find_by_idempotency_key(clinic_id, key) if key else None
                if winner is None:
                    raise
                return ServiceResult.success(
                    cls._replay(winner, patient.id, -amount, method, refund_of_id=payment_id)
                )

            new_balance = cls._after_append(refund, patient, resulting_balance, reason="refund")

        cls.get_logger().info(
            "Refund recorded",
            extra={
                "refund_id": str(refund.id),
                "payment_id": str(original.id),
                "patient_id": str(patient.id),
                "amount": str(amount),
                "new_balance": str(new_balance),
            },
        )
        return ServiceResult.success(
            PaymentResult(
                payment_id=refund.id,
                amount=refund.amount,
                new_balance=new_balance,
                refund_of_id=original.id,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def _find_by_idempotency_key(cls, clinic_id, key: str) -> Payment | None:
        return Payment.objects.filter(clinic_id=clinic_id, idempotency_key=key).first()

    @classmethod
    def _replay(
        cls, existing: Payment, patient_id, amount: Decimal, method: str, refund_of_id
    ) -> PaymentResult:
        """
        Build the result of an earlier payment for an idempotent retry.

        A key reused for a different patient, amount, method or kind of
        operation is a client error rather than a retry. amount is signed
        the way it is stored (negative for refunds).
        """
        same_operation = (
            str(existing.patient_id) == str(patient_id)
            and existing.amount == amount
            and existing.method == method
            and (
                str(existing.refund_of_id) == str(refund_of_id)
                if refund_of_id is not None
                else existing.refund_of_id is None
            )
        )
        if not same_operation:
            raise ConflictError(
                "Idempotency key was already used for a different operation",
                error_code="IDEMPOTENCY_KEY_REUSED",
                details={"idempotency_key": existing.idempotency_key},
            )
        cls.get_logger().info(
            "Replaying payment for idempotency key",
            extra={"payment_id": str(existing.id), "idempotency_key": existing.idempotency_key},
        )
        return PaymentResult(
            payment_id=existing.id,
            amount=existing.amount,
            new_balance=existing.resulting_balance,
            replayed=True,
            refund_of_id=existing.refund_of_id,
        )

    @classmethod
    def _after_append(cls, payment: Payment, patient, resulting_balance: Decimal, reason: str) -> Decimal:
        """Refresh the cache, create the receipt row and schedule post-commit work."""
        from finance.tasks import fiscalize_payment

        new_balance = LedgerStore.refresh_cached_balance(patient)
        if new_balance != resulting_balance:
            cls.get_logger().error(
                "Recomputed balance differs from the balance stored with the payment",
                extra={
                    "payment_id": str(payment.id),
                    "stored": str(resulting_balance),
                    "recomputed": str(new_balance),
                },
            )
        FiscalReceipt.objects.create(payment=payment)

        payment_id = str(payment.id)
        transaction.on_commit(lambda: fiscalize_payment.delay(payment_id))
        send_balance_changed_on_commit(
            sender=cls,
            clinic_id=patient.clinic_id,
            patient_id=patient.id,
            new_balance=new_balance,
            reason=reason,
        )
        return new_balance

    @classmethod
    def _lock_refundable_payment(cls, payment_id, clinic_id, patient_id) -> Payment:
        original = Payment.objects.select_for_update().filter(id=payment_id).first()
        if original is None:
            raise NotFoundError(
                f"Payment {payment_id} not found",
                error_code="PAYMENT_NOT_FOUND",
                details={"payment_id": str(payment_id)},
            )
        LedgerStore.check_clinic(original, clinic_id, "payment")
        if original.patient_id != patient_id:
            raise ValidationError(
                "Payment belongs to another patient",
                error_code="PAYMENT_PATIENT_MISMATCH",
                details={"payment_id": str(original.id)},
            )
        if original.is_refund:
            raise ValidationError(
                "A refund cannot be refunded",
                error_code="NOT_REFUNDABLE",
                details={"payment_id": str(original.id)},
            )
        return original

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        try:
            value = to_money(amount)
        except ValueError as exc:
            raise InvalidAmountError(
                "Amount is not a valid number",
                details={"amount": str(amount)},
            ) from exc
        if value <= 0:
            raise InvalidAmountError(
                "Amount must be positive",
                details={"amount": str(amount)},
            )
        if value > MAX_AMOUNT:
            raise InvalidAmountError(
                "Amount is too large",
                details={"amount": str(amount), "max_amount": str(MAX_AMOUNT)},
            )
        return value

    @staticmethod
    def _validate_method(method: str) -> None:
        if method not in PaymentMethod.values:
            raise ValidationError(
                f"Unknown payment method: {method}",
                error_code="INVALID_PAYMENT_METHOD",
                details={"method": method, "allowed": list(PaymentMethod.values)},
            )

    @staticmethod
    def _normalize_key(idempotency_key: str | None) -> str | None:
        if idempotency_key is None:
            return None
        key = str(idempotency_key).strip()
        if not key:
            return None
        if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValidationError(
                "Idempotency key is too long",
                error_code="INVALID_IDEMPOTENCY_KEY",
                details={"max_length": MAX_IDEMPOTENCY_KEY_LENGTH},
            )
        return key
