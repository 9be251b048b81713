"""
Ledger store: the append-only record of a patient's monetary events.

All writes of Charge and Payment rows, and the only write of the cached
Patient.balance, go through this module. It has no update or delete
operation for financial entries.

Usage:
    from finance.services.ledger_store import LedgerStore

    with transaction.atomic():
        patient = LedgerStore.lock_patient(patient_id, clinic_id=clinic_id)
        LedgerStore.append_payment(...)
        new_balance = LedgerStore.refresh_cached_balance(patient)

Ordering:
    Entries are ordered by created_at, ties broken by entry id.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import models, transaction
from django.db.models import DecimalField, OuterRef, Subquery, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from clinics.models import Appointment, Patient, PlanItemStatus, TreatmentPlanItem
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from finance.models import Charge, Payment
from finance.types import ZERO, to_money

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User

logger = logging.getLogger(__name__)

MONEY_FIELD = DecimalField(max_digits=14, decimal_places=2)


def _sum_subquery(queryset, field: str) -> Coalesce:
    """Correlated SUM over a per-patient queryset, zero when empty."""
    totals = (
        queryset.filter(patient=OuterRef("pk"))
        .order_by()
        .values("patient")
        .annotate(total=Sum(field))
        .values("total")
    )
    return Coalesce(Subquery(totals, output_field=MONEY_FIELD), Value(ZERO), output_field=MONEY_FIELD)


def _as_uuid(value, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field_name} is not a valid identifier",
            error_code="INVALID_IDENTIFIER",
            details={field_name: str(value)},
        ) from exc


class LedgerStore:
    """
    Append-only store of charges and payments per patient.

    All methods are static - no instance state is maintained. Writers must
    call lock_patient() inside their transaction first; that row lock is
    what serializes concurrent writers for the same patient.
    """

    # ------------------------------------------------------------------
    # Lookups and tenant checks
    # ------------------------------------------------------------------

    @staticmethod
    def get_patient(patient_id, clinic_id=None) -> Patient:
        """
        Fetch a patient, optionally asserting clinic membership.

        Raises:
            ValidationError: Malformed id
            NotFoundError: No such patient
            AuthorizationError: Patient belongs to another clinic
        """
        patient_id = _as_uuid(patient_id, "patient_id")
        patient = Patient.objects.filter(id=patient_id).first()
        if patient is None:
            raise NotFoundError(
                f"Patient {patient_id} not found",
                error_code="PATIENT_NOT_FOUND",
                details={"patient_id": str(patient_id)},
            )
        LedgerStore.check_clinic(patient, clinic_id, "patient")
        return patient

    @staticmethod
    def lock_patient(patient_id, clinic_id=None) -> Patient:
        """
        Lock the patient row for the rest of the current transaction.

        Must be called inside transaction.atomic(). Serializes all ledger
        writers for this patient.
        """
        patient_id = _as_uuid(patient_id, "patient_id")
        patient = Patient.objects.select_for_update().filter(id=patient_id).first()
        if patient is None:
            raise NotFoundError(
                f"Patient {patient_id} not found",
                error_code="PATIENT_NOT_FOUND",
                details={"patient_id": str(patient_id)},
            )
        LedgerStore.check_clinic(patient, clinic_id, "patient")
        return patient

    @staticmethod
    def get_appointment(appointment_id, clinic_id=None) -> Appointment:
        appointment_id = _as_uuid(appointment_id, "appointment_id")
        appointment = Appointment.objects.filter(id=appointment_id).first()
        if appointment is None:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                error_code="APPOINTMENT_NOT_FOUND",
                details={"appointment_id": str(appointment_id)},
            )
        LedgerStore.check_clinic(appointment, clinic_id, "appointment")
        return appointment

    @staticmethod
    def get_staff_member(user_or_id, clinic_id) -> User:
        """
        Resolve a staff user and assert they work for the clinic.

        Accepts a User instance or a user id.

        Raises:
            NotFoundError: Unknown user id
            AuthorizationError: User inactive or not a member of the clinic
        """
        User = get_user_model()
        if isinstance(user_or_id, User):
            user = user_or_id
        else:
            user_id = _as_uuid(user_or_id, "user_id")
            user = User.objects.filter(id=user_id).first()
            if user is None:
                raise NotFoundError(
                    f"User {user_id} not found",
                    error_code="USER_NOT_FOUND",
                    details={"user_id": str(user_id)},
                )
        if not user.is_member_of(clinic_id):
            raise AuthorizationError(
                "Staff member does not belong to this clinic",
                error_code="STAFF_NOT_IN_CLINIC",
                details={"user_id": str(user.pk), "clinic_id": str(clinic_id)},
            )
        return user

    @staticmethod
    def check_clinic(obj, clinic_id, label: str) -> None:
        """Raise AuthorizationError when obj belongs to a different clinic."""
        if clinic_id is None:
            return
        if str(obj.clinic_id) != str(clinic_id):
            raise AuthorizationError(
                f"The {label} belongs to another clinic",
                error_code="CLINIC_MISMATCH",
                details={f"{label}_id": str(obj.pk)},
            )

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    @staticmethod
    def append_charge(
        *,
        patient: Patient,
        service_name: str,
        unit_price: Decimal,
        quantity: int = 1,
        discount_percent: Decimal = Decimal("0"),
        tooth_number: int | None = None,
        appointment: Appointment | None = None,
        plan_item: TreatmentPlanItem | None = None,
        doctor: User | None = None,
        created_by: User | None = None,
    ) -> Charge:
        """
        Append a charge (debit). The total is computed here and never changes.

        Runs in its own savepoint so a failed insert leaves no partial entry.
        """
        total = Charge.compute_total(quantity, unit_price, discount_percent)
        with transaction.atomic():
            charge = Charge.objects.create(
                clinic_id=patient.clinic_id,
                patient=patient,
                appointment=appointment,
                plan_item=plan_item,
                service_name=service_name,
                tooth_number=tooth_number,
                quantity=quantity,
                unit_price=to_money(unit_price),
                discount_percent=Decimal(discount_percent),
                total=total,
                doctor=doctor,
                created_by=created_by,
            )
        logger.info(
            "Charge appended",
            extra={
                "charge_id": str(charge.id),
                "patient_id": str(patient.id),
                "total": str(total),
                "plan_item_id": str(plan_item.id) if plan_item else None,
            },
        )
        return charge

    @staticmethod
    def append_payment(
        *,
        patient: Patient,
        amount: Decimal,
        method: str,
        processed_by: User,
        resulting_balance: Decimal,
        idempotency_key: str | None = None,
        notes: str = "",
        appointment: Appointment | None = None,
        refund_of: Payment | None = None,
        fiscal_check_url: str = "",
    ) -> Payment:
        """
        Append a payment (positive amount) or refund (negative, with refund_of).

        Raises IntegrityError when the (clinic, idempotency_key) pair already
        exists; callers handle that as an idempotent replay.
        """
        with transaction.atomic():
            payment = Payment.objects.create(
                clinic_id=patient.clinic_id,
                patient=patient,
                amount=to_money(amount),
                method=method,
                idempotency_key=idempotency_key,
                notes=notes or "",
                appointment=appointment,
                refund_of=refund_of,
                fiscal_check_url=fiscal_check_url or "",
                resulting_balance=to_money(resulting_balance),
                processed_by=processed_by,
            )
        logger.info(
            "Payment appended",
            extra={
                "payment_id": str(payment.id),
                "patient_id": str(patient.id),
                "amount": str(payment.amount),
                "method": method,
                "refund_of": str(refund_of.id) if refund_of else None,
            },
        )
        return payment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_entries(
        patient_id,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Charge | Payment]:
        """
        All charges and payments of a patient, oldest first.

        Ordered by (created_at, id). since is inclusive, until exclusive.
        """
        charges = Charge.objects.filter(patient_id=patient_id)
        payments = Payment.objects.filter(patient_id=patient_id).select_related("fiscal_receipt")
        if since is not None:
            charges = charges.filter(created_at__gte=since)
            payments = payments.filter(created_at__gte=since)
        if until is not None:
            charges = charges.filter(created_at__lt=until)
            payments = payments.filter(created_at__lt=until)

        entries: list[Charge | Payment] = [*charges, *payments]
        entries.sort(key=lambda entry: (entry.created_at, entry.id))
        return entries

    @staticmethod
    def totals_queryset() -> models.QuerySet:
        """
        Patients annotated with ledger totals, computed in one statement.

        Annotations:
            charge_total: Sum of charge totals
            paid_total: Sum of signed payment amounts (refunds are negative)
            planned_cost: Sum of plan items still planned
        """
        return Patient.objects.annotate(
            charge_total=_sum_subquery(Charge.objects.all(), "total"),
            paid_total=_sum_subquery(Payment.objects.all(), "amount"),
            planned_cost=_sum_subquery(
                TreatmentPlanItem.objects.filter(status=PlanItemStatus.PLANNED),
                "total_price",
            ),
        )

    @staticmethod
    def compute_balance(patient_id) -> Decimal:
        """Recompute payments minus charges from the ledger."""
        row = (
            LedgerStore.totals_queryset()
            .filter(id=patient_id)
            .values("charge_total", "paid_total")
            .first()
        )
        if row is None:
            raise NotFoundError(
                f"Patient {patient_id} not found",
                error_code="PATIENT_NOT_FOUND",
                details={"patient_id": str(patient_id)},
            )
        return to_money(row["paid_total"]) - to_money(row["charge_total"])

    # ------------------------------------------------------------------
    # Cached balance
    # ------------------------------------------------------------------

    @staticmethod
    def refresh_cached_balance(patient: Patient) -> Decimal:
        """
        Recompute the balance and store it in Patient.balance.

        The only writer of Patient.balance. Must run inside the transaction
        that appended the entry, after lock_patient().

        Raises:
            TransactionManagementError: Called outside an atomic block
        """
        if not transaction.get_connection().in_atomic_block:
            raise transaction.TransactionManagementError(
                "refresh_cached_balance must run inside the writing transaction"
            )
        balance = LedgerStore.compute_balance(patient.id)
        Patient.objects.filter(id=patient.id).update(balance=balance, updated_at=timezone.now())
        patient.balance = balance
        return balance
