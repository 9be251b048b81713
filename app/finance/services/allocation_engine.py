"""
Allocation engine: links payment amounts to specific charges.

Allocations only track which works are settled; the patient balance is
always payments minus charges and is not touched here.

Invariants (checked under row locks, whole request or nothing):
    - sum of allocations per charge <= charge.total
    - sum of allocations per payment <= payment.amount
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService, ServiceResult, service_operation
from finance.exceptions import InvalidAmountError, OverAllocationError
from finance.models import Allocation, Charge, Payment
from finance.services.ledger_store import LedgerStore, _as_uuid
from finance.types import (
    MAX_AMOUNT,
    ZERO,
    AllocationLine,
    AllocationRequest,
    AllocationResult,
    UnpaidWork,
    WorkPaymentStatus,
    to_money,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from authentication.models import User

WORK_PAID = "paid"
WORK_PARTIAL = "partial"
WORK_UNPAID = "unpaid"


def _charges_with_paid(patient_id):
    return (
        Charge.objects.filter(patient_id=patient_id)
        .select_related("appointment")
        .annotate(
            paid=Coalesce(
                Sum("allocations__amount"),
                Value(ZERO),
                output_field=DecimalField(max_digits=14, decimal_places=2),
            )
        )
        .order_by("created_at", "id")
    )


class AllocationEngine(BaseService):
    """Partial settlement of individual charges."""

    @classmethod
    @service_operation
    def allocate_payment_to_works(
        cls,
        clinic_id: uuid.UUID,
        payment_id: uuid.UUID,
        allocations: Iterable[AllocationRequest | dict],
        created_by: User | uuid.UUID | None = None,
    ) -> ServiceResult[AllocationResult]:
        """
        Apply parts of a payment to charges.

        The payment row and then the charge rows (ordered by id) are locked
        before existing sums are read. Any charge or the payment going over
        its limit rejects the whole request.

        Args:
            clinic_id: Caller's clinic
            payment_id: Positive payment being allocated
            allocations: [{charge_id, amount}, ...]
            created_by: Optional staff member making the allocation

        Returns:
            ServiceResult with AllocationResult; OVER_ALLOCATION (conflict)
            names the entity whose limit would be exceeded.
        """
        missing = cls.validate_required(clinic_id=clinic_id, payment_id=payment_id)
        if missing is not None:
            return missing
        requests = cls._validate_requests(allocations)
        staff = LedgerStore.get_staff_member(created_by, clinic_id) if created_by else None
        payment_id = _as_uuid(payment_id, "payment_id")

        with cls.atomic():
            payment = Payment.objects.select_for_update().filter(id=payment_id).first()
            if payment is None:
                raise NotFoundError(
                    f"Payment {payment_id} not found",
                    error_code="PAYMENT_NOT_FOUND",
                    details={"payment_id": str(payment_id)},
                )
            LedgerStore.check_clinic(payment, clinic_id, "payment")
            if payment.is_refund:
                raise ValidationError(
                    "Refunds cannot be allocated to works",
                    error_code="NOT_ALLOCATABLE",
                    details={"payment_id": str(payment.id)},
                )

            charge_ids = sorted(request.charge_id for request in requests)
            charges = {
                charge.id: charge
                for charge in Charge.objects.select_for_update().filter(id__in=charge_ids).order_by("id")
            }
            cls._check_charges(charges, charge_ids, payment, clinic_id)

            allocated_per_charge = {
                row["charge_id"]: row["total"]
                for row in Allocation.objects.filter(charge_id__in=charge_ids)
                .values("charge_id")
                .annotate(total=Sum("amount"))
                .order_by()
            }
            for request in requests:
                charge = charges[request.charge_id]
                available = charge.total - to_money(allocated_per_charge.get(charge.id) or ZERO)
                if request.amount > available:
                    raise OverAllocationError(
                        entity_type="charge",
                        entity_id=charge.id,
                        requested=request.amount,
                        available=available,
                    )

            payment_allocated = to_money(
                payment.allocations.aggregate(total=Sum("amount"))["total"] or ZERO
            )
            payment_available = payment.amount - payment_allocated
            requested_total = sum((request.amount for request in requests), ZERO)
            if requested_total > payment_available:
                raise OverAllocationError(
                    entity_type="payment",
                    entity_id=payment.id,
                    requested=requested_total,
                    available=payment_available,
                )

            lines = []
            for request in requests:
                charge = charges[request.charge_id]
                allocation = Allocation.objects.create(
                    clinic_id=payment.clinic_id,
                    payment=payment,
                    charge=charge,
                    amount=request.amount,
                    created_by=staff,
                )
                already = to_money(allocated_per_charge.get(charge.id) or ZERO)
                lines.append(
                    AllocationLine(
                        allocation_id=allocation.id,
                        charge_id=charge.id,
                        amount=request.amount,
                        charge_remaining=charge.total - already - request.amount,
                    )
                )

        result = AllocationResult(
            payment_id=payment.id,
            allocated_total=requested_total,
            payment_unallocated=payment_available - requested_total,
            allocations=lines,
        )
        cls.get_logger().info(
            "Payment allocated to works",
            extra={
                "payment_id": str(payment.id),
                "charge_count": len(lines),
                "allocated_total": str(requested_total),
            },
        )
        return ServiceResult.success(result)

    @classmethod
    @service_operation
    def get_unpaid_works(
        cls, patient_id: uuid.UUID, clinic_id: uuid.UUID | None = None
    ) -> ServiceResult[list[UnpaidWork]]:
        """Charges with an unallocated remainder, oldest first."""
        patient = LedgerStore.get_patient(patient_id, clinic_id=clinic_id)
        works = []
        for charge in _charges_with_paid(patient.id):
            remaining = charge.total - to_money(charge.paid)
            if remaining <= 0:
                continue
            works.append(
                UnpaidWork(
                    id=charge.id,
                    service_name=charge.service_name,
                    tooth_number=charge.tooth_number,
                    total_cost=charge.total,
                    remaining=remaining,
                    visit_date=charge.appointment.start_time if charge.appointment else charge.created_at,
                )
            )
        return ServiceResult.success(works)

    @classmethod
    @service_operation
    def get_work_payment_status(
        cls, patient_id: uuid.UUID, clinic_id: uuid.UUID | None = None
    ) -> ServiceResult[list[WorkPaymentStatus]]:
        """Settlement state (paid, partial, unpaid) of every charge of a patient."""
        patient = LedgerStore.get_patient(patient_id, clinic_id=clinic_id)
        statuses = []
        for charge in _charges_with_paid(patient.id):
            paid = to_money(charge.paid)
            remaining = charge.total - paid
            if remaining <= 0:
                status = WORK_PAID
            elif paid > 0:
                status = WORK_PARTIAL
            else:
                status = WORK_UNPAID
            statuses.append(
                WorkPaymentStatus(
                    charge_id=charge.id,
                    service_name=charge.service_name,
                    total_cost=charge.total,
                    paid_amount=paid,
                    remaining=max(remaining, ZERO),
                    status=status,
                )
            )
        return ServiceResult.success(statuses)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_requests(allocations) -> list[AllocationRequest]:
        requests = []
        for raw in allocations or []:
            if isinstance(raw, dict):
                charge_id, amount = raw.get("charge_id"), raw.get("amount")
            else:
                charge_id, amount = raw.charge_id, raw.amount
            try:
                value = to_money(amount)
            except ValueError as exc:
                raise InvalidAmountError(
                    "Allocation amount is not a valid number",
                    details={"charge_id": str(charge_id), "amount": str(amount)},
                ) from exc
            if value <= 0:
                raise InvalidAmountError(
                    "Allocation amount must be positive",
                    details={"charge_id": str(charge_id), "amount": str(amount)},
                )
            if value > MAX_AMOUNT:
                raise InvalidAmountError(
                    "Allocation amount is too large",
                    details={"charge_id": str(charge_id), "amount": str(amount)},
                )
            requests.append(AllocationRequest(charge_id=_as_uuid(charge_id, "charge_id"), amount=value))

        if not requests:
            raise ValidationError(
                "At least one allocation is required",
                error_code="EMPTY_ALLOCATIONS",
            )
        charge_ids = [r.charge_id for r in requests]
        duplicates = sorted({str(i) for i in charge_ids if charge_ids.count(i) > 1})
        if duplicates:
            raise ValidationError(
                "A charge is listed more than once",
                error_code="DUPLICATE_CHARGES",
                details={"charge_ids": duplicates},
            )
        return requests

    @staticmethod
    def _check_charges(charges: dict, charge_ids: list, payment: Payment, clinic_id) -> None:
        unknown = sorted(str(i) for i in charge_ids if i not in charges)
        if unknown:
            raise ValidationError(
                "Unknown charges",
                error_code="UNKNOWN_CHARGES",
                details={"charge_ids": unknown},
            )
        for charge in charges.values():
            LedgerStore.check_clinic(charge, clinic_id, "charge")
        other_patient = sorted(str(c.id) for c in charges.values() if c.patient_id != payment.patient_id)
        if other_patient:
            raise ValidationError(
                "Charges belong to another patient than the payment",
                error_code="PATIENT_MISMATCH",
                details={"charge_ids": other_patient},
            )
