"""
Treatment completion: converts planned work into charges.

Completion is all-or-nothing per batch. Each plan item moves from planned
to completed through a conditional update (WHERE status='planned'); if any
item of the batch is already completed, or another request completes it
first, the whole batch is rejected and nothing is written.

Usage:
    from finance.services import TreatmentCompletionService

    result = TreatmentCompletionService.complete_treatment_services(
        appointment_id=appointment.id,
        item_ids=[item_a.id, item_b.id],
        doctor_id=doctor.id,
        clinic_id=request.user.clinic_id,
    )
    if not result.success and result.error_code == "ITEMS_ALREADY_COMPLETED":
        print(result.details["item_ids"])
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from clinics.models import PlanItemStatus, TreatmentPlanItem
from core.exceptions import AuthorizationError, ValidationError
from core.services import BaseService, ServiceResult, service_operation
from finance.exceptions import InvalidAmountError, ItemsAlreadyCompletedError
from finance.services.ledger_store import LedgerStore, _as_uuid
from finance.signals import send_balance_changed_on_commit
from finance.types import MAX_AMOUNT, ZERO, CompletionResult, PerformedService, to_money

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from clinics.models import Appointment, Patient
    from finance.models import Charge


class TreatmentCompletionService(BaseService):
    """
    Creates charges for completed treatment items and performed services.

    Both operations lock the patient row, append one Charge per line and
    refresh the cached balance inside a single transaction.
    """

    @classmethod
    @service_operation
    def complete_treatment_services(
        cls,
        appointment_id: uuid.UUID,
        item_ids: Iterable[uuid.UUID],
        doctor_id: uuid.UUID,
        clinic_id: uuid.UUID | None = None,
    ) -> ServiceResult[CompletionResult]:
        """
        Complete treatment plan items and bill them.

        Args:
            appointment_id: Visit during which the work was done
            item_ids: Plan items to complete (non-empty, no duplicates)
            doctor_id: Doctor who performed the work
            clinic_id: Caller's clinic; defaults to the appointment's clinic

        Returns:
            ServiceResult with CompletionResult on success. Fails with
            ITEMS_ALREADY_COMPLETED (conflict) listing offending item ids.
        """
        missing = cls.validate_required(appointment_id=appointment_id, doctor_id=doctor_id)
        if missing is not None:
            return missing
        ids = cls._validate_item_ids(item_ids)

        with cls.atomic():
            appointment = LedgerStore.get_appointment(appointment_id, clinic_id=clinic_id)
            doctor = LedgerStore.get_staff_member(doctor_id, appointment.clinic_id)
            patient = LedgerStore.lock_patient(appointment.patient_id)

            items = list(TreatmentPlanItem.objects.filter(id__in=ids).order_by("id"))
            cls._check_items(items, ids, appointment)

            already_completed = [item.id for item in items if item.is_completed]
            if already_completed:
                raise ItemsAlreadyCompletedError(already_completed)

            now = timezone.now()
            lost = []
            for item in items:
                updated = TreatmentPlanItem.objects.filter(
                    id=item.id, status=PlanItemStatus.PLANNED
                ).update(
                    status=PlanItemStatus.COMPLETED,
                    completed_at=now,
                    completed_by=doctor,
                    updated_at=now,
                )
                if updated != 1:
                    lost.append(item.id)
            if lost:
                raise ItemsAlreadyCompletedError(lost)

            charges = [
                LedgerStore.append_charge(
                    patient=patient,
                    service_name=item.service_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    discount_percent=item.discount_percent,
                    tooth_number=item.tooth_number,
                    appointment=appointment,
                    plan_item=item,
                    doctor=doctor,
                    created_by=doctor,
                )
                for item in items
            ]
            result = cls._finish(patient, charges, reason="treatment_completed")

        cls.get_logger().info(
            "Treatment items completed",
            extra={
                "appointment_id": str(appointment.id),
                "patient_id": str(patient.id),
                "completed_count": result.completed_count,
                "total_amount": str(result.total_amount),
                "new_balance": str(result.new_balance),
            },
        )
        return ServiceResult.success(result)

    @classmethod
    @service_operation
    def record_performed_services(
        cls,
        appointment_id: uuid.UUID,
        services: Iterable[PerformedService | dict],
        doctor_id: uuid.UUID,
        clinic_id: uuid.UUID | None = None,
    ) -> ServiceResult[CompletionResult]:
        """
        Bill services performed during a visit that were not planned.

        Each line becomes one Charge without a plan item.
        """
        missing = cls.validate_required(appointment_id=appointment_id, doctor_id=doctor_id)
        if missing is not None:
            return missing
        lines = [cls._coerce_service(service) for service in services or []]
        if not lines:
            raise ValidationError(
                "At least one service is required",
                error_code="EMPTY_SERVICES",
            )

        with cls.atomic():
            appointment = LedgerStore.get_appointment(appointment_id, clinic_id=clinic_id)
            doctor = LedgerStore.get_staff_member(doctor_id, appointment.clinic_id)
            patient = LedgerStore.lock_patient(appointment.patient_id)

            charges = [
                LedgerStore.append_charge(
                    patient=patient,
                    service_name=line.service_name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    discount_percent=line.discount_percent,
                    tooth_number=line.tooth_number,
                    appointment=appointment,
                    doctor=doctor,
                    created_by=doctor,
                )
                for line in lines
            ]
            result = cls._finish(patient, charges, reason="services_recorded")

        cls.get_logger().info(
            "Performed services recorded",
            extra={
                "appointment_id": str(appointment.id),
                "patient_id": str(patient.id),
                "count": result.completed_count,
                "total_amount": str(result.total_amount),
            },
        )
        return ServiceResult.success(result)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def _finish(cls, patient: Patient, charges: list[Charge], reason: str) -> CompletionResult:
        new_balance = LedgerStore.refresh_cached_balance(patient)
        send_balance_changed_on_commit(
            sender=cls,
            clinic_id=patient.clinic_id,
            patient_id=patient.id,
            new_balance=new_balance,
            reason=reason,
        )
        return CompletionResult(
            completed_count=len(charges),
            total_amount=sum((charge.total for charge in charges), ZERO),
            new_balance=new_balance,
            charge_ids=[charge.id for charge in charges],
        )

    @staticmethod
    def _validate_item_ids(item_ids) -> list[uuid.UUID]:
        ids = [_as_uuid(item_id, "item_id") for item_id in item_ids or []]
        if not ids:
            raise ValidationError(
                "At least one treatment item is required",
                error_code="EMPTY_ITEMS",
            )
        duplicates = sorted({str(i) for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValidationError(
                "Treatment items are listed more than once",
                error_code="DUPLICATE_ITEMS",
                details={"item_ids": duplicates},
            )
        return ids

    @staticmethod
    def _check_items(items: list[TreatmentPlanItem], ids: list[uuid.UUID], appointment: Appointment) -> None:
        found = {item.id for item in items}
        unknown = sorted(str(i) for i in ids if i not in found)
        if unknown:
            raise ValidationError(
                "Unknown treatment items",
                error_code="UNKNOWN_ITEMS",
                details={"item_ids": unknown},
            )
        foreign = sorted(str(item.id) for item in items if item.clinic_id != appointment.clinic_id)
        if foreign:
            raise AuthorizationError(
                "Treatment items belong to another clinic",
                error_code="CLINIC_MISMATCH",
                details={"item_ids": foreign},
            )
        other_patient = sorted(str(item.id) for item in items if item.patient_id != appointment.patient_id)
        if other_patient:
            raise AuthorizationError(
                "Treatment items belong to another patient",
                error_code="PATIENT_MISMATCH",
                details={"item_ids": other_patient},
            )

    @staticmethod
    def _coerce_service(service: PerformedService | dict) -> PerformedService:
        if isinstance(service, dict):
            try:
                service = PerformedService(**service)
            except TypeError as exc:
                raise ValidationError(
                    "Malformed service line",
                    error_code="INVALID_SERVICE",
                    details={"service": {k: str(v) for k, v in service.items()}},
                ) from exc

        if not (service.service_name or "").strip():
            raise ValidationError("Service name is required", error_code="INVALID_SERVICE")
        try:
            unit_price = to_money(service.unit_price)
            discount = Decimal(str(service.discount_percent))
            quantity = Decimal(str(service.quantity))
            if not (discount.is_finite() and quantity.is_finite()):
                raise ValueError("Service quantity and discount must be finite")
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise InvalidAmountError(
                "Service price, quantity or discount is not a number",
                details={"service_name": service.service_name},
            ) from exc
        if not ZERO <= unit_price <= MAX_AMOUNT:
            raise InvalidAmountError(
                "Unit price must be between 0 and the largest storable amount",
                details={"service_name": service.service_name, "unit_price": str(unit_price)},
            )
        if quantity < 1 or quantity != quantity.to_integral_value():
            raise ValidationError(
                "Quantity must be a whole number of at least 1",
                error_code="INVALID_QUANTITY",
                details={"service_name": service.service_name, "quantity": str(quantity)},
            )
        if unit_price * quantity > MAX_AMOUNT:
            raise InvalidAmountError(
                "Service line total is too large",
                details={"service_name": service.service_name, "unit_price": str(unit_price)},
            )
        if not Decimal("0") <= discount <= Decimal("100"):
            raise ValidationError(
                "Discount must be between 0 and 100 percent",
                error_code="INVALID_DISCOUNT",
                details={"service_name": service.service_name, "discount_percent": str(discount)},
            )
        return PerformedService(
            service_name=service.service_name.strip(),
            unit_price=unit_price,
            quantity=int(quantity),
            discount_percent=discount,
            tooth_number=service.tooth_number,
        )
