"""
Tests for TreatmentCompletionService.

Covers reject-all completion batches, item and tenant validation, the
conditional planned -> completed update, and directly recorded services.
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from clinics.models import Patient, PlanItemStatus, TreatmentPlanItem
from clinics.tests.factories import AppointmentFactory, TreatmentPlanItemFactory
from finance.models import Charge
from finance.services import TreatmentCompletionService
from finance.types import PerformedService


def complete(appointment, items, doctor):
    return TreatmentCompletionService.complete_treatment_services(
        appointment_id=appointment.id,
        item_ids=[item.id for item in items],
        doctor_id=doctor.id,
        clinic_id=appointment.clinic_id,
    )


# =============================================================================
# complete_treatment_services
# =============================================================================


class TestCompleteTreatmentServices:
    def test_completes_items_and_bills_them(self, patient, appointment, doctor, make_plan_item):
        """Should create one charge per item and lower the balance."""
        filling = make_plan_item(service_name="Filling", unit_price=Decimal("120000"), tooth_number=16)
        cleaning = make_plan_item(service_name="Cleaning", unit_price=Decimal("230000"))

        result = complete(appointment, [filling, cleaning], doctor)

        assert result.success
        assert result.data.completed_count == 2
        assert result.data.total_amount == Decimal("350000.00")
        assert result.data.new_balance == Decimal("-350000.00")
        assert Patient.objects.get(id=patient.id).balance == Decimal("-350000.00")

        charge = Charge.objects.get(plan_item=filling)
        assert charge.total == Decimal("120000.00")
        assert charge.tooth_number == 16
        assert charge.appointment == appointment
        assert charge.doctor == doctor

        filling.refresh_from_db()
        assert filling.status == PlanItemStatus.COMPLETED
        assert filling.completed_by == doctor
        assert filling.completed_at is not None

    def test_applies_discount_and_quantity(self, appointment, doctor, make_plan_item):
        item = make_plan_item(quantity=2, unit_price=Decimal("150000"), discount_percent=Decimal("10"))

        result = complete(appointment, [item], doctor)

        assert result.data.total_amount == Decimal("270000.00")

    def test_batch_with_completed_item_rejected(self, patient, appointment, doctor, make_plan_item):
        """Should reject the whole batch and list the completed item."""
        done = make_plan_item()
        complete(appointment, [done], doctor)
        fresh = make_plan_item()

        result = complete(appointment, [fresh, done], doctor)

        assert not result.success
        assert result.error_code == "ITEMS_ALREADY_COMPLETED"
        assert result.error_kind == "conflict"
        assert result.details["item_ids"] == [str(done.id)]
        assert TreatmentPlanItem.objects.get(id=fresh.id).status == PlanItemStatus.PLANNED
        assert not Charge.objects.filter(plan_item=fresh).exists()
        assert Charge.objects.filter(patient=patient).count() == 1

    def test_completing_twice_bills_once(self, patient, appointment, doctor, make_plan_item):
        item = make_plan_item(unit_price=Decimal("50000"))

        complete(appointment, [item], doctor)
        second = complete(appointment, [item], doctor)

        assert second.error_code == "ITEMS_ALREADY_COMPLETED"
        assert Patient.objects.get(id=patient.id).balance == Decimal("-50000.00")

    def test_lost_conditional_update_rejects_batch(self, patient, appointment, doctor, make_plan_item):
        """Should roll back when another request completes an item first."""
        first = make_plan_item()
        second = make_plan_item()
        real_filter = TreatmentPlanItem.objects.filter

        def racing_filter(*args, **kwargs):
            # The racer completes `second` between the read and our update.
            if kwargs.get("id") == second.id and "status" in kwargs:
                TreatmentPlanItem.objects.all().filter(id=second.id).update(
                    status=PlanItemStatus.COMPLETED, completed_at=second.created_at
                )
            return real_filter(*args, **kwargs)

        with patch.object(TreatmentPlanItem.objects, "filter", side_effect=racing_filter):
            result = complete(appointment, [first, second], doctor)

        assert result.error_code == "ITEMS_ALREADY_COMPLETED"
        assert result.details["item_ids"] == [str(second.id)]
        assert TreatmentPlanItem.objects.get(id=first.id).status == PlanItemStatus.PLANNED
        assert not Charge.objects.filter(patient=patient).exists()

    def test_empty_batch(self, appointment, doctor):
        result = complete(appointment, [], doctor)

        assert result.error_code == "EMPTY_ITEMS"

    def test_duplicate_items(self, appointment, doctor, make_plan_item):
        item = make_plan_item()

        result = complete(appointment, [item, item], doctor)

        assert result.error_code == "DUPLICATE_ITEMS"
        assert not Charge.objects.exists()

    def test_unknown_item(self, appointment, doctor):
        result = TreatmentCompletionService.complete_treatment_services(
            appointment_id=appointment.id,
            item_ids=[uuid.uuid4()],
            doctor_id=doctor.id,
        )

        assert result.error_code == "UNKNOWN_ITEMS"

    def test_item_of_other_patient(self, appointment, doctor, other_patient):
        """Should refuse to bill an item planned for another patient."""
        item = TreatmentPlanItemFactory(patient=other_patient)

        result = complete(appointment, [item], doctor)

        assert result.error_code == "PATIENT_MISMATCH"
        assert result.error_kind == "authorization"

    def test_item_of_other_clinic(self, appointment, doctor, foreign_patient):
        item = TreatmentPlanItemFactory(patient=foreign_patient)

        result = complete(appointment, [item], doctor)

        assert result.error_code == "CLINIC_MISMATCH"

    def test_doctor_of_other_clinic(self, appointment, foreign_staff, make_plan_item):
        item = make_plan_item()

        result = complete(appointment, [item], foreign_staff)

        assert result.error_code == "STAFF_NOT_IN_CLINIC"
        assert TreatmentPlanItem.objects.get(id=item.id).status == PlanItemStatus.PLANNED

    def test_appointment_of_other_clinic(self, doctor, foreign_patient, make_plan_item, clinic):
        """Should refuse an appointment outside the caller's clinic."""
        visit = AppointmentFactory(patient=foreign_patient, clinic=foreign_patient.clinic)

        result = TreatmentCompletionService.complete_treatment_services(
            appointment_id=visit.id,
            item_ids=[make_plan_item().id],
            doctor_id=doctor.id,
            clinic_id=clinic.id,
        )

        assert result.error_code == "CLINIC_MISMATCH"

    def test_unknown_appointment(self, doctor, make_plan_item):
        result = TreatmentCompletionService.complete_treatment_services(
            appointment_id=uuid.uuid4(),
            item_ids=[make_plan_item().id],
            doctor_id=doctor.id,
        )

        assert result.error_code == "APPOINTMENT_NOT_FOUND"
        assert result.http_status == 404

    def test_missing_doctor(self, appointment, make_plan_item):
        result = TreatmentCompletionService.complete_treatment_services(
            appointment_id=appointment.id,
            item_ids=[make_plan_item().id],
            doctor_id=None,
        )

        assert result.error_code == "VALIDATION_ERROR"
        assert "doctor_id" in result.errors
        assert not Charge.objects.exists()


# =============================================================================
# record_performed_services
# =============================================================================


class TestRecordPerformedServices:
    def record(self, appointment, doctor, services):
        return TreatmentCompletionService.record_performed_services(
            appointment_id=appointment.id,
            services=services,
            doctor_id=doctor.id,
            clinic_id=appointment.clinic_id,
        )

    def test_records_dict_lines(self, patient, appointment, doctor):
        """Should bill each line as a charge without a plan item."""
        result = self.record(
            appointment,
            doctor,
            [
                {"service_name": "X-ray", "unit_price": "80000"},
                {"service_name": "Anesthesia", "unit_price": "30000", "quantity": 2},
            ],
        )

        assert result.success
        assert result.data.completed_count == 2
        assert result.data.total_amount == Decimal("140000.00")
        assert Patient.objects.get(id=patient.id).balance == Decimal("-140000.00")
        assert not Charge.objects.filter(patient=patient, plan_item__isnull=False).exists()

    def test_records_dataclass_lines(self, appointment, doctor):
        line = PerformedService(
            service_name="Whitening",
            unit_price=Decimal("400000"),
            discount_percent=Decimal("25"),
            tooth_number=11,
        )

        result = self.record(appointment, doctor, [line])

        charge = Charge.objects.get(id=result.data.charge_ids[0])
        assert charge.total == Decimal("300000.00")
        assert charge.tooth_number == 11

    def test_missing_appointment(self, doctor):
        result = TreatmentCompletionService.record_performed_services(
            appointment_id=None,
            services=[{"service_name": "X-ray", "unit_price": "1"}],
            doctor_id=doctor.id,
        )

        assert result.error_code == "VALIDATION_ERROR"
        assert "appointment_id" in result.errors

    def test_empty_services(self, appointment, doctor):
        result = self.record(appointment, doctor, [])

        assert result.error_code == "EMPTY_SERVICES"

    @pytest.mark.parametrize(
        "line, error_code",
        [
            ({"service_name": "", "unit_price": "1"}, "INVALID_SERVICE"),
            ({"service_name": "A", "unit_price": "1", "colour": "red"}, "INVALID_SERVICE"),
            ({"service_name": "A", "unit_price": "-1"}, "INVALID_AMOUNT"),
            ({"service_name": "A", "unit_price": "abc"}, "INVALID_AMOUNT"),
            ({"service_name": "A", "unit_price": "1", "quantity": 0}, "INVALID_QUANTITY"),
            ({"service_name": "A", "unit_price": "1", "discount_percent": "101"}, "INVALID_DISCOUNT"),
            ({"service_name": "A", "unit_price": "1", "discount_percent": "NaN"}, "INVALID_AMOUNT"),
            ({"service_name": "A", "unit_price": "1", "quantity": "1.5"}, "INVALID_QUANTITY"),
            ({"service_name": "A", "unit_price": "1e30"}, "INVALID_AMOUNT"),
            ({"service_name": "A", "unit_price": "999999999999", "quantity": 2}, "INVALID_AMOUNT"),
        ],
    )
    def test_invalid_lines_rejected(self, patient, appointment, doctor, line, error_code):
        """Should reject malformed lines before writing anything."""
        result = self.record(
            appointment, doctor, [{"service_name": "Valid", "unit_price": "1000"}, line]
        )

        assert result.error_code == error_code
        assert not Charge.objects.filter(patient=patient).exists()
