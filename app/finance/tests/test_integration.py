"""
End-to-end ledger workflows through the HTTP API.

Each test drives a realistic front-desk sequence (bill, pay, allocate,
refund, read back) and checks the balance the patient would see at every
step.
"""

from decimal import Decimal

from django.urls import reverse
from rest_framework import status

from clinics.models import Patient
from finance.models import Charge, Payment


def balance_of(patient):
    return Patient.objects.get(id=patient.id).balance


class TestChargeAndPayFlow:
    def test_settle_then_advance_with_retry(self, cashier_client, patient, make_plan_item, appointment):
        """
        Given a 350,000 treatment
        When the patient pays it in full and then sends the same 100,000
             advance twice with one idempotency key
        Then exactly one advance payment exists and the balance is +100,000
        """
        item = make_plan_item(unit_price=Decimal("350000"))
        response = cashier_client.post(
            reverse("finance:treatment-complete"),
            {"appointment_id": str(appointment.id), "item_ids": [str(item.id)]},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert balance_of(patient) == Decimal("-350000.00")

        paid = cashier_client.post(
            reverse("finance:payment-create"),
            {"patient_id": str(patient.id), "amount": "350000", "method": "card_terminal"},
            format="json",
        )
        assert paid.status_code == status.HTTP_201_CREATED
        assert balance_of(patient) == Decimal("0.00")

        body = {"patient_id": str(patient.id), "amount": "100000", "method": "cash", "idempotency_key": "k1"}
        first = cashier_client.post(reverse("finance:payment-create"), body, format="json")
        second = cashier_client.post(reverse("finance:payment-create"), body, format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_200_OK
        assert Payment.objects.filter(patient=patient, idempotency_key="k1").count() == 1
        assert balance_of(patient) == Decimal("100000.00")

        summary = cashier_client.get(reverse("finance:patient-summary", args=[patient.id])).data["data"]
        assert summary["advance"] == "100000.00"
        assert summary["current_debt"] == "0.00"

    def test_refund_restores_debt(self, cashier_client, patient, charge_patient, pay_patient):
        charge_patient(Decimal("200000"))
        paid = pay_patient(Decimal("200000"))

        response = cashier_client.post(
            reverse("finance:refund-create", args=[paid.payment_id]),
            {"patient_id": str(patient.id), "amount": "50000", "method": "cash"},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED

        assert balance_of(patient) == Decimal("-50000.00")
        balance = cashier_client.get(reverse("finance:patient-balance", args=[patient.id])).data["data"]
        assert balance["balance"] == "-50000.00"
        assert balance["drift_detected"] is False


class TestAllocationFlow:
    def test_partial_allocation_and_rejected_overpay(self, cashier_client, patient, charge_patient, pay_patient):
        """
        Given works A (120,000) and B (150,000) and a 200,000 payment
        When A is fully paid and B gets the remaining 80,000
        Then B has 70,000 left and a further 90,000 to B is rejected
        """
        work_a = charge_patient(Decimal("120000"), service_name="Crown")
        work_b = charge_patient(Decimal("150000"), service_name="Implant")
        paid = pay_patient(Decimal("200000"))
        url = reverse("finance:allocation-create", args=[paid.payment_id])

        response = cashier_client.post(
            url,
            {
                "allocations": [
                    {"charge_id": str(work_a.id), "amount": "120000"},
                    {"charge_id": str(work_b.id), "amount": "80000"},
                ]
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED

        statuses = {
            row["charge_id"]: row
            for row in cashier_client.get(
                reverse("finance:patient-work-status", args=[patient.id])
            ).data["data"]
        }
        assert statuses[str(work_a.id)]["status"] == "paid"
        assert statuses[str(work_b.id)]["status"] == "partial"
        assert statuses[str(work_b.id)]["remaining"] == "70000.00"

        extra = pay_patient(Decimal("100000"))
        rejected = cashier_client.post(
            reverse("finance:allocation-create", args=[extra.payment_id]),
            {"allocations": [{"charge_id": str(work_b.id), "amount": "90000"}]},
            format="json",
        )
        assert rejected.status_code == status.HTTP_409_CONFLICT
        assert rejected.data["error_code"] == "OVER_ALLOCATION"

        unpaid = cashier_client.get(reverse("finance:patient-unpaid-works", args=[patient.id])).data["data"]
        assert [w["id"] for w in unpaid] == [str(work_b.id)]
        # Allocation never changes the balance.
        assert balance_of(patient) == Decimal("30000.00")


class TestLedgerFlow:
    def test_pages_share_one_running_balance(self, cashier_client, patient, charge_patient, pay_patient):
        """Should report the same balance_after for an entry on any page."""
        charge_patient(Decimal("100000"))
        pay_patient(Decimal("60000"))
        charge_patient(Decimal("30000"))
        pay_patient(Decimal("70000"))
        url = reverse("finance:patient-ledger", args=[patient.id])

        full = cashier_client.get(url, {"limit": 10}).data["data"]
        page = cashier_client.get(url, {"limit": 2, "offset": 2}).data["data"]

        by_id = {entry["id"]: entry["balance_after"] for entry in full["entries"]}
        assert full["entries"][0]["balance_after"] == "0.00"
        assert full["current_balance"] == "0.00"
        assert len(page["entries"]) == 2
        for entry in page["entries"]:
            assert entry["balance_after"] == by_id[entry["id"]]


class TestTreatmentBatchFlow:
    def test_batch_with_completed_item_writes_nothing(
        self, doctor_client, patient, appointment, make_plan_item
    ):
        """
        Given item X already completed and item Y still planned
        When a batch [X, Y] is submitted
        Then it fails with X listed and Y stays planned and unbilled
        """
        item_x = make_plan_item(unit_price=Decimal("50000"))
        item_y = make_plan_item(unit_price=Decimal("70000"))
        url = reverse("finance:treatment-complete")
        first = doctor_client.post(
            url, {"appointment_id": str(appointment.id), "item_ids": [str(item_x.id)]}, format="json"
        )
        assert first.status_code == status.HTTP_201_CREATED

        response = doctor_client.post(
            url,
            {"appointment_id": str(appointment.id), "item_ids": [str(item_x.id), str(item_y.id)]},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["details"]["item_ids"] == [str(item_x.id)]
        item_y.refresh_from_db()
        assert item_y.is_completed is False
        assert not Charge.objects.filter(plan_item=item_y).exists()
        assert balance_of(patient) == Decimal("-50000.00")
