"""
Tests for BalanceAggregator.

Covers the finance summary, the authoritative balance recomputation and
drift detection. Drift is simulated by writing Patient.balance directly,
which is exactly what production code must never do.
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

from clinics.models import Patient
from clinics.tests.factories import PatientFactory
from finance.models import BalanceDriftRecord, DriftSource
from finance.services import BalanceAggregator, PaymentProcessor
from finance.tests.factories import ChargeFactory


def corrupt_cache(patient, value):
    Patient.objects.filter(id=patient.id).update(balance=Decimal(value))


class TestFinanceSummary:
    def test_patient_in_debt(self, patient, charge_patient, pay_patient, make_plan_item):
        charge_patient(Decimal("350000"))
        pay_patient(Decimal("100000"))
        make_plan_item(unit_price=Decimal("80000"))

        summary = BalanceAggregator.get_finance_summary(patient.id).data

        assert summary.total_treatment_cost == Decimal("350000.00")
        assert summary.total_paid == Decimal("100000.00")
        assert summary.current_balance == Decimal("-250000.00")
        assert summary.current_debt == Decimal("250000.00")
        assert summary.advance == Decimal("0.00")
        assert summary.planned_cost == Decimal("80000.00")

    def test_patient_with_advance(self, patient, charge_patient, pay_patient):
        charge_patient(Decimal("100000"))
        pay_patient(Decimal("150000"))

        summary = BalanceAggregator.get_finance_summary(patient.id).data

        assert summary.current_debt == Decimal("0.00")
        assert summary.advance == Decimal("50000.00")

    def test_refunds_reduce_total_paid(self, patient, cashier, pay_patient):
        paid = pay_patient(Decimal("100000"))
        PaymentProcessor.record_refund(
            clinic_id=patient.clinic_id,
            patient_id=patient.id,
            payment_id=paid.payment_id,
            amount=Decimal("30000"),
            method="cash",
            processed_by=cashier,
        )

        summary = BalanceAggregator.get_finance_summary(patient.id).data

        assert summary.total_paid == Decimal("70000.00")

    def test_new_patient(self, patient):
        summary = BalanceAggregator.get_finance_summary(patient.id).data

        assert summary.current_balance == Decimal("0.00")

    def test_reports_configured_currency(self, patient, settings):
        settings.FINANCE_CURRENCY = "usd"

        summary = BalanceAggregator.get_finance_summary(patient.id).data

        assert summary.to_dict()["currency"] == "usd"

    def test_unknown_patient(self, db):
        result = BalanceAggregator.get_finance_summary(uuid.uuid4())

        assert result.error_code == "PATIENT_NOT_FOUND"

    def test_other_clinic(self, patient, other_clinic):
        result = BalanceAggregator.get_finance_summary(patient.id, clinic_id=other_clinic.id)

        assert result.error_code == "CLINIC_MISMATCH"


class TestCalculatePatientBalance:
    def test_consistent_cache(self, patient, charge_patient, pay_patient):
        """Should report no drift when the cache matches the ledger."""
        charge_patient(Decimal("100000"))
        pay_patient(Decimal("40000"))

        check = BalanceAggregator.calculate_patient_balance(patient.id).data

        assert check.balance == Decimal("-60000.00")
        assert check.cached_balance == Decimal("-60000.00")
        assert check.drift_detected is False
        assert not BalanceDriftRecord.objects.exists()

    def test_drift_recorded_not_repaired(self, patient, charge_patient):
        """Should return the ledger value, record drift and leave the cache alone."""
        charge_patient(Decimal("100000"))
        corrupt_cache(patient, "5000")

        check = BalanceAggregator.calculate_patient_balance(patient.id).data

        assert check.balance == Decimal("-100000.00")
        assert check.cached_balance == Decimal("5000.00")
        assert check.drift_detected is True
        record = BalanceDriftRecord.objects.get(patient=patient)
        assert record.difference == Decimal("105000.00")
        assert record.source == DriftSource.ON_DEMAND
        assert Patient.objects.get(id=patient.id).balance == Decimal("5000.00")

    def test_drift_logged_as_error(self, patient):
        corrupt_cache(patient, "1")

        with patch.object(BalanceAggregator, "get_logger") as get_logger:
            BalanceAggregator.calculate_patient_balance(patient.id)

        message = get_logger.return_value.error.call_args.args[0]
        assert message == "Cached patient balance differs from the ledger"


class TestDetectDrift:
    def test_reports_only_drifted_patients(self, patient, other_patient, charge_patient):
        charge_patient(Decimal("1000"))
        corrupt_cache(other_patient, "-1")

        result = BalanceAggregator.detect_drift()

        assert result.success
        assert [check.patient_id for check in result.data] == [other_patient.id]
        record = BalanceDriftRecord.objects.get()
        assert record.source == DriftSource.PERIODIC

    def test_limited_to_given_patients(self, patient, other_patient):
        corrupt_cache(patient, "10")
        corrupt_cache(other_patient, "10")

        result = BalanceAggregator.detect_drift(patient_ids=[patient.id])

        assert [check.patient_id for check in result.data] == [patient.id]

    def test_small_batches_cover_everyone(self, clinic):
        """Should check every patient regardless of the iterator chunk size."""
        patients = PatientFactory.create_batch(5, clinic=clinic)
        for p in patients:
            ChargeFactory(patient=p, unit_price=Decimal("10"))

        result = BalanceAggregator.detect_drift(batch_size=2)

        assert {c.patient_id for c in result.data} == {p.id for p in patients}
