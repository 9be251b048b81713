"""
Tests for LedgerQuery.

balance_after must come from the full history, so pages of any size and
offset show the same running balance for the same entry.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from finance.models import FiscalReceipt
from finance.services import LedgerQuery, PaymentProcessor


@pytest.fixture
def history(patient, cashier, charge_patient, pay_patient):
    """
    Five entries one minute apart, oldest first:

        charge 350000   -> -350000
        payment 200000  -> -150000
        charge 100000   -> -250000
        payment 300000  ->   50000
        refund 20000    ->   30000
    """
    start = timezone.now() - timedelta(hours=1)
    with freeze_time(start):
        charge_patient(Decimal("350000"), service_name="Implant", tooth_number=36)
    with freeze_time(start + timedelta(minutes=1)):
        pay_patient(Decimal("200000"), method="uzcard")
    with freeze_time(start + timedelta(minutes=2)):
        charge_patient(Decimal("100000"), service_name="Cleaning")
    with freeze_time(start + timedelta(minutes=3)):
        paid = pay_patient(Decimal("300000"), notes="Second visit")
    with freeze_time(start + timedelta(minutes=4)):
        PaymentProcessor.record_refund(
            clinic_id=patient.clinic_id,
            patient_id=patient.id,
            payment_id=paid.payment_id,
            amount=Decimal("20000"),
            method="cash",
            processed_by=cashier,
            reason="Overpaid",
        )
    return paid


class TestGetLedger:
    def test_newest_first_with_running_balance(self, patient, history):
        result = LedgerQuery.get_ledger(patient.id)

        assert result.success
        page = result.data
        assert page.total == 5
        assert page.current_balance == Decimal("30000.00")
        assert [e.event_type for e in page.entries] == [
            "refund",
            "payment",
            "charge",
            "payment",
            "charge",
        ]
        assert [e.balance_after for e in page.entries] == [
            Decimal("30000.00"),
            Decimal("50000.00"),
            Decimal("-250000.00"),
            Decimal("-150000.00"),
            Decimal("-350000.00"),
        ]

    def test_entry_shapes(self, patient, history):
        """Should describe charges, payments and refunds distinctly."""
        entries = LedgerQuery.get_ledger(patient.id).data.entries
        refund, payment, _, _, implant = entries

        assert implant.type == "debit"
        assert implant.amount == Decimal("-350000.00")
        assert implant.description == "Implant (tooth 36)"
        assert implant.extras["tooth_number"] == 36

        assert payment.type == "credit"
        assert payment.amount == Decimal("300000.00")
        assert payment.description == "Payment (Cash)"
        assert payment.extras["notes"] == "Second visit"
        assert payment.extras["is_fiscalized"] is False

        assert refund.type == "debit"
        assert refund.amount == Decimal("-20000.00")
        assert refund.description == "Refund (Cash)"
        assert refund.extras["refund_of"] == history.payment_id

    def test_pagination_keeps_balance_after(self, patient, history):
        """Should show the same balance_after for an entry on any page."""
        full = {e.id: e.balance_after for e in LedgerQuery.get_ledger(patient.id).data.entries}

        for limit, offset in [(1, 0), (2, 1), (2, 3), (3, 2), (10, 4)]:
            page = LedgerQuery.get_ledger(patient.id, limit=limit, offset=offset).data
            assert page.total == 5
            assert page.current_balance == Decimal("30000.00")
            for entry in page.entries:
                assert entry.balance_after == full[entry.id]

    def test_page_slices(self, patient, history):
        page = LedgerQuery.get_ledger(patient.id, limit=2, offset=1).data

        assert [e.event_type for e in page.entries] == ["payment", "charge"]
        assert page.limit == 2
        assert page.offset == 1

    def test_offset_past_end(self, patient, history):
        page = LedgerQuery.get_ledger(patient.id, limit=10, offset=50).data

        assert page.entries == []
        assert page.total == 5

    def test_fiscalized_payment(self, patient, history):
        receipt = FiscalReceipt.objects.get(payment_id=history.payment_id)
        receipt.issue(receipt_number="000777", check_url="https://ofd.soliq.uz/check?t=777")
        receipt.save()

        entries = LedgerQuery.get_ledger(patient.id).data.entries
        payment = next(e for e in entries if e.id == history.payment_id)

        assert payment.extras["is_fiscalized"] is True
        assert payment.extras["fiscal_url"] == "https://ofd.soliq.uz/check?t=777"

    def test_empty_ledger(self, patient):
        page = LedgerQuery.get_ledger(patient.id).data

        assert page.entries == []
        assert page.total == 0
        assert page.current_balance == Decimal("0.00")

    @pytest.mark.parametrize(
        "limit, offset",
        [(0, 0), (-1, 0), (501, 0), (10, -1), ("abc", 0)],
    )
    def test_invalid_pagination(self, patient, limit, offset):
        result = LedgerQuery.get_ledger(patient.id, limit=limit, offset=offset)

        assert result.error_code == "INVALID_PAGINATION"

    def test_unknown_patient(self, db):
        result = LedgerQuery.get_ledger(uuid.uuid4())

        assert result.error_code == "PATIENT_NOT_FOUND"

    def test_other_clinic(self, patient, other_clinic):
        result = LedgerQuery.get_ledger(patient.id, clinic_id=other_clinic.id)

        assert result.error_code == "CLINIC_MISMATCH"

    def test_to_dict_serializes_money_as_strings(self, patient, history):
        data = LedgerQuery.get_ledger(patient.id, limit=1).data.to_dict()

        assert data["current_balance"] == "30000.00"
        assert data["entries"][0]["amount"] == "-20000.00"
        assert data["entries"][0]["extras"]["refund_of"] == str(history.payment_id)
