"""
Pytest fixtures for finance tests.

Fixtures provide a clinic with staff, a patient with an appointment, and
helpers that write through the finance services so the cached balance
always matches the ledger.

Usage:
    def test_balance_after_payment(patient, charge_patient, pay_patient):
        charge_patient(Decimal("350000"))
        result = pay_patient(Decimal("350000"))
        assert result.new_balance == Decimal("0.00")
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from clinics.tests.factories import (
    AppointmentFactory,
    ClinicFactory,
    PatientFactory,
    TreatmentPlanItemFactory,
)
from core.exceptions import ExternalServiceError
from finance.adapters import set_fiscal_issuer
from finance.models import Charge
from finance.protocols import IssuedReceipt
from finance.services import PaymentProcessor, TreatmentCompletionService


# =============================================================================
# Clinic and Staff Fixtures
# =============================================================================


@pytest.fixture
def clinic(db):
    """Create the clinic most tests operate in."""
    return ClinicFactory(name="Smile Dental")


@pytest.fixture
def other_clinic(db):
    """Create a second tenant for cross-clinic checks."""
    return ClinicFactory(name="Other Dental")


@pytest.fixture
def doctor(clinic):
    """Create a doctor of the clinic."""
    return UserFactory(clinic=clinic, full_name="Dr. Dilnoza Karimova")


@pytest.fixture
def cashier(clinic):
    """Create a cashier of the clinic."""
    return UserFactory(clinic=clinic, full_name="Aziza Cashier")


@pytest.fixture
def foreign_staff(other_clinic):
    """Create a staff member of the other clinic."""
    return UserFactory(clinic=other_clinic)


# =============================================================================
# Patient Fixtures
# =============================================================================


@pytest.fixture
def patient(clinic):
    """Create a patient of the clinic with a zero balance."""
    return PatientFactory(clinic=clinic, full_name="Aziz Rakhimov")


@pytest.fixture
def other_patient(clinic):
    """Create a second patient of the same clinic."""
    return PatientFactory(clinic=clinic)


@pytest.fixture
def foreign_patient(other_clinic):
    """Create a patient of the other clinic."""
    return PatientFactory(clinic=other_clinic)


@pytest.fixture
def appointment(patient, doctor):
    """Create a visit of the patient with the doctor."""
    return AppointmentFactory(patient=patient, clinic=patient.clinic, doctor=doctor)


@pytest.fixture
def make_plan_item(patient, appointment):
    """
    Return a function creating planned treatment items for the patient.

    Example:
        item = make_plan_item(unit_price=Decimal("120000"), tooth_number=16)
    """

    def _make(**kwargs):
        kwargs.setdefault("patient", patient)
        kwargs.setdefault("appointment", appointment)
        return TreatmentPlanItemFactory(**kwargs)

    return _make


# =============================================================================
# Ledger Helpers
# =============================================================================


@pytest.fixture
def charge_patient(appointment, doctor):
    """
    Return a function billing the patient through record_performed_services.

    Returns the created Charge.
    """

    def _charge(unit_price, service_name="Consultation", **kwargs):
        result = TreatmentCompletionService.record_performed_services(
            appointment_id=appointment.id,
            services=[{"service_name": service_name, "unit_price": unit_price, **kwargs}],
            doctor_id=doctor.id,
            clinic_id=appointment.clinic_id,
        )
        assert result.success, result.error
        return Charge.objects.get(id=result.data.charge_ids[0])

    return _charge


@pytest.fixture
def pay_patient(patient, cashier):
    """
    Return a function recording a payment through PaymentProcessor.

    Returns the PaymentResult.
    """

    def _pay(amount, idempotency_key=None, method="cash", **kwargs):
        result = PaymentProcessor.record_payment(
            clinic_id=patient.clinic_id,
            patient_id=patient.id,
            amount=Decimal(amount),
            method=method,
            processed_by=cashier,
            idempotency_key=idempotency_key,
            **kwargs,
        )
        assert result.success, result.error
        return result.data

    return _pay


# =============================================================================
# Fiscal Issuer Fixtures
# =============================================================================


class FakeFiscalIssuer:
    """
    In-memory fiscal issuer.

    Fails the first `failures` calls with ExternalServiceError, then
    issues receipts numbered by call.
    """

    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []

    def issue(self, payment):
        self.calls.append(payment.id)
        if len(self.calls) <= self.failures:
            raise ExternalServiceError("Fiscal provider unavailable")
        return IssuedReceipt(
            receipt_number=f"R-{len(self.calls):04d}",
            check_url=f"https://ofd.soliq.uz/check?t={payment.id.hex}",
        )


@pytest.fixture
def fiscal_issuer():
    """Install a fake issuer that always succeeds."""
    issuer = FakeFiscalIssuer()
    set_fiscal_issuer(issuer)
    yield issuer
    set_fiscal_issuer(None)


@pytest.fixture
def failing_fiscal_issuer():
    """Install a fake issuer that never succeeds."""
    issuer = FakeFiscalIssuer(failures=10**6)
    set_fiscal_issuer(issuer)
    yield issuer
    set_fiscal_issuer(None)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def cashier_client(cashier):
    """API client authenticated as the cashier."""
    client = APIClient()
    client.force_authenticate(user=cashier)
    return client


@pytest.fixture
def doctor_client(doctor):
    """API client authenticated as the doctor."""
    client = APIClient()
    client.force_authenticate(user=doctor)
    return client


@pytest.fixture
def foreign_client(foreign_staff):
    """API client authenticated as staff of the other clinic."""
    client = APIClient()
    client.force_authenticate(user=foreign_staff)
    return client
