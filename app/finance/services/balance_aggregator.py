"""
Balance aggregator: derived totals and drift detection.

All totals of a patient are read in one statement (scalar subqueries
annotated onto the patient row), so the summary never mixes snapshots.
The aggregator only reads the ledger; when the cached Patient.balance
disagrees with it, a BalanceDriftRecord is written and nothing is fixed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult, service_operation
from finance.models import BalanceDriftRecord, DriftSource
from finance.services.ledger_store import LedgerStore, _as_uuid
from finance.types import BalanceCheck, FinanceSummary, to_money

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from clinics.models import Patient


class BalanceAggregator(BaseService):
    """
    Read-side derivations over the ledger.

    Methods:
        get_finance_summary: Totals, debt and advance of one patient
        calculate_patient_balance: Authoritative balance plus drift check
        detect_drift: Drift check over many patients (periodic task)
    """

    @classmethod
    @service_operation
    def get_finance_summary(
        cls, patient_id: uuid.UUID, clinic_id: uuid.UUID | None = None
    ) -> ServiceResult[FinanceSummary]:
        patient = cls._totals_row(patient_id, clinic_id)
        return ServiceResult.success(
            FinanceSummary.from_totals(
                patient_id=patient.id,
                total_charges=patient.charge_total,
                total_paid=patient.paid_total,
                planned_cost=patient.planned_cost,
                currency=settings.FINANCE_CURRENCY,
            )
        )

    @classmethod
    @service_operation
    def calculate_patient_balance(
        cls, patient_id: uuid.UUID, clinic_id: uuid.UUID | None = None
    ) -> ServiceResult[BalanceCheck]:
        """
        Recompute the balance from the ledger and compare it with the cache.

        Returns:
            ServiceResult with BalanceCheck; balance is the ledger value.
            drift_detected is True when the cached value differs, in which
            case a BalanceDriftRecord has been written.
        """
        patient = cls._totals_row(patient_id, clinic_id)
        check = cls._check(patient, DriftSource.ON_DEMAND)
        return ServiceResult.success(check)

    @classmethod
    @service_operation
    def detect_drift(
        cls,
        patient_ids: Iterable[uuid.UUID] | None = None,
        source: str = DriftSource.PERIODIC,
        batch_size: int | None = None,
    ) -> ServiceResult[list[BalanceCheck]]:
        """
        Run the balance check for many patients.

        Args:
            patient_ids: Patients to check; all patients when None
            source: Recorded on any drift rows written
            batch_size: Iterator chunk size (BALANCE_DRIFT_CHECK_BATCH_SIZE)

        Returns:
            ServiceResult with the checks that found drift
        """
        batch_size = batch_size or getattr(settings, "BALANCE_DRIFT_CHECK_BATCH_SIZE", 500)
        queryset = LedgerStore.totals_queryset().order_by("id")
        if patient_ids is not None:
            queryset = queryset.filter(id__in=[_as_uuid(p, "patient_id") for p in patient_ids])

        checked = 0
        drifted = []
        for patient in queryset.iterator(chunk_size=batch_size):
            checked += 1
            check = cls._check(patient, source)
            if check.drift_detected:
                drifted.append(check)

        cls.get_logger().info(
            "Balance drift check finished",
            extra={"checked": checked, "drifted": len(drifted), "source": source},
        )
        return ServiceResult.success(drifted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def _totals_row(cls, patient_id, clinic_id) -> Patient:
        patient_id = _as_uuid(patient_id, "patient_id")
        patient = LedgerStore.totals_queryset().filter(id=patient_id).first()
        if patient is None:
            raise NotFoundError(
                f"Patient {patient_id} not found",
                error_code="PATIENT_NOT_FOUND",
                details={"patient_id": str(patient_id)},
            )
        LedgerStore.check_clinic(patient, clinic_id, "patient")
        return patient

    @classmethod
    def _check(cls, patient: Patient, source: str) -> BalanceCheck:
        ledger_balance = to_money(patient.paid_total) - to_money(patient.charge_total)
        cached_balance = to_money(patient.balance)
        drift = cached_balance != ledger_balance
        if drift:
            record = BalanceDriftRecord.objects.create(
                clinic_id=patient.clinic_id,
                patient=patient,
                cached_balance=cached_balance,
                ledger_balance=ledger_balance,
                difference=cached_balance - ledger_balance,
                source=source,
            )
            cls.get_logger().error(
                "Cached patient balance differs from the ledger",
                extra={
                    "patient_id": str(patient.id),
                    "clinic_id": str(patient.clinic_id),
                    "cached_balance": str(cached_balance),
                    "ledger_balance": str(ledger_balance),
                    "drift_record_id": str(record.id),
                },
            )
        return BalanceCheck(
            patient_id=patient.id,
            balance=ledger_balance,
            cached_balance=cached_balance,
            drift_detected=drift,
        )
