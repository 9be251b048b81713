"""
Finance application: the patient financial ledger.

Keeps each patient's money balance correct and auditable while several
staff members record charges, payments, refunds and allocations against
the same patient concurrently.

Key components:
    - models: Charge, Payment, Allocation (append-only), FiscalReceipt,
      BalanceDriftRecord
    - services: LedgerStore, BalanceAggregator, PaymentProcessor,
      TreatmentCompletionService, AllocationEngine, LedgerQuery
    - tasks: fiscalize_payment, detect_balance_drift
    - signals: balance_changed

Usage:
    from finance.services import PaymentProcessor

    result = PaymentProcessor.record_payment(
        clinic_id=clinic.id,
        patient_id=patient.id,
        amount=Decimal("100000"),
        method=PaymentMethod.CASH,
        processed_by=request.user,
        idempotency_key="k1",
    )
"""
