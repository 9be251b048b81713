"""
Data types for finance operations.

This module defines dataclasses used to pass requests into and results
out of the finance services, so views and tasks never handle free-form
dicts or model instances they are not supposed to mutate.

Money is always decimal.Decimal with two fractional digits, rounded
half-up (see to_money).

Types:
    FinanceSummary: Derived patient totals
    PaymentResult: Outcome of record_payment / record_refund
    CompletionResult: Outcome of a treatment completion batch
    PerformedService: One directly recorded service line
    AllocationRequest / AllocationLine / AllocationResult: Payment allocation
    UnpaidWork / WorkPaymentStatus: Per-charge settlement views
    LedgerEntry / LedgerPage: Running-balance ledger view
    BalanceCheck: Outcome of the authoritative balance recomputation
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a max_digits=14, decimal_places=2 column holds
MAX_AMOUNT = Decimal("999999999999.99")


def to_money(value: Any) -> Decimal:
    """
    Convert a number to a two-place Decimal, rounding half-up.

    Floats are converted through str() so 0.1 stays 0.10.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"Invalid money amount: {value!r}")
        # Raises InvalidOperation when the value has too many digits
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid money amount: {value!r}") from exc


def _serialize(value: Any) -> Any:
    """JSON-friendly form: Decimal and UUID as strings, datetimes ISO-8601."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready dict (money as strings, ids as strings)."""
        return _serialize(asdict(self))


@dataclass
class FinanceSummary(_Serializable):
    """
    Derived financial totals for one patient.

    current_balance = total_paid - total_treatment_cost
    current_debt = max(0, -current_balance)
    advance = max(0, current_balance)

    Attributes:
        total_treatment_cost: Sum of charge totals
        total_paid: Sum of payments net of refunds
        planned_cost: Sum of not-yet-completed plan items
        currency: ISO code of all amounts (FINANCE_CURRENCY)
    """

    patient_id: uuid.UUID
    total_treatment_cost: Decimal
    total_paid: Decimal
    current_balance: Decimal
    current_debt: Decimal
    advance: Decimal
    planned_cost: Decimal = ZERO
    currency: str = "uzs"

    @classmethod
    def from_totals(
        cls,
        patient_id: uuid.UUID,
        total_charges: Decimal,
        total_paid: Decimal,
        planned_cost: Decimal = ZERO,
        currency: str = "uzs",
    ) -> FinanceSummary:
        total_charges = to_money(total_charges)
        total_paid = to_money(total_paid)
        balance = total_paid - total_charges
        return cls(
            patient_id=patient_id,
            total_treatment_cost=total_charges,
            total_paid=total_paid,
            current_balance=balance,
            current_debt=max(ZERO, -balance),
            advance=max(ZERO, balance),
            planned_cost=to_money(planned_cost),
            currency=currency,
        )


@dataclass
class PaymentResult(_Serializable):
    """
    Outcome of recording a payment or refund.

    Attributes:
        payment_id: Payment row id (the original one on replay)
        amount: Signed amount recorded
        new_balance: Patient balance committed with the payment
        replayed: True when an earlier payment with the same key was returned
        refund_of_id: Original payment, for refunds
    """

    payment_id: uuid.UUID
    amount: Decimal
    new_balance: Decimal
    replayed: bool = False
    refund_of_id: uuid.UUID | None = None


@dataclass
class PerformedService:
    """One service line recorded directly during a visit (no plan item)."""

    service_name: str
    unit_price: Decimal
    quantity: int = 1
    discount_percent: Decimal = Decimal("0")
    tooth_number: int | None = None


@dataclass
class CompletionResult(_Serializable):
    """Outcome of completing treatment items or recording performed services."""

    completed_count: int
    total_amount: Decimal
    new_balance: Decimal
    charge_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class AllocationRequest:
    """Requested allocation of part of a payment to a charge."""

    charge_id: uuid.UUID
    amount: Decimal


@dataclass
class AllocationLine(_Serializable):
    allocation_id: uuid.UUID
    charge_id: uuid.UUID
    amount: Decimal
    charge_remaining: Decimal


@dataclass
class AllocationResult(_Serializable):
    """
    Outcome of allocating a payment.

    Attributes:
        allocated_total: Sum of the allocations written by this request
        payment_unallocated: What remains of the payment after this request
    """

    payment_id: uuid.UUID
    allocated_total: Decimal
    payment_unallocated: Decimal
    allocations: list[AllocationLine] = field(default_factory=list)


@dataclass
class UnpaidWork(_Serializable):
    id: uuid.UUID
    service_name: str
    tooth_number: int | None
    total_cost: Decimal
    remaining: Decimal
    visit_date: datetime


@dataclass
class WorkPaymentStatus(_Serializable):
    """Settlement state of one charge: paid, partial or unpaid."""

    charge_id: uuid.UUID
    service_name: str
    total_cost: Decimal
    paid_amount: Decimal
    remaining: Decimal
    status: str


@dataclass
class LedgerEntry(_Serializable):
    """
    One row of the running-balance ledger view.

    Attributes:
        type: credit (payment) or debit (charge, refund)
        event_type: charge, payment or refund
        amount: Signed effect on the balance
        balance_after: Balance after this entry, folded over full history
        extras: Type-specific fields (method, notes, tooth_number, ...)
    """

    id: uuid.UUID
    type: str
    event_type: str
    description: str
    amount: Decimal
    date: datetime
    balance_after: Decimal = ZERO
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class LedgerPage(_Serializable):
    entries: list[LedgerEntry]
    total: int
    current_balance: Decimal
    limit: int
    offset: int


@dataclass
class BalanceCheck(_Serializable):
    """
    Authoritative balance recomputation for one patient.

    balance is the ledger value; cached_balance is Patient.balance.
    """

    patient_id: uuid.UUID
    balance: Decimal
    cached_balance: Decimal
    drift_detected: bool
