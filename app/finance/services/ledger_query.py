"""
Running-balance view of a patient's ledger.

balance_after is folded oldest to newest over the patient's whole history
before the page is cut, so the value shown for an entry does not depend on
limit or offset.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult, service_operation
from finance.models import Charge, FiscalReceipt, Payment
from finance.services.ledger_store import LedgerStore
from finance.types import ZERO, LedgerEntry, LedgerPage

if TYPE_CHECKING:
    import uuid

DEFAULT_PAGE_SIZE = 50

ENTRY_CREDIT = "credit"
ENTRY_DEBIT = "debit"


def _receipt(payment: Payment) -> FiscalReceipt | None:
    try:
        return payment.fiscal_receipt
    except FiscalReceipt.DoesNotExist:
        return None


def _charge_entry(charge: Charge) -> LedgerEntry:
    description = charge.service_name
    if charge.tooth_number:
        description = f"{description} (tooth {charge.tooth_number})"
    return LedgerEntry(
        id=charge.id,
        type=ENTRY_DEBIT,
        event_type="charge",
        description=description,
        amount=-charge.total,
        date=charge.created_at,
        extras={
            "tooth_number": charge.tooth_number,
            "quantity": charge.quantity,
            "unit_price": charge.unit_price,
            "discount_percent": charge.discount_percent,
        },
    )


def _payment_entry(payment: Payment) -> LedgerEntry:
    receipt = _receipt(payment)
    label = "Refund" if payment.is_refund else "Payment"
    extras = {
        "method": payment.method,
        "notes": payment.notes,
        "is_fiscalized": bool(receipt and receipt.is_issued),
        "fiscal_url": (receipt.check_url if receipt else "") or payment.fiscal_check_url,
    }
    if payment.is_refund:
        extras["refund_of"] = payment.refund_of_id
    return LedgerEntry(
        id=payment.id,
        type=ENTRY_DEBIT if payment.is_refund else ENTRY_CREDIT,
        event_type="refund" if payment.is_refund else "payment",
        description=f"{label} ({payment.get_method_display()})",
        amount=payment.amount,
        date=payment.created_at,
        extras=extras,
    )


class LedgerQuery(BaseService):
    """Read-only, paginated ledger with running balances."""

    @classmethod
    @service_operation
    def get_ledger(
        cls,
        patient_id: uuid.UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        clinic_id: uuid.UUID | None = None,
    ) -> ServiceResult[LedgerPage]:
        """
        Ledger entries newest first, each with the balance after it.

        Args:
            patient_id: Patient whose ledger to show
            limit: Page size, 1..FINANCE_LEDGER_MAX_PAGE_SIZE
            offset: Entries to skip from the newest, >= 0

        Returns:
            ServiceResult with LedgerPage; total counts all entries and
            current_balance is the balance after the newest entry.
        """
        limit, offset = cls._validate_page(limit, offset)
        patient = LedgerStore.get_patient(patient_id, clinic_id=clinic_id)

        entries = []
        balance = ZERO
        for row in LedgerStore.list_entries(patient.id):
            entry = _charge_entry(row) if isinstance(row, Charge) else _payment_entry(row)
            balance += entry.amount
            entry.balance_after = balance
            entries.append(entry)

        entries.reverse()
        return ServiceResult.success(
            LedgerPage(
                entries=entries[offset : offset + limit],
                total=len(entries),
                current_balance=balance,
                limit=limit,
                offset=offset,
            )
        )

    @staticmethod
    def _validate_page(limit, offset) -> tuple[int, int]:
        max_limit = getattr(settings, "FINANCE_LEDGER_MAX_PAGE_SIZE", 500)
        try:
            limit = int(limit)
            offset = int(offset)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "limit and offset must be integers",
                error_code="INVALID_PAGINATION",
                details={"limit": str(limit), "offset": str(offset)},
            ) from exc
        if not 1 <= limit <= max_limit:
            raise ValidationError(
                f"limit must be between 1 and {max_limit}",
                error_code="INVALID_PAGINATION",
                details={"limit": limit},
            )
        if offset < 0:
            raise ValidationError(
                "offset cannot be negative",
                error_code="INVALID_PAGINATION",
                details={"offset": offset},
            )
        return limit, offset
