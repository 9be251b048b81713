"""
Finance models.

Append-only ledger rows:
    - Charge: performed work (debit)
    - Payment: payment or refund (signed credit)
    - Allocation: part of a payment applied to a charge

Mutable tracking rows:
    - FiscalReceipt: post-commit fiscalization status of a payment
    - BalanceDriftRecord: detected cache/ledger mismatch (append-only)
"""

from finance.models.allocation import Allocation
from finance.models.charge import Charge
from finance.models.drift import BalanceDriftRecord, DriftSource
from finance.models.fiscal_receipt import FiscalReceipt, FiscalReceiptState
from finance.models.payment import Payment, PaymentMethod

__all__ = [
    "Allocation",
    "BalanceDriftRecord",
    "Charge",
    "DriftSource",
    "FiscalReceipt",
    "FiscalReceiptState",
    "Payment",
    "PaymentMethod",
]
