"""
Finance services.

Writers (each one transaction, patient row locked):
    - PaymentProcessor: payments and refunds
    - TreatmentCompletionService: charges from plan items and performed services
    - AllocationEngine: payment-to-charge allocations

Readers:
    - BalanceAggregator: summary, authoritative balance, drift detection
    - LedgerQuery: paginated running-balance ledger
    - AllocationEngine.get_unpaid_works / get_work_payment_status

LedgerStore is the storage layer under all of them.
"""

from finance.services.allocation_engine import AllocationEngine
from finance.services.balance_aggregator import BalanceAggregator
from finance.services.ledger_query import LedgerQuery
from finance.services.ledger_store import LedgerStore
from finance.services.payment_processor import PaymentProcessor
from finance.services.treatment_completion import TreatmentCompletionService

__all__ = [
    "AllocationEngine",
    "BalanceAggregator",
    "LedgerQuery",
    "LedgerStore",
    "PaymentProcessor",
    "TreatmentCompletionService",
]
