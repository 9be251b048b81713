"""
Protocol definitions for finance collaborators.

The ledger never talks to a fiscal provider directly. Implementations of
FiscalReceiptIssuer are configured by dotted path in the
FISCAL_RECEIPT_ISSUER setting and invoked from a Celery task after the
payment has committed.

Usage:
    from finance.protocols import FiscalReceiptIssuer

    class SoliqIssuer:
        def issue(self, payment) -> IssuedReceipt:
            ...

    # SoliqIssuer is a valid FiscalReceiptIssuer without inheriting from it
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from finance.models import Payment


@dataclass
class IssuedReceipt:
    """What a fiscal provider returns for a successfully issued receipt."""

    receipt_number: str
    check_url: str = ""


@runtime_checkable
class FiscalReceiptIssuer(Protocol):
    """
    Protocol for fiscal receipt providers.

    issue() is called once per attempt. It returns the issued receipt or
    raises ExternalServiceError; the calling task records the failure and
    lets Celery retry.
    """

    def issue(self, payment: Payment) -> IssuedReceipt:
        """
        Issue a fiscal receipt for a committed payment or refund.

        Args:
            payment: The committed Payment row (negative amount for refunds)

        Returns:
            IssuedReceipt with the provider's receipt number and check URL

        Raises:
            ExternalServiceError: Provider unreachable or rejected the receipt
        """
        ...
