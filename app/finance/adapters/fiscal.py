"""
Fiscal receipt issuer resolution and the default (logging-only) issuer.

The issuer class is configured with FISCAL_RECEIPT_ISSUER (dotted path) and
resolved lazily. Tests inject a fake with set_fiscal_issuer() and reset it
with set_fiscal_issuer(None).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.module_loading import import_string

from finance.protocols import IssuedReceipt

if TYPE_CHECKING:
    from finance.models import Payment
    from finance.protocols import FiscalReceiptIssuer

logger = logging.getLogger(__name__)

DEFAULT_FISCAL_ISSUER = "finance.adapters.fiscal.LoggingFiscalIssuer"

_fiscal_issuer: FiscalReceiptIssuer | None = None


class LoggingFiscalIssuer:
    """
    Issuer used when no fiscal provider is configured.

    Logs the payment and returns a receipt number derived from the payment
    id, so the receipt lifecycle can be exercised without a provider.
    """

    def issue(self, payment: Payment) -> IssuedReceipt:
        logger.info(
            "Fiscal receipt requested (no provider configured)",
            extra={
                "payment_id": str(payment.id),
                "clinic_id": str(payment.clinic_id),
                "amount": str(payment.amount),
                "method": payment.method,
            },
        )
        return IssuedReceipt(
            receipt_number=f"LOCAL-{payment.id.hex[:12].upper()}",
            check_url=payment.fiscal_check_url,
        )


def get_fiscal_issuer() -> FiscalReceiptIssuer:
    """Return the injected issuer, or instantiate the configured one."""
    if _fiscal_issuer is not None:
        return _fiscal_issuer
    path = getattr(settings, "FISCAL_RECEIPT_ISSUER", DEFAULT_FISCAL_ISSUER)
    return import_string(path)()


def set_fiscal_issuer(issuer: FiscalReceiptIssuer | None) -> None:
    """Override the issuer (for testing). Pass None to restore the setting."""
    global _fiscal_issuer
    _fiscal_issuer = issuer
