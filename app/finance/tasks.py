"""
Celery tasks for the finance app.

This module provides async tasks for:
- Issuing the fiscal receipt of a committed payment or refund
- Periodic detection of cached-balance drift

Usage:
    from finance.tasks import fiscalize_payment

    # Queued by PaymentProcessor through transaction.on_commit
    fiscalize_payment.delay(str(payment.id))

    # Run by celery-beat (schedule created by a data migration)
    from finance.tasks import detect_balance_drift
    detect_balance_drift.delay()
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction

from core.exceptions import ExternalServiceError
from finance.models import FiscalReceipt, FiscalReceiptState

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_FISCAL_RETRIES = getattr(settings, "FISCAL_MAX_ATTEMPTS", 5)


# =============================================================================
# Fiscalization
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(ExternalServiceError,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": MAX_FISCAL_RETRIES},
    acks_late=True,
)
def fiscalize_payment(self, payment_id: str) -> dict:
    """
    Issue the fiscal receipt for a committed payment.

    This task:
    1. Loads the payment's FiscalReceipt
    2. Skips receipts that are already issued (idempotency)
    3. Moves a failed receipt back to pending
    4. Calls the configured FiscalReceiptIssuer
    5. Marks the receipt issued, or failed once retries are exhausted

    Args:
        payment_id: UUID of the Payment (as string)

    Returns:
        Dict with the resulting receipt status

    Raises:
        ExternalServiceError: Re-raised to trigger Celery retry
    """
    # Import here to avoid circular imports
    from finance.adapters.fiscal import get_fiscal_issuer

    if isinstance(payment_id, str):
        payment_id = UUID(payment_id)

    with transaction.atomic():
        receipt = (
            FiscalReceipt.objects.select_for_update()
            .select_related("payment")
            .filter(payment_id=payment_id)
            .first()
        )
        if receipt is None:
            logger.error(
                "FiscalReceipt not found for payment",
                extra={"payment_id": str(payment_id)},
            )
            return {"status": "not_found", "payment_id": str(payment_id)}

        if receipt.state == FiscalReceiptState.ISSUED:
            logger.info(
                "Fiscal receipt already issued, skipping",
                extra={"payment_id": str(payment_id), "receipt_number": receipt.receipt_number},
            )
            return {"status": "already_issued", "payment_id": str(payment_id)}

        if receipt.state == FiscalReceiptState.FAILED:
            receipt.retry()
        receipt.attempts += 1
        receipt.save()

    try:
        issued = get_fiscal_issuer().issue(receipt.payment)
    except ExternalServiceError as exc:
        final = self.request.retries >= MAX_FISCAL_RETRIES
        with transaction.atomic():
            receipt = FiscalReceipt.objects.select_for_update().get(id=receipt.id)
            if final:
                receipt.fail(str(exc))
            else:
                receipt.error_message = str(exc)
            receipt.save()

        if final:
            logger.error(
                "Fiscal receipt failed after all retries",
                extra={
                    "payment_id": str(payment_id),
                    "attempts": receipt.attempts,
                    "error": str(exc),
                },
            )
            return {"status": "failed", "payment_id": str(payment_id), "error": str(exc)}

        logger.warning(
            "Fiscal receipt attempt failed, will retry",
            extra={
                "payment_id": str(payment_id),
                "attempt": receipt.attempts,
                "error": str(exc),
            },
        )
        raise

    with transaction.atomic():
        receipt = FiscalReceipt.objects.select_for_update().get(id=receipt.id)
        receipt.issue(receipt_number=issued.receipt_number, check_url=issued.check_url)
        receipt.save()

    logger.info(
        "Fiscal receipt issued",
        extra={
            "payment_id": str(payment_id),
            "receipt_number": issued.receipt_number,
            "attempts": receipt.attempts,
        },
    )
    return {
        "status": "issued",
        "payment_id": str(payment_id),
        "receipt_number": issued.receipt_number,
    }


# =============================================================================
# Drift Detection
# =============================================================================


@shared_task
def detect_balance_drift() -> dict:
    """
    Compare every patient's cached balance with the ledger.

    Scheduled via celery-beat. Drift is recorded and logged by
    BalanceAggregator; nothing is repaired.

    Returns:
        Dict with the number of patients found drifting
    """
    from finance.services import BalanceAggregator

    result = BalanceAggregator.detect_drift()
    if not result.success:
        logger.error(
            "Balance drift check failed",
            extra={"error": result.error, "error_code": result.error_code},
        )
        return {"status": "error", "error_code": result.error_code}

    drifted = [str(check.patient_id) for check in result.data]
    if drifted:
        logger.error(
            "Balance drift detected",
            extra={"count": len(drifted), "patient_ids": drifted},
        )
    return {"status": "ok", "drifted": len(drifted)}
