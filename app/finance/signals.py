"""
Django signals for the finance app.

balance_changed is the only way other parts of the system (notification
delivery, UI refresh hooks) learn that a patient's balance moved. It is
sent after the writing transaction commits, never from inside it.

Signal arguments:
    sender: The service class that made the change
    clinic_id: Patient's clinic
    patient_id: Patient whose balance changed
    new_balance: Balance committed by the transaction
    reason: "payment", "refund", "treatment_completed" or "services_recorded"

Usage:
    from django.dispatch import receiver
    from finance.signals import balance_changed

    @receiver(balance_changed)
    def push_balance(sender, patient_id, new_balance, **kwargs):
        ...
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

balance_changed = Signal()


def send_balance_changed_on_commit(sender, clinic_id, patient_id, new_balance, reason: str) -> None:
    """
    Schedule balance_changed for after the current transaction commits.

    Receiver errors are logged and swallowed so a failing listener can
    never affect a committed financial write.
    """

    def _send():
        responses = balance_changed.send_robust(
            sender=sender,
            clinic_id=clinic_id,
            patient_id=patient_id,
            new_balance=new_balance,
            reason=reason,
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    "balance_changed receiver failed",
                    exc_info=response,
                    extra={
                        "receiver": getattr(receiver, "__qualname__", repr(receiver)),
                        "patient_id": str(patient_id),
                    },
                )

    transaction.on_commit(_send)
