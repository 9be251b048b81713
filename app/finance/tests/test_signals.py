"""
Tests for the balance_changed signal helper.
"""

from decimal import Decimal
from unittest.mock import patch

from finance.signals import balance_changed, send_balance_changed_on_commit


class TestSendBalanceChangedOnCommit:
    def test_sent_only_on_commit(self, db, django_capture_on_commit_callbacks):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs["reason"])

        balance_changed.connect(listener)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                send_balance_changed_on_commit(
                    sender=object, clinic_id=1, patient_id=2, new_balance=Decimal("0"), reason="payment"
                )
                assert received == []
        finally:
            balance_changed.disconnect(listener)

        assert received == ["payment"]

    def test_failing_receiver_is_logged_not_raised(self, db, django_capture_on_commit_callbacks):
        """Should keep going when a receiver raises."""

        def broken(sender, **kwargs):
            raise RuntimeError("listener bug")

        balance_changed.connect(broken)
        try:
            with patch("finance.signals.logger") as logger:
                with django_capture_on_commit_callbacks(execute=True):
                    send_balance_changed_on_commit(
                        sender=object,
                        clinic_id=1,
                        patient_id=2,
                        new_balance=Decimal("0"),
                        reason="refund",
                    )
        finally:
            balance_changed.disconnect(broken)

        logger.error.assert_called_once()
        assert logger.error.call_args.args[0] == "balance_changed receiver failed"
