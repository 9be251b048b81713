"""
Finance-specific exceptions.

Exception Hierarchy:
    core ConflictError
    ├── ItemsAlreadyCompletedError - Batch contains already-completed plan items
    ├── OverAllocationError - Allocation exceeds a charge or payment total
    └── RefundExceedsPaymentError - Refunds exceed the original payment
    core ValidationError
    └── InvalidAmountError - Non-positive or malformed amount

Usage:
    from finance.exceptions import OverAllocationError

    raise OverAllocationError(
        entity_type="charge",
        entity_id=charge.id,
        requested=Decimal("90000"),
        available=Decimal("70000"),
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConflictError, ValidationError

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from decimal import Decimal
    from typing import Any


class InvalidAmountError(ValidationError):
    """
    Raised when a money amount is zero, negative or not a number.

    Example:
        if amount <= 0:
            raise InvalidAmountError(
                "Payment amount must be positive",
                details={"amount": str(amount)},
            )
    """

    default_error_code: str = "INVALID_AMOUNT"


class ItemsAlreadyCompletedError(ConflictError):
    """
    Raised when a completion batch contains plan items that are already completed.

    The whole batch is rejected; nothing is written.

    Attributes:
        item_ids: Offending plan item ids
    """

    default_error_code: str = "ITEMS_ALREADY_COMPLETED"

    def __init__(
        self,
        item_ids: Iterable[uuid.UUID],
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.item_ids = sorted(str(item_id) for item_id in item_ids)
        full_details: dict[str, Any] = {"item_ids": self.item_ids}
        if details:
            full_details.update(details)
        super().__init__(
            message=f"{len(self.item_ids)} treatment item(s) already completed",
            error_code=error_code,
            details=full_details,
        )


class OverAllocationError(ConflictError):
    """
    Raised when an allocation would exceed a charge total or a payment amount.

    Attributes:
        entity_type: "charge" or "payment"
        entity_id: Id of the entity whose limit would be exceeded
        requested: Amount requested against the entity in this call
        available: Amount still unallocated on the entity
    """

    default_error_code: str = "OVER_ALLOCATION"

    def __init__(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        requested: Decimal,
        available: Decimal,
        error_code: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.requested = requested
        self.available = available
        super().__init__(
            message=(
                f"Allocation exceeds {entity_type} {entity_id}: "
                f"requested {requested}, available {available}"
            ),
            error_code=error_code,
            details={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "requested": str(requested),
                "available": str(available),
            },
        )


class RefundExceedsPaymentError(ConflictError):
    """
    Raised when a refund would bring total refunds above the original payment.

    Attributes:
        payment_id: Original payment
        requested: Refund amount requested
        available: Amount still refundable
    """

    default_error_code: str = "REFUND_EXCEEDS_PAYMENT"

    def __init__(
        self,
        payment_id: uuid.UUID,
        requested: Decimal,
        available: Decimal,
        error_code: str | None = None,
    ):
        self.payment_id = payment_id
        self.requested = requested
        self.available = available
        super().__init__(
            message=(
                f"Refund of {requested} exceeds refundable amount {available} "
                f"of payment {payment_id}"
            ),
            error_code=error_code,
            details={
                "payment_id": str(payment_id),
                "requested": str(requested),
                "available": str(available),
            },
        )
