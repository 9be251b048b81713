"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- A coarse error kind that tells callers whether a retry makes sense

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input, rejected before any write
    ├── NotFoundError - Resource not found
    ├── AuthorizationError - Cross-tenant access, missing clinic association
    ├── ConflictError - State conflicts (already completed, over-allocation)
    ├── TransientStorageError - Database connectivity or timeout
    └── ExternalServiceError - Third-party service failures

Error kinds:
    validation      - fix the input, do not retry as-is
    not_found       - referenced entity does not exist
    authorization   - fatal, never retried
    conflict        - refresh state before retrying
    transient       - safe to retry (same idempotency key)
    external        - collaborator failure, handled asynchronously

Usage:
    from core.exceptions import ValidationError, ConflictError

    # Raise with message only
    raise ValidationError("Amount must be positive")

    # Raise with error code and details
    raise ConflictError(
        "Plan item already completed",
        error_code="ITEMS_ALREADY_COMPLETED",
        details={"item_ids": [str(item_id)]},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (entity ids, amounts, etc.)

    Class Attributes:
        default_error_code: Code used when none is passed
        error_kind: Coarse category used for retry decisions
        http_status: Status code used by API views
    """

    default_error_code: str = "APPLICATION_ERROR"
    error_kind: str = "application"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, error_kind and details keys

        Example:
            {
                "error": "Payment amount must be positive",
                "error_code": "INVALID_AMOUNT",
                "error_kind": "validation",
                "details": {"amount": "-5.00"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
            "error_kind": self.error_kind,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Non-positive amounts
    - Missing required identifiers
    - Unknown payment methods
    - Business rule violations that do not depend on concurrent state

    Raised before any write, so nothing needs to be rolled back and
    the request should not be retried unchanged.

    Example:
        raise ValidationError(
            "Payment amount must be positive",
            error_code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    error_kind: str = "validation"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        patient = Patient.objects.filter(id=patient_id).first()
        if not patient:
            raise NotFoundError(
                f"Patient {patient_id} not found",
                error_code="PATIENT_NOT_FOUND",
                details={"patient_id": str(patient_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"
    error_kind: str = "not_found"
    http_status: int = 404


class AuthorizationError(BaseApplicationError):
    """
    Raised when the caller may not act on the requested data.

    Use for:
    - Cross-tenant access (patient belongs to another clinic)
    - Staff member without a clinic association
    - Doctor or processor identity from a different clinic

    These are fatal and must not be retried.

    Example:
        if patient.clinic_id != clinic_id:
            raise AuthorizationError(
                "Patient does not belong to this clinic",
                error_code="CLINIC_MISMATCH",
                details={"patient_id": str(patient.id)},
            )
    """

    default_error_code: str = "AUTHORIZATION_ERROR"
    error_kind: str = "authorization"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Plan items already completed by a concurrent request
    - Allocations that would exceed a charge or payment total
    - Refunds exceeding the refundable remainder

    The client should refresh its state before retrying.

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    error_kind: str = "conflict"
    http_status: int = 409


class TransientStorageError(BaseApplicationError):
    """
    Raised when the database is unreachable or a statement times out.

    The enclosing transaction has been rolled back, so there is no
    partial effect. Mutating operations are either idempotent by key
    (payments) or re-checkable against current state (treatment batches,
    allocations), which makes a retry safe.

    Example:
        try:
            with transaction.atomic():
                ...
        except OperationalError as e:
            raise TransientStorageError(
                "Storage temporarily unavailable",
                details={"original_error": str(e)},
            ) from e
    """

    default_error_code: str = "TRANSIENT_STORAGE_ERROR"
    error_kind: str = "transient"
    http_status: int = 503


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Fiscal receipt provider failures
    - Network timeouts talking to collaborators

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    error_kind: str = "external"
    http_status: int = 502
