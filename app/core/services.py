"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities
- service_operation: Decorator turning raised domain errors into results

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - Exceptions: raised inside a service to abort the current transaction
    - ServiceResult: what crosses the service boundary, success or failure

Usage:
    from core.services import BaseService, ServiceResult, service_operation

    class PaymentProcessor(BaseService):
        @classmethod
        @service_operation
        def record_payment(cls, ...) -> ServiceResult[PaymentResult]:
            with cls.atomic():
                ...
                raise ValidationError("Amount must be positive")
            return ServiceResult.success(result)

    # In view
    result = PaymentProcessor.record_payment(...)
    if result.success:
        return Response(result.to_response(), status=201)
    return Response(result.to_response(), status=result.http_status)

Related:
    - core.exceptions: Domain exception hierarchy converted by from_error()
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import DatabaseError, IntegrityError, InterfaceError, OperationalError, transaction

from core.exceptions import BaseApplicationError, ConflictError, TransientStorageError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions
    crossing the service boundary. A failed result always names its
    error kind so callers can decide whether to retry.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        error_kind: Coarse category (validation, conflict, authorization, transient)
        errors: Field-level errors for validation failures
        details: Additional error context (entity ids, amounts)

    Usage:
        # Success case
        return ServiceResult.success(payment_result)

        # Failure case
        return ServiceResult.failure("Patient not found", "PATIENT_NOT_FOUND")

        # Check result
        result = PaymentProcessor.record_payment(...)
        if result.success:
            payment_id = result.data.payment_id
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    error_kind: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    http_status: int = 200

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Alias for success() - use whichever reads better in context.
        """
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        error_kind: str = "validation",
        details: dict[str, Any] | None = None,
        http_status: int = 400,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            error_kind: Coarse error category
            details: Additional error context
            http_status: Status code the API layer should use

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            error_kind=error_kind,
            errors=errors,
            details=details,
            http_status=http_status,
        )

    @classmethod
    def from_error(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """
        Create a failed result from a domain exception.

        Carries the exception's code, kind, details and HTTP status.

        Example:
            try:
                cls._allocate(...)
            except ConflictError as e:
                return ServiceResult.from_error(e)
        """
        return cls.failure(
            exc.message,
            error_code=exc.error_code,
            error_kind=exc.error_kind,
            details=exc.details or None,
            http_status=exc.http_status,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an arbitrary exception.

        Args:
            exc: The caught exception
            error_code: Optional error code (defaults to exception class name)
        """
        if isinstance(exc, BaseApplicationError):
            return cls.from_error(exc)
        return cls.failure(
            str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
            error_kind="application",
            http_status=500,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.error_kind:
            response["error_kind"] = self.error_kind
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = BalanceAggregator.get_finance_summary(patient_id)
            payload = result.map(lambda s: s.to_dict())
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Raise core.exceptions inside, return ServiceResult outside
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                patient = LedgerStore.lock_patient(patient_id)
                LedgerStore.append_payment(...)
                # If the balance refresh fails, the payment is rolled back
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Constraint violations become ConflictError results; other storage
        failures become TransientStorageError results.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details
        """
        logger = cls.get_logger()
        if isinstance(exc, BaseApplicationError):
            logger.log(
                log_level,
                "%s failed: %s",
                context or cls.__name__,
                exc,
                extra={"error_code": exc.error_code, "error_kind": exc.error_kind},
            )
            return ServiceResult.from_error(exc)

        if isinstance(exc, IntegrityError):
            # A database constraint rejected a write the service did not foresee
            conflict = ConflictError(
                "The request conflicts with a concurrent change, refresh and retry",
                error_code="INTEGRITY_CONFLICT",
                details={"operation": context or cls.__name__},
            )
            logger.exception("%s violated a database constraint", context or cls.__name__)
            return ServiceResult.from_error(conflict)

        if isinstance(exc, (OperationalError, InterfaceError, DatabaseError)):
            transient = TransientStorageError(
                "Storage temporarily unavailable, retry the request",
                details={"operation": context or cls.__name__},
            )
            logger.exception("%s hit a storage failure", context or cls.__name__)
            return ServiceResult.from_error(transient)

        raise exc

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or empty.
        Returns None if all fields are valid.

        Example:
            validation = cls.validate_required(patient_id=patient_id, method=method)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None


def service_operation(func: Callable[..., ServiceResult]) -> Callable[..., ServiceResult]:
    """
    Decorate a service classmethod so nothing raised crosses the boundary.

    Domain exceptions are logged at WARNING and returned as failed
    results; database connectivity failures become TransientStorageError
    results. Apply below @classmethod.

    Example:
        class AllocationEngine(BaseService):
            @classmethod
            @service_operation
            def allocate_payment_to_works(cls, ...):
                ...
    """

    @functools.wraps(func)
    def wrapper(cls, *args, **kwargs):
        try:
            return func(cls, *args, **kwargs)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, context=func.__name__, log_level=logging.WARNING)
        except DatabaseError as exc:
            return cls.handle_exception(exc, context=func.__name__)

    return wrapper
