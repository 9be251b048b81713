"""
Tests for the base service layer.

Covers ServiceResult construction and rendering, BaseService exception
conversion and the service_operation decorator.
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from django.db import IntegrityError, OperationalError

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult, service_operation


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert bool(result) is True
        assert result.to_response() == {"success": True, "data": {"id": 1}}

    def test_failure_defaults_to_validation(self):
        result = ServiceResult.failure("Bad input", "BAD")

        assert bool(result) is False
        assert result.error_kind == "validation"
        assert result.http_status == 400

    def test_from_error_carries_kind_and_status(self):
        exc = ConflictError("Too much", error_code="OVER_ALLOCATION", details={"entity_type": "charge"})

        result = ServiceResult.from_error(exc)

        assert result.error_code == "OVER_ALLOCATION"
        assert result.error_kind == "conflict"
        assert result.http_status == 409
        assert result.details == {"entity_type": "charge"}

    def test_from_exception_for_unknown_error(self):
        result = ServiceResult.from_exception(KeyError("x"))

        assert result.error_code == "KEYERROR"
        assert result.http_status == 500

    def test_to_response_omits_empty_fields(self):
        response = ServiceResult.failure("Nope").to_response()

        assert response == {"success": False, "error": "Nope", "error_kind": "validation"}

    def test_map_only_on_success(self):
        assert ServiceResult.success(2).map(lambda v: v * 10).data == 20
        failed = ServiceResult.failure("x")
        assert failed.map(lambda v: v * 10) is failed


class TestHandleException:
    def test_domain_error(self):
        result = BaseService.handle_exception(NotFoundError("gone", error_code="PATIENT_NOT_FOUND"))

        assert result.error_code == "PATIENT_NOT_FOUND"
        assert result.http_status == 404

    def test_integrity_error_becomes_conflict(self):
        result = BaseService.handle_exception(IntegrityError("unique"), context="record_payment")

        assert result.error_code == "INTEGRITY_CONFLICT"
        assert result.error_kind == "conflict"
        assert result.details == {"operation": "record_payment"}

    def test_operational_error_is_transient(self):
        result = BaseService.handle_exception(OperationalError("timeout"))

        assert result.error_kind == "transient"
        assert result.http_status == 503

    def test_other_errors_propagate(self):
        with pytest.raises(RuntimeError):
            BaseService.handle_exception(RuntimeError("bug"))


class DummyService(BaseService):
    @classmethod
    @service_operation
    def run(cls, exc=None):
        if exc is not None:
            raise exc
        return ServiceResult.success("done")


class TestServiceOperation:
    def test_passes_through_result(self):
        assert DummyService.run().data == "done"

    def test_domain_error_logged_at_warning(self):
        with patch.object(DummyService, "get_logger") as get_logger:
            result = DummyService.run(ValidationError("Amount must be positive"))

        assert result.error_code == "VALIDATION_ERROR"
        assert get_logger.return_value.log.call_args.args[0] == logging.WARNING

    def test_database_error_converted(self):
        result = DummyService.run(OperationalError("connection lost"))

        assert result.error_kind == "transient"

    def test_programming_errors_propagate(self):
        """Should not hide bugs behind a failed result."""
        with pytest.raises(ZeroDivisionError):
            DummyService.run(ZeroDivisionError())


class TestValidateRequired:
    def test_reports_missing_fields(self):
        result = BaseService.validate_required(patient_id=None, method="  ", amount=5)

        assert result.error_code == "VALIDATION_ERROR"
        assert set(result.errors) == {"patient_id", "method"}

    def test_all_present(self):
        assert BaseService.validate_required(patient_id=1) is None

    def test_failure_is_falsy(self):
        """Callers must compare with None: the failure result itself is falsy."""
        result = BaseService.validate_required(clinic_id=None)

        assert result is not None
        assert not result
