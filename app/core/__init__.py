"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps (clinics,
finance). No business logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - AppendOnlyMixin: Insert-only rows (save refuses updates, delete raises)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling
    - service_operation: Converts raised domain errors into ServiceResult

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and error kind
    - ValidationError, NotFoundError, AuthorizationError, ConflictError,
      TransientStorageError, ExternalServiceError

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult, service_operation

# Exceptions (no Django dependencies)
from .exceptions import (
    AuthorizationError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    TransientStorageError,
    ValidationError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    "service_operation",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "ConflictError",
    "TransientStorageError",
    "ExternalServiceError",
]
