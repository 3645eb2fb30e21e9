"""
Core Application - Infrastructure & Base Classes

Generic, reusable base classes shared by the domain apps. No business
logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (duplicates, locks, etc.)

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin
    from core.services import BaseService, ServiceResult
    from core.exceptions import ConflictError, NotFoundError

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "NotFoundError",
    "ConflictError",
]
