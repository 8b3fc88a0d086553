"""
Shared building blocks used by every feature module.
"""

from app.modules.shared.errors import (
    BadRequestError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    integrity_error_field,
    to_http_exception,
)
from app.modules.shared.models import BaseModel

__all__ = [
    "BaseModel",
    "ServiceError",
    "BadRequestError",
    "UnauthorizedError",
    "NotFoundError",
    "integrity_error_field",
    "to_http_exception",
]
