"""Map storage-engine errors onto the application error taxonomy"""

from typing import Iterable, Optional

from ..storage import CastError, DocumentValidationError, DuplicateKeyError, StorageError, Violation
from ..utils.exceptions import AppError, ConflictError, ValidationError


def invalid_input(violations: Iterable[Violation]) -> ValidationError:
    violations = list(violations)
    message = "Invalid input data. " + ". ".join(v.message for v in violations)
    return ValidationError(message, {v.field: v.message for v in violations})


def translate_storage_error(exc: StorageError) -> Optional[AppError]:
    """Return the operational error for ``exc``, or None if it has no mapping."""
    if isinstance(exc, CastError):
        return ValidationError(f"Invalid {exc.path}: {exc.value}.", {exc.path: "invalid id"})
    if isinstance(exc, DuplicateKeyError):
        shown = ", ".join(f'"{v}"' for v in exc.key_value.values())
        return ConflictError(f"Duplicate field value: {shown}. Please use another value!", exc.key_value)
    if isinstance(exc, DocumentValidationError):
        return invalid_input(exc.violations)
    return None
