"""
Storage-engine errors.

These describe what went wrong in storage terms; the web layer translates
them into the application's error taxonomy before responding.
"""

from typing import Any, Dict, List, NamedTuple

from ..utils.exceptions import TourhubError


class StorageError(TourhubError):
    pass


class CastError(StorageError):
    """A value could not be cast to the field's type (usually a malformed id)."""

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = value
        super().__init__(f"Cast to ObjectId failed for value {value!r} at path {path!r}")


class DuplicateKeyError(StorageError):
    """A write would violate a unique index."""

    def __init__(self, index_name: str, key_value: Dict[str, Any]):
        self.index_name = index_name
        self.key_value = key_value
        super().__init__(f"E11000 duplicate key error index: {index_name} dup key: {key_value}")


class Violation(NamedTuple):
    field: str
    message: str


class DocumentValidationError(StorageError):
    """A document failed its resource's validation function."""

    def __init__(self, resource: str, violations: List[Violation]):
        self.resource = resource
        self.violations = violations
        detail = ", ".join(f"{v.field}: {v.message}" for v in violations)
        super().__init__(f"{resource} validation failed: {detail}")
