from .document_store import Collection, DocumentStore, FetchRequest, Query, is_object_id, new_object_id
from .errors import CastError, DocumentValidationError, DuplicateKeyError, StorageError, Violation

__all__ = [
    "Collection",
    "DocumentStore",
    "FetchRequest",
    "Query",
    "is_object_id",
    "new_object_id",
    "CastError",
    "DocumentValidationError",
    "DuplicateKeyError",
    "StorageError",
    "Violation",
]
