"""Shared plumbing for document schemas"""

import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Type, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..storage import Violation

Number = Union[int, float]

# Keys the store manages itself; never part of a schema
STORE_FIELDS = ("_id", "__v")


class DocumentModel(BaseModel):
    """Schema base: snake_case attributes, camelCase document keys"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # field alias -> message used when the field is missing
    required_messages: ClassVar[Dict[str, str]] = {}


def utcnow() -> datetime:
    """Current UTC time as a naive datetime; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _strip_store_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if k not in STORE_FIELDS}


def schema_violations(model: Type[DocumentModel], doc: Dict[str, Any]) -> List[Violation]:
    """Run the schema and return its errors as field-level violations."""
    try:
        model.model_validate(_strip_store_fields(doc))
    except PydanticValidationError as e:
        violations = []
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "document"
            if err["type"] == "missing":
                message = model.required_messages.get(field, f"Path `{field}` is required.")
            elif err["type"] == "value_error" and "error" in err.get("ctx", {}):
                message = str(err["ctx"]["error"])
            else:
                message = err["msg"]
            violations.append(Violation(field, message))
        return violations
    return []


def normalize(model: Type[DocumentModel], doc: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a valid document to its stored shape (defaults applied, unknown keys dropped)."""
    stored = model.model_validate(_strip_store_fields(doc)).model_dump(by_alias=True, exclude_none=True)
    for key in STORE_FIELDS:
        if key in doc:
            stored[key] = doc[key]
    return stored


def slugify(text: str) -> str:
    """"The Forest Hiker" -> "the-forest-hiker"."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
