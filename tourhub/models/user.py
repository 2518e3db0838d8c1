"""User (principal) data models"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_core import PydanticCustomError
from pydantic.networks import validate_email

from ..storage import Violation
from .base import DocumentModel, schema_violations

ROLES = ("user", "guide", "lead-guide", "admin")
PASSWORD_MIN_LENGTH = 8

# Never leave the server
PRIVATE_FIELDS = ("password", "passwordResetToken", "passwordResetExpires", "active")


class User(DocumentModel):
    """Principal record. ``password`` always holds a bcrypt hash once stored."""
    name: str
    email: str
    role: str = "user"
    photo: str = "default.jpg"
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    password_changed_at: Optional[datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime] = None
    active: bool = True

    required_messages: ClassVar[Dict[str, str]] = {
        "name": "Please tell us your name!",
        "email": "Please provide your email",
        "password": "Please provide a password",
    }

    @field_validator("name", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        value = value.strip().lower()
        try:
            validate_email(value)
        except PydanticCustomError:
            raise ValueError("Please provide a valid email")
        return value

    @field_validator("role")
    @classmethod
    def _role(cls, value: str) -> str:
        if value not in ROLES:
            raise ValueError(f"Role is either: {', '.join(ROLES)}")
        return value


def validate_user(doc: Dict[str, Any]) -> List[Violation]:
    return schema_violations(User, doc)


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Strip credential and bookkeeping fields before a user leaves the server."""
    return {k: v for k, v in doc.items() if k not in PRIVATE_FIELDS}
