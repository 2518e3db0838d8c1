"""Review and booking data models"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field, field_validator

from ..storage import Violation
from .base import DocumentModel, Number, schema_violations, utcnow


class Review(DocumentModel):
    """A user's review of a tour; one per (tour, user)"""
    review: str
    rating: Optional[Number] = Field(default=None, ge=1, le=5)
    created_at: datetime = Field(default_factory=utcnow)
    tour: str
    user: str

    required_messages: ClassVar[Dict[str, str]] = {
        "review": "Review cannot be empty!",
        "tour": "Review must belong to a tour.",
        "user": "Review must be written by a user.",
    }

    @field_validator("review")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Review cannot be empty!")
        return value


class Booking(DocumentModel):
    """A paid booking of a tour"""
    tour: str
    user: str
    price: Number
    created_at: datetime = Field(default_factory=utcnow)
    paid: bool = True

    required_messages: ClassVar[Dict[str, str]] = {
        "tour": "Booking must belong to a tour!",
        "user": "Booking must belong to a user!",
        "price": "Booking must have a price.",
    }


def validate_review(doc: Dict[str, Any]) -> List[Violation]:
    return schema_violations(Review, doc)


def validate_booking(doc: Dict[str, Any]) -> List[Violation]:
    return schema_violations(Booking, doc)
