"""Tour data models"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from ..storage import Violation
from .base import DocumentModel, Number, schema_violations, utcnow

DIFFICULTIES = ("easy", "medium", "difficult")


class GeoPoint(DocumentModel):
    """GeoJSON point; coordinates are [longitude, latitude]"""
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(default_factory=list)
    address: Optional[str] = None
    description: Optional[str] = None


class TourLocation(GeoPoint):
    day: Optional[int] = None


class Tour(DocumentModel):
    """Tour document"""
    name: str = Field(min_length=10, max_length=40)
    slug: Optional[str] = None
    duration: Number
    max_group_size: int
    difficulty: str
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = 0
    price: Number
    price_discount: Optional[Number] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: List[TourLocation] = Field(default_factory=list)
    guides: List[str] = Field(default_factory=list)

    required_messages: ClassVar[Dict[str, str]] = {
        "name": "A tour must have a name",
        "duration": "A tour must have a duration",
        "maxGroupSize": "A tour must have a group size",
        "difficulty": "A tour must have a difficulty",
        "price": "A tour must have a price",
        "summary": "A tour must have a description",
        "imageCover": "A tour must have a cover image",
    }

    @field_validator("name", "summary", "description", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("difficulty")
    @classmethod
    def _difficulty(cls, value: str) -> str:
        if value not in DIFFICULTIES:
            raise ValueError("Difficulty is either: easy, medium, difficult")
        return value

    @field_validator("ratings_average")
    @classmethod
    def _round_rating(cls, value: float) -> float:
        return round(value * 10) / 10


def validate_tour(doc: Dict[str, Any]) -> List[Violation]:
    """Field-level violations for a complete tour document."""
    violations = schema_violations(Tour, doc)
    price, discount = doc.get("price"), doc.get("priceDiscount")
    if price is not None and discount is not None:
        try:
            too_high = float(discount) >= float(price)
        except (TypeError, ValueError):
            too_high = False
        if too_high:
            violations.append(
                Violation("priceDiscount", f"Discount price ({discount}) should be below regular price")
            )
    return violations


def duration_weeks(doc: Dict[str, Any]) -> Optional[float]:
    duration = doc.get("duration")
    return duration / 7 if isinstance(duration, (int, float)) else None
