from .base import DocumentModel, normalize, schema_violations, slugify, utcnow
from .review import Booking, Review, validate_booking, validate_review
from .tour import DIFFICULTIES, GeoPoint, Tour, TourLocation, duration_weeks, validate_tour
from .user import PASSWORD_MIN_LENGTH, PRIVATE_FIELDS, ROLES, User, public_user, validate_user

__all__ = [
    "DocumentModel",
    "normalize",
    "schema_violations",
    "slugify",
    "utcnow",
    "Booking",
    "Review",
    "validate_booking",
    "validate_review",
    "DIFFICULTIES",
    "GeoPoint",
    "Tour",
    "TourLocation",
    "duration_weeks",
    "validate_tour",
    "PASSWORD_MIN_LENGTH",
    "PRIVATE_FIELDS",
    "ROLES",
    "User",
    "public_user",
    "validate_user",
]
