"""Resource definitions for tours, reviews, bookings and users"""

from typing import Any, Dict, Optional

from ..models import (
    PRIVATE_FIELDS,
    Booking,
    Review,
    Tour,
    User,
    duration_weeks,
    public_user,
    slugify,
    validate_booking,
    validate_review,
    validate_tour,
    validate_user,
)
from ..reports.ratings import recompute_for_review
from ..storage import DocumentStore
from .factory import IndexSpec, Populate, ResourceDefinition, ResourceHandlers

ACTIVE_USERS = {"active": {"$ne": False}}

# Credential fields only the auth service may change
CREDENTIAL_FIELDS = ("password", "passwordChangedAt", "passwordResetToken", "passwordResetExpires", "active")

GUIDES = Populate(
    field="guides",
    collection="users",
    select=("-__v", "-passwordChangedAt"),
    filter=ACTIVE_USERS,
    transform=public_user,
)
REVIEW_AUTHOR = Populate(field="user", collection="users", select=("name", "photo"))


def _set_slug(doc: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(doc.get("name"), str):
        doc = {**doc, "slug": slugify(doc["name"])}
    return doc


def _keep_credentials(doc: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if existing is None:
        return doc
    kept = {k: v for k, v in doc.items() if k not in CREDENTIAL_FIELDS}
    kept.update({k: existing[k] for k in CREDENTIAL_FIELDS if k in existing})
    return kept


TOURS = ResourceDefinition(
    name="tour",
    collection="tours",
    model=Tour,
    validate=validate_tour,
    default_filter={"secretTour": {"$ne": True}},
    indexes=(
        IndexSpec([("price", 1), ("ratingsAverage", -1)]),
        IndexSpec("slug"),
        IndexSpec("name", unique=True),
        IndexSpec("startLocation", kind="2dsphere"),
    ),
    populate=(GUIDES,),
    populate_detail=(
        Populate(
            field="reviews",
            collection="reviews",
            select=("-__v",),
            foreign_field="tour",
            nested=(REVIEW_AUTHOR,),
        ),
    ),
    before_write=(_set_slug,),
    virtuals={"durationWeeks": duration_weeks},
    repeatable_params=("duration", "ratingsQuantity", "ratingsAverage", "maxGroupSize", "difficulty", "price"),
)

REVIEWS = ResourceDefinition(
    name="review",
    collection="reviews",
    model=Review,
    validate=validate_review,
    indexes=(IndexSpec([("tour", 1), ("user", 1)], unique=True),),
    populate=(REVIEW_AUTHOR,),
    after_write=(recompute_for_review,),
)

BOOKINGS = ResourceDefinition(
    name="booking",
    collection="bookings",
    model=Booking,
    validate=validate_booking,
    populate=(
        Populate(field="user", collection="users", select=("-__v",), transform=public_user),
        Populate(field="tour", collection="tours", select=("name",)),
    ),
)

USERS = ResourceDefinition(
    name="user",
    collection="users",
    model=User,
    validate=validate_user,
    default_filter=ACTIVE_USERS,
    hidden_fields=PRIVATE_FIELDS,
    indexes=(IndexSpec("email", unique=True),),
    before_write=(_keep_credentials,),
    soft_delete_field="active",
)


def build_handlers(store: DocumentStore) -> Dict[str, ResourceHandlers]:
    """One handler set per resource, keyed by collection name."""
    return {
        definition.collection: ResourceHandlers(store, definition)
        for definition in (TOURS, REVIEWS, BOOKINGS, USERS)
    }
