from .definitions import BOOKINGS, REVIEWS, TOURS, USERS, build_handlers
from .factory import ListResult, Populate, ResourceDefinition, ResourceHandlers

__all__ = [
    "BOOKINGS",
    "REVIEWS",
    "TOURS",
    "USERS",
    "build_handlers",
    "ListResult",
    "Populate",
    "ResourceDefinition",
    "ResourceHandlers",
]
