"""Role-based access control"""

from typing import Any, Dict, Iterable

from ..utils.exceptions import AuthError

# Route allow-lists
TOUR_MANAGERS = ("admin", "lead-guide")
TOUR_PLANNERS = ("admin", "lead-guide", "guide")
REVIEW_AUTHORS = ("user",)
REVIEW_EDITORS = ("user", "admin")
BOOKING_MANAGERS = ("admin", "lead-guide")
USER_ADMINS = ("admin",)


def ensure_role(principal: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Pass the principal through if its role is allowed; AuthError 403 otherwise."""
    if principal.get("role") not in tuple(allowed):
        raise AuthError("forbidden", status_code=403)
    return principal
