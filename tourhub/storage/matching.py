"""
Filter evaluation for the document store.

Supports the subset of the MongoDB query language the application uses:

    {"price": 500}                              equality
    {"price": {"$gte": 100, "$lt": 900}}        comparison
    {"difficulty": {"$in": ["easy", "medium"]}}
    {"secretTour": {"$ne": True}}
    {"$and": [...]}, {"$or": [...]}
    {"startLocation": {"$geoWithin": {"$centerSphere": [[lng, lat], radians]}}}

Query-string operands arrive as text, so an operand is cast to the type of
the stored value before comparing ("500" matches 500, "true" matches True).
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

EARTH_RADIUS_METERS = 6378100.0

_MISSING = object()


def get_path(doc: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Resolve a dotted path ("startLocation.coordinates") inside a document."""
    current: Any = doc
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current


def _parse_datetime(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def cast_operand(operand: Any, like: Any) -> Any:
    """Cast a (usually string) operand to the type of a stored value."""
    if isinstance(like, bool):
        if isinstance(operand, str) and operand.lower() in ("true", "false"):
            return operand.lower() == "true"
        return operand
    if isinstance(like, (int, float)) and isinstance(operand, str):
        try:
            number = float(operand)
        except ValueError:
            return operand
        return int(number) if number.is_integer() else number
    if isinstance(like, datetime):
        if isinstance(operand, str):
            parsed = _parse_datetime(operand)
            return _naive_utc(parsed) if parsed else operand
        if isinstance(operand, datetime):
            return _naive_utc(operand)
    return operand


def _comparable(value: Any, operand: Any) -> Tuple[Any, Any]:
    operand = cast_operand(operand, value)
    if isinstance(value, datetime):
        value = _naive_utc(value)
    return value, operand


def _equals(value: Any, operand: Any) -> bool:
    if isinstance(value, list) and not isinstance(operand, list):
        return any(_equals(item, operand) for item in value)
    value, operand = _comparable(value, operand)
    return value == operand


def _compare(value: Any, operand: Any, op: str) -> bool:
    if value is None or value is _MISSING:
        return False
    if isinstance(value, list):
        return any(_compare(item, operand, op) for item in value)
    value, operand = _comparable(value, operand)
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        return False


def haversine_radians(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Central angle between two points on a sphere, in radians."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def point_coordinates(value: Any) -> Optional[Tuple[float, float]]:
    """Return (lng, lat) for a GeoJSON point or a bare [lng, lat] pair."""
    coords = value.get("coordinates") if isinstance(value, dict) else value
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    try:
        return float(coords[0]), float(coords[1])
    except (TypeError, ValueError):
        return None


def _geo_within(value: Any, spec: Dict[str, Any]) -> bool:
    if "$centerSphere" not in spec:
        raise ValueError(f"Unsupported $geoWithin shape: {list(spec)}")
    center, radius = spec["$centerSphere"]
    point = point_coordinates(value)
    if point is None:
        return False
    center_lng, center_lat = float(center[0]), float(center[1])
    return haversine_radians(center_lng, center_lat, point[0], point[1]) <= float(radius)


def _match_operators(value: Any, spec: Dict[str, Any]) -> bool:
    for op, operand in spec.items():
        if op == "$eq":
            ok = value is not _MISSING and _equals(value, operand)
        elif op == "$ne":
            ok = value is _MISSING or not _equals(value, operand)
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            ok = _compare(value, operand, op)
        elif op == "$in":
            ok = value is not _MISSING and any(_equals(value, item) for item in operand)
        elif op == "$nin":
            ok = value is _MISSING or not any(_equals(value, item) for item in operand)
        elif op == "$exists":
            ok = (value is not _MISSING) == bool(cast_operand(operand, True))
        elif op == "$geoWithin":
            ok = value is not _MISSING and _geo_within(value, operand)
        else:
            raise ValueError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True


def _is_operator_spec(spec: Any) -> bool:
    return isinstance(spec, dict) and bool(spec) and all(str(k).startswith("$") for k in spec)


def matches(doc: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    """Return True when ``doc`` satisfies every constraint in ``query``."""
    if not query:
        return True
    for key, spec in query.items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in spec):
                return False
            continue
        if key == "$or":
            if not any(matches(doc, sub) for sub in spec):
                return False
            continue
        value = get_path(doc, key, _MISSING)
        if _is_operator_spec(spec):
            if not _match_operators(value, spec):
                return False
        elif value is _MISSING:
            if spec is not None:
                return False
        elif not _equals(value, spec):
            return False
    return True


def merge_filters(*filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine filters; overlapping keys are joined with $and instead of overwritten."""
    present: List[Dict[str, Any]] = [f for f in filters if f]
    if not present:
        return {}
    merged: Dict[str, Any] = {}
    for f in present:
        if set(f) & set(merged):
            return {"$and": present}
        merged.update(f)
    return merged


def sort_key(value: Any) -> Tuple[int, Any]:
    """Total order across types: missing/None < numbers < strings < dates < other."""
    if value is None or value is _MISSING:
        return (0, 0)
    if isinstance(value, bool):
        return (4, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, datetime):
        return (3, _naive_utc(value).timestamp())
    return (5, str(value))


def sort_documents(docs: Iterable[Dict[str, Any]], spec: List[Tuple[str, int]]) -> List[Dict[str, Any]]:
    """Stable multi-key sort; ``spec`` is [(field, 1 | -1), ...] in priority order."""
    ordered = list(docs)
    for field, direction in reversed(spec):
        ordered.sort(key=lambda d: sort_key(get_path(d, field)), reverse=direction < 0)
    return ordered
