"""
Query-string driven list queries.

APIFeatures turns a bag of query parameters into filter, sort, projection
and pagination on a store Query:

    features = (
        APIFeatures(tours.find(), {"price": {"gte": "500"}, "sort": "-price", "page": "2"})
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )
    rows = features.query.to_list()

Filtering is schema-agnostic: unknown keys are passed to the store as
equality constraints verbatim.
"""

import re
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..storage import Query

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
COMPARISON_OPERATORS = {"gte": "$gte", "gt": "$gt", "lte": "$lte", "lt": "$lt"}

DEFAULT_SORT = "-createdAt"
DEFAULT_EXCLUDED_FIELDS = ("-__v",)
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100

_BRACKET_KEY = re.compile(r"^([^\[\]]+)\[([^\[\]]+)\]$")


def parse_query_params(
    items: Iterable[Tuple[str, str]],
    repeatable: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Build a nested parameter mapping from raw (key, value) pairs.

    ``price[gte]=100`` becomes ``{"price": {"gte": "100"}}``. A key given more
    than once keeps only its last value unless it is listed in ``repeatable``,
    in which case all values are kept as a list. When a key appears both plain
    and bracketed, the bracketed operators win whatever the order.
    """
    repeatable = set(repeatable)
    out: Dict[str, Any] = {}
    for key, value in items:
        match = _BRACKET_KEY.match(key)
        if match:
            field, op = match.groups()
            nested = out.get(field)
            if not isinstance(nested, dict):
                nested = {}
            nested[op] = value
            out[field] = nested
        elif isinstance(out.get(key), dict):
            # Bracketed operators take precedence over a plain value
            continue
        elif key in repeatable and key in out:
            previous = out[key]
            out[key] = (previous if isinstance(previous, list) else [previous]) + [value]
        else:
            out[key] = value
    return out


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(str(raw))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _split_fields(raw: Any) -> list:
    if isinstance(raw, list):
        raw = ",".join(str(r) for r in raw)
    return [part.strip() for part in str(raw).split(",") if part.strip()]


class APIFeatures:
    """Applies filter / sort / field selection / pagination to a store Query."""

    def __init__(self, query: Query, query_string: Optional[Mapping[str, Any]] = None):
        self.query = query
        self.query_string: Dict[str, Any] = dict(query_string or {})

    def filter(self) -> "APIFeatures":
        constraints: Dict[str, Any] = {}
        for key in sorted(self.query_string):
            if key in RESERVED_PARAMS:
                continue
            value = self.query_string[key]
            if isinstance(value, Mapping):
                value = {COMPARISON_OPERATORS.get(op, op): operand for op, operand in value.items()}
            elif isinstance(value, list):
                value = {"$in": list(value)}
            constraints[key] = value
        self.query = self.query.find(constraints)
        return self

    def sort(self) -> "APIFeatures":
        raw = self.query_string.get("sort")
        self.query = self.query.sort(_split_fields(raw) if raw else DEFAULT_SORT)
        return self

    def limit_fields(self) -> "APIFeatures":
        raw = self.query_string.get("fields")
        fields = _split_fields(raw) if raw else []
        self.query = self.query.select(fields or list(DEFAULT_EXCLUDED_FIELDS))
        return self

    def paginate(self) -> "APIFeatures":
        page = _positive_int(self.query_string.get("page"), DEFAULT_PAGE)
        # No upper bound on limit: callers can ask for the whole collection.
        limit = _positive_int(self.query_string.get("limit"), DEFAULT_LIMIT)
        self.query = self.query.skip((page - 1) * limit).limit(limit)
        return self

    def apply_all(self) -> "APIFeatures":
        return self.filter().sort().limit_fields().paginate()
