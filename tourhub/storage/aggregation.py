"""
Aggregation pipeline executor.

Stages: $geoNear, $match, $unwind, $group, $addFields, $project, $sort,
$skip, $limit. Expressions: "$field" references, $toUpper, $month and
literals. Group accumulators: $sum, $avg, $min, $max, $push.
"""

import copy
from datetime import datetime
from typing import Any, Callable, Dict, List

from .matching import (
    EARTH_RADIUS_METERS,
    get_path,
    haversine_radians,
    matches,
    point_coordinates,
    sort_documents,
)

Document = Dict[str, Any]


def evaluate(expr: Any, doc: Document) -> Any:
    """Evaluate an aggregation expression against one document."""
    if isinstance(expr, str) and expr.startswith("$"):
        return get_path(doc, expr[1:])
    if isinstance(expr, dict) and len(expr) == 1:
        (op, arg), = expr.items()
        if op == "$toUpper":
            value = evaluate(arg, doc)
            return "" if value is None else str(value).upper()
        if op == "$month":
            value = evaluate(arg, doc)
            return value.month if isinstance(value, datetime) else None
        if op.startswith("$"):
            raise ValueError(f"Unsupported aggregation expression: {op}")
    if isinstance(expr, dict):
        return {k: evaluate(v, doc) for k, v in expr.items()}
    return expr


def _accumulate(op: str, values: List[Any]) -> Any:
    if op == "$push":
        return values
    numbers = [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if op == "$sum":
        return sum(numbers)
    if op == "$avg":
        return sum(numbers) / len(numbers) if numbers else None
    present = [v for v in values if v is not None]
    if op == "$min":
        return min(present) if present else None
    if op == "$max":
        return max(present) if present else None
    raise ValueError(f"Unsupported accumulator: {op}")


def _group(docs: List[Document], spec: Dict[str, Any]) -> List[Document]:
    id_expr = spec.get("_id")
    groups: Dict[Any, List[Document]] = {}
    keys: Dict[Any, Any] = {}
    for doc in docs:
        key_value = evaluate(id_expr, doc)
        hashable = repr(key_value)
        groups.setdefault(hashable, []).append(doc)
        keys[hashable] = key_value

    out: List[Document] = []
    for hashable, members in groups.items():
        row: Document = {"_id": keys[hashable]}
        for field, acc in spec.items():
            if field == "_id":
                continue
            (op, arg), = acc.items()
            row[field] = _accumulate(op, [evaluate(arg, m) for m in members])
        out.append(row)
    return out


def _unwind(docs: List[Document], path: Any) -> List[Document]:
    field = (path["path"] if isinstance(path, dict) else path).lstrip("$")
    out: List[Document] = []
    for doc in docs:
        values = get_path(doc, field)
        if not isinstance(values, list):
            if values is not None:
                out.append(doc)
            continue
        for value in values:
            row = dict(doc)
            row[field] = value
            out.append(row)
    return out


def _project(docs: List[Document], spec: Dict[str, Any]) -> List[Document]:
    includes = {k for k, v in spec.items() if v in (1, True)}
    excludes = {k for k, v in spec.items() if v in (0, False)}
    out: List[Document] = []
    for doc in docs:
        if includes:
            row = {k: doc[k] for k in doc if k in includes}
            if "_id" not in excludes and "_id" in doc:
                row["_id"] = doc["_id"]
        else:
            row = {k: v for k, v in doc.items() if k not in excludes}
        out.append(row)
    return out


def _geo_near(docs: List[Document], spec: Dict[str, Any]) -> List[Document]:
    near = point_coordinates(spec["near"])
    if near is None:
        raise ValueError("$geoNear requires a near point")
    key = spec.get("key", "startLocation")
    distance_field = spec.get("distanceField", "distance")
    multiplier = float(spec.get("distanceMultiplier", 1))
    query = spec.get("query")

    out: List[Document] = []
    for doc in docs:
        if query and not matches(doc, query):
            continue
        point = point_coordinates(get_path(doc, key))
        if point is None:
            continue
        row = dict(doc)
        meters = haversine_radians(near[0], near[1], point[0], point[1]) * EARTH_RADIUS_METERS
        row[distance_field] = meters * multiplier
        out.append(row)
    return sorted(out, key=lambda d: d[distance_field])


def _sort_stage(docs: List[Document], spec: Dict[str, int]) -> List[Document]:
    return sort_documents(docs, list(spec.items()))


def _add_fields(docs: List[Document], spec: Dict[str, Any]) -> List[Document]:
    out = []
    for doc in docs:
        row = dict(doc)
        for field, expr in spec.items():
            row[field] = evaluate(expr, doc)
        out.append(row)
    return out


STAGES: Dict[str, Callable[[List[Document], Any], List[Document]]] = {
    "$match": lambda docs, spec: [d for d in docs if matches(d, spec)],
    "$group": _group,
    "$unwind": _unwind,
    "$project": _project,
    "$addFields": _add_fields,
    "$sort": _sort_stage,
    "$skip": lambda docs, n: docs[int(n):],
    "$limit": lambda docs, n: docs[: int(n)],
    "$geoNear": _geo_near,
}


def run_pipeline(docs: List[Document], pipeline: List[Dict[str, Any]]) -> List[Document]:
    """Run ``pipeline`` over copies of ``docs`` and return the resulting rows."""
    rows = copy.deepcopy(docs)
    for index, stage in enumerate(pipeline):
        if len(stage) != 1:
            raise ValueError(f"Pipeline stage {index} must have exactly one operator")
        (name, spec), = stage.items()
        if name == "$geoNear" and index != 0:
            raise ValueError("$geoNear is only valid as the first stage of a pipeline")
        handler = STAGES.get(name)
        if handler is None:
            raise ValueError(f"Unsupported pipeline stage: {name}")
        rows = handler(rows, spec)
    return rows
