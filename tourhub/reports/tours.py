"""
Read-only tour reports computed by the store's aggregation pipeline.

Secret tours never show up in any report.
"""

from datetime import datetime
from typing import Any, Dict, List, Tuple

from ..storage import Collection
from ..utils.exceptions import ValidationError

VISIBLE = {"secretTour": {"$ne": True}}

EARTH_RADIUS_MILES = 3963.2
EARTH_RADIUS_KM = 6378.1
METERS_TO_MILES = 0.000621371
METERS_TO_KM = 0.001

LATLNG_HINT = "Please provide latitude and longitude in the format lat,lng."
MIN_PLAN_YEAR = 1
MAX_PLAN_YEAR = 9998


def parse_latlng(latlng: str) -> Tuple[float, float]:
    """"34.11,-118.11" -> (34.11, -118.11)"""
    parts = [p.strip() for p in (latlng or "").split(",")]
    if len(parts) != 2 or not all(parts):
        raise ValidationError(LATLNG_HINT)
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationError(LATLNG_HINT)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(LATLNG_HINT)
    return lat, lng


def _check_unit(unit: str) -> str:
    if unit not in ("mi", "km"):
        raise ValidationError("Unit must be either 'mi' or 'km'.")
    return unit


def tour_stats(tours: Collection) -> List[Dict[str, Any]]:
    """Rating and price rollup per difficulty for well-rated tours, cheapest first."""
    return tours.aggregate([
        {"$match": {**VISIBLE, "ratingsAverage": {"$gte": 4.5}}},
        {
            "$group": {
                "_id": {"$toUpper": "$difficulty"},
                "numTours": {"$sum": 1},
                "numRatings": {"$sum": "$ratingsQuantity"},
                "avgRating": {"$avg": "$ratingsAverage"},
                "avgPrice": {"$avg": "$price"},
                "minPrice": {"$min": "$price"},
                "maxPrice": {"$max": "$price"},
            }
        },
        {"$sort": {"avgPrice": 1}},
        {"$match": {"_id": {"$ne": "EASY"}}},
    ])


def monthly_plan(tours: Collection, year: int) -> List[Dict[str, Any]]:
    """Number of tour starts per month of ``year``, busiest month first."""
    if not MIN_PLAN_YEAR <= year <= MAX_PLAN_YEAR:
        raise ValidationError(f"Year must be between {MIN_PLAN_YEAR} and {MAX_PLAN_YEAR}.")
    return tours.aggregate([
        {"$match": VISIBLE},
        {"$unwind": "$startDates"},
        {
            "$match": {
                "startDates": {
                    "$gte": datetime(year, 1, 1),
                    "$lt": datetime(year + 1, 1, 1),
                }
            }
        },
        {
            "$group": {
                "_id": {"$month": "$startDates"},
                "numTourStarts": {"$sum": 1},
                "tours": {"$push": "$name"},
            }
        },
        {"$addFields": {"month": "$_id"}},
        {"$project": {"_id": 0}},
        {"$sort": {"numTourStarts": -1}},
        {"$limit": 12},
    ])


def tours_within(tours: Collection, distance: float, latlng: str, unit: str) -> List[Dict[str, Any]]:
    """Tours whose start location lies within ``distance`` of the center."""
    lat, lng = parse_latlng(latlng)
    radius = distance / (EARTH_RADIUS_MILES if _check_unit(unit) == "mi" else EARTH_RADIUS_KM)
    return tours.find({
        **VISIBLE,
        "startLocation": {"$geoWithin": {"$centerSphere": [[lng, lat], radius]}},
    }).select(["-__v"]).to_list()


def distances(tours: Collection, latlng: str, unit: str) -> List[Dict[str, Any]]:
    """Every tour's distance from the given point, nearest first."""
    lat, lng = parse_latlng(latlng)
    multiplier = METERS_TO_MILES if _check_unit(unit) == "mi" else METERS_TO_KM
    return tours.aggregate([
        {
            "$geoNear": {
                "near": {"type": "Point", "coordinates": [lng, lat]},
                "key": "startLocation",
                "distanceField": "distance",
                "distanceMultiplier": multiplier,
                "query": VISIBLE,
            }
        },
        {"$project": {"distance": 1, "name": 1}},
    ])
