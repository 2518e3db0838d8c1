"""Tour rating aggregate, recomputed from the full set of a tour's reviews"""

from typing import Any, Dict, Optional

from ..storage import DocumentStore, is_object_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RATINGS_AVERAGE = 4.5


def calc_average_ratings(store: DocumentStore, tour_id: str) -> Optional[Dict[str, Any]]:
    """
    Recompute ratingsAverage / ratingsQuantity for one tour.

    Idempotent: the result depends only on the reviews currently stored, so
    two concurrent review writes at worst compute the same value twice.
    """
    if not is_object_id(tour_id):
        return None
    stats = store.collection("reviews").aggregate([
        {"$match": {"tour": tour_id}},
        {"$group": {"_id": "$tour", "nRating": {"$sum": 1}, "avgRating": {"$avg": "$rating"}}},
    ])
    if stats and stats[0]["avgRating"] is not None:
        changes = {
            "ratingsAverage": round(stats[0]["avgRating"] * 10) / 10,
            "ratingsQuantity": stats[0]["nRating"],
        }
    else:
        changes = {"ratingsAverage": DEFAULT_RATINGS_AVERAGE, "ratingsQuantity": 0}
    logger.debug("Tour ratings recomputed", tour_id=tour_id, **changes)
    return store.collection("tours").update_by_id(tour_id, changes=changes)


def recompute_for_review(store: DocumentStore, review: Dict[str, Any], previous: Optional[Dict[str, Any]]) -> None:
    """After-write effect for reviews: refresh the affected tour(s)."""
    tour_ids = {review.get("tour")}
    if previous:
        tour_ids.add(previous.get("tour"))
    for tour_id in tour_ids:
        if tour_id:
            calc_average_ratings(store, tour_id)
