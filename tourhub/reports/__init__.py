from .ratings import calc_average_ratings, recompute_for_review
from .tours import distances, monthly_plan, parse_latlng, tour_stats, tours_within

__all__ = [
    "calc_average_ratings",
    "recompute_for_review",
    "distances",
    "monthly_plan",
    "parse_latlng",
    "tour_stats",
    "tours_within",
]
