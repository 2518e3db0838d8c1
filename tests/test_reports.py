"""Tests for the tour reports"""

import pytest

from conftest import tour_payload
from tourhub.reports import distances, monthly_plan, parse_latlng, tour_stats, tours_within
from tourhub.resources import build_handlers
from tourhub.storage import DocumentStore
from tourhub.utils.exceptions import ValidationError

LOS_ANGELES = "34.0522,-118.2437"


def point(lng, lat, description):
    return {"type": "Point", "coordinates": [lng, lat], "description": description}


@pytest.fixture
def tours():
    handlers = build_handlers(DocumentStore())
    create = handlers["tours"].create
    create(tour_payload(
        name="The Forest Hiker", difficulty="easy", price=397, ratingsAverage=4.7,
        startLocation=point(-115.570154, 51.178456, "Banff, CAN"),
    ))
    create(tour_payload(
        name="The Sea Explorer", difficulty="medium", price=497, ratingsAverage=4.8,
        startLocation=point(-80.185942, 25.774772, "Miami, USA"),
        startDates=["2021-06-19T09:00:00", "2021-07-20T09:00:00", "2022-08-18T09:00:00"],
    ))
    create(tour_payload(
        name="The Sports Lover", difficulty="difficult", price=2997, ratingsAverage=4.9,
        startLocation=point(-118.803461, 34.006072, "California, USA"),
        startDates=["2021-07-21T10:00:00", "2021-09-25T10:00:00"],
    ))
    create(tour_payload(
        name="The Park Camper", difficulty="medium", price=1497, ratingsAverage=4.2,
        startLocation=point(-118.076152, 34.011646, "Los Angeles, USA"),
    ))
    create(tour_payload(
        name="The Hidden Canyon", difficulty="difficult", price=99, ratingsAverage=5,
        secretTour=True, startLocation=point(-118.25, 34.05, "Downtown LA, USA"),
        startDates=["2021-01-05T10:00:00"],
    ))
    return handlers["tours"].collection


def test_tour_stats_groups_well_rated_tours_by_difficulty(tours):
    stats = tour_stats(tours)
    assert [row["_id"] for row in stats] == ["MEDIUM", "DIFFICULT"]
    medium, difficult = stats
    # The 4.2 medium tour is below the rating floor
    assert medium["numTours"] == 1
    assert medium["avgPrice"] == 497
    # The secret tour is excluded
    assert difficult["numTours"] == 1
    assert difficult["minPrice"] == difficult["maxPrice"] == 2997


def test_monthly_plan_counts_starts_in_year(tours):
    plan = monthly_plan(tours, 2021)
    by_month = {row["month"]: row for row in plan}
    assert "_id" not in plan[0]
    assert plan[0]["month"] == 7
    assert plan[0]["numTourStarts"] == 4
    assert sorted(plan[0]["tours"]) == [
        "The Forest Hiker", "The Park Camper", "The Sea Explorer", "The Sports Lover",
    ]
    assert by_month[4]["numTourStarts"] == 2
    # Secret tour start (January) and next year's start (August) are left out
    assert 1 not in by_month
    assert 8 not in by_month
    assert len(plan) <= 12
    counts = [row["numTourStarts"] for row in plan]
    assert counts == sorted(counts, reverse=True)


def test_monthly_plan_for_year_without_starts(tours):
    assert monthly_plan(tours, 1999) == []


def test_tours_within_radius(tours):
    names = {t["name"] for t in tours_within(tours, 50, LOS_ANGELES, "mi")}
    assert names == {"The Sports Lover", "The Park Camper"}

    assert tours_within(tours, 1, LOS_ANGELES, "km") == []

    names = {t["name"] for t in tours_within(tours, 5000, LOS_ANGELES, "km")}
    assert names == {"The Forest Hiker", "The Sports Lover", "The Park Camper", "The Sea Explorer"}


def test_distances_sorted_nearest_first(tours):
    rows = distances(tours, LOS_ANGELES, "mi")
    assert [r["name"] for r in rows] == [
        "The Park Camper", "The Sports Lover", "The Forest Hiker", "The Sea Explorer",
    ]
    assert set(rows[0]) == {"_id", "name", "distance"}
    assert rows[0]["distance"] < 20

    km = distances(tours, LOS_ANGELES, "km")
    assert km[0]["distance"] == pytest.approx(rows[0]["distance"] / 0.621371, rel=1e-3)


@pytest.mark.parametrize("latlng", ["", "34.05", "abc,def", "34.05,", "95,10", "34.05,-118.2,1"])
def test_malformed_latlng_rejected(latlng):
    with pytest.raises(ValidationError, match="lat,lng"):
        parse_latlng(latlng)


def test_unknown_unit_rejected(tours):
    with pytest.raises(ValidationError):
        distances(tours, LOS_ANGELES, "parsec")


@pytest.mark.parametrize("year", [0, -5, 9999])
def test_monthly_plan_rejects_out_of_range_year(tours, year):
    with pytest.raises(ValidationError, match="Year must be between"):
        monthly_plan(tours, year)


def test_monthly_plan_accepts_year_bounds(tours):
    assert monthly_plan(tours, 1) == []
    assert monthly_plan(tours, 9998) == []
