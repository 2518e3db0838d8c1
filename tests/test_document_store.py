"""Tests for the JSON document store, its filter language and aggregation"""

import json
from datetime import datetime

import pytest

from tourhub.storage import CastError, DocumentStore, DuplicateKeyError, is_object_id
from tourhub.storage.matching import matches, merge_filters


def test_insert_assigns_id_and_version():
    coll = DocumentStore().collection("things")
    doc = coll.insert_one({"name": "a"})
    assert is_object_id(doc["_id"])
    assert doc["__v"] == 0
    assert coll.find_by_id(doc["_id"])["name"] == "a"


def test_find_by_id_rejects_malformed_ids():
    coll = DocumentStore().collection("things")
    with pytest.raises(CastError) as exc:
        coll.find_by_id("not-an-id")
    assert exc.value.path == "_id"
    assert exc.value.value == "not-an-id"


def test_find_by_id_returns_none_for_unknown_id():
    coll = DocumentStore().collection("things")
    assert coll.find_by_id("0" * 24) is None


def test_unique_index_rejects_duplicates():
    coll = DocumentStore().collection("users")
    coll.create_index("email", unique=True)
    first = coll.insert_one({"email": "a@example.com"})
    with pytest.raises(DuplicateKeyError) as exc:
        coll.insert_one({"email": "a@example.com"})
    assert exc.value.key_value == {"email": "a@example.com"}

    other = coll.insert_one({"email": "b@example.com"})
    with pytest.raises(DuplicateKeyError):
        coll.update_by_id(other["_id"], changes={"email": "a@example.com"})
    # Updating a document to its own value is fine
    assert coll.update_by_id(first["_id"], changes={"email": "a@example.com"}) is not None


def test_compound_unique_index():
    coll = DocumentStore().collection("reviews")
    coll.create_index([("tour", 1), ("user", 1)], unique=True)
    coll.insert_one({"tour": "t1", "user": "u1"})
    coll.insert_one({"tour": "t1", "user": "u2"})
    coll.insert_one({"tour": "t2", "user": "u1"})
    with pytest.raises(DuplicateKeyError):
        coll.insert_one({"tour": "t1", "user": "u1"})


def test_update_set_and_unset():
    coll = DocumentStore().collection("users")
    doc = coll.insert_one({"name": "a", "token": "x", "expires": datetime(2030, 1, 1)})
    updated = coll.update_by_id(doc["_id"], changes={"name": "b"}, unset=("token", "expires"))
    assert updated["name"] == "b"
    assert "token" not in updated and "expires" not in updated


def test_replace_keeps_id_and_version():
    coll = DocumentStore().collection("things")
    doc = coll.insert_one({"name": "a", "extra": 1})
    replaced = coll.replace_by_id(doc["_id"], {"name": "b"})
    assert replaced == {"name": "b", "_id": doc["_id"], "__v": 0}


def test_delete():
    coll = DocumentStore().collection("things")
    doc = coll.insert_one({"name": "a"})
    assert coll.delete_by_id(doc["_id"])["name"] == "a"
    assert coll.delete_by_id(doc["_id"]) is None
    assert coll.count() == 0


def test_persists_to_disk_with_datetimes(tmp_path):
    store = DocumentStore(tmp_path)
    when = datetime(2021, 4, 25, 9, 0)
    doc = store.collection("tours").insert_one({"name": "a", "startDates": [when]})

    raw = json.loads((tmp_path / "tours.json").read_text(encoding="utf-8"))
    assert raw["documents"][0]["startDates"] == [{"$date": "2021-04-25T09:00:00"}]

    reloaded = DocumentStore(tmp_path).collection("tours").find_by_id(doc["_id"])
    assert reloaded["startDates"] == [when]


def test_string_operands_cast_to_stored_type():
    doc = {"price": 497, "secretTour": False, "createdAt": datetime(2024, 5, 1)}
    assert matches(doc, {"price": "497"})
    assert matches(doc, {"price": {"$gte": "400", "$lt": "500"}})
    assert matches(doc, {"secretTour": "false"})
    assert matches(doc, {"createdAt": {"$gt": "2024-01-01"}})
    assert not matches(doc, {"createdAt": {"$gt": "2024-06-01T00:00:00Z"}})


def test_array_fields_match_any_element():
    doc = {"guides": ["a", "b"], "startDates": [datetime(2021, 1, 1), datetime(2022, 1, 1)]}
    assert matches(doc, {"guides": "b"})
    assert not matches(doc, {"guides": "c"})
    assert matches(doc, {"startDates": {"$gte": datetime(2021, 6, 1)}})


def test_missing_fields_and_ne():
    assert matches({}, {"secretTour": {"$ne": True}})
    assert not matches({"secretTour": True}, {"secretTour": {"$ne": True}})
    assert matches({"a": 1}, {"b": {"$exists": False}})
    assert not matches({"a": 1}, {"b": 1})


def test_and_or():
    doc = {"a": 1, "b": 2}
    assert matches(doc, {"$or": [{"a": 5}, {"b": 2}]})
    assert not matches(doc, {"$and": [{"a": 1}, {"b": 3}]})


def test_merge_filters_keeps_both_constraints_on_overlap():
    merged = merge_filters({"secretTour": {"$ne": True}}, {"secretTour": "true"})
    assert merged == {"$and": [{"secretTour": {"$ne": True}}, {"secretTour": "true"}]}
    assert not matches({"secretTour": True}, merged)


def test_geo_within_center_sphere():
    la = {"startLocation": {"type": "Point", "coordinates": [-118.2437, 34.0522]}}
    ny = {"startLocation": {"type": "Point", "coordinates": [-74.006, 40.7128]}}
    # 100 miles around Los Angeles
    query = {"startLocation": {"$geoWithin": {"$centerSphere": [[-118.2, 34.1], 100 / 3963.2]}}}
    assert matches(la, query)
    assert not matches(ny, query)


def test_aggregate_group_sort_and_unwind():
    coll = DocumentStore().collection("tours")
    coll.insert_one({"name": "a", "difficulty": "easy", "price": 100, "startDates": [datetime(2021, 3, 1)]})
    coll.insert_one({"name": "b", "difficulty": "easy", "price": 300, "startDates": [datetime(2021, 3, 9)]})
    coll.insert_one({"name": "c", "difficulty": "hard", "price": 50, "startDates": [datetime(2021, 7, 1)]})

    rows = coll.aggregate([
        {"$group": {"_id": {"$toUpper": "$difficulty"}, "n": {"$sum": 1}, "avg": {"$avg": "$price"}}},
        {"$sort": {"avg": 1}},
    ])
    assert rows == [{"_id": "HARD", "n": 1, "avg": 50}, {"_id": "EASY", "n": 2, "avg": 200}]

    rows = coll.aggregate([
        {"$unwind": "$startDates"},
        {"$group": {"_id": {"$month": "$startDates"}, "tours": {"$push": "$name"}}},
        {"$sort": {"_id": 1}},
    ])
    assert rows == [{"_id": 3, "tours": ["a", "b"]}, {"_id": 7, "tours": ["c"]}]


def test_geo_near_must_be_first_stage():
    coll = DocumentStore().collection("tours")
    with pytest.raises(ValueError):
        coll.aggregate([{"$match": {}}, {"$geoNear": {"near": [0, 0]}}])
