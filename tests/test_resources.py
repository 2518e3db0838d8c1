"""Tests for the generic resource handlers and the resource definitions"""

import pytest

from conftest import tour_payload
from tourhub.resources import build_handlers
from tourhub.storage import DocumentStore, DocumentValidationError, DuplicateKeyError
from tourhub.utils.exceptions import NotFound


@pytest.fixture
def handlers():
    return build_handlers(DocumentStore())


def add_user(handlers, name="Guide Person", email="guide@example.com", role="guide", active=True):
    return handlers["users"].collection.insert_one({
        "name": name,
        "email": email,
        "role": role,
        "photo": "default.jpg",
        "password": "$2b$04$hashhashhashhashhashhashhashhashhashhashhashhashhash",
        "active": active,
    })


def test_create_tour_applies_defaults_slug_and_virtuals(handlers):
    tour = handlers["tours"].create(tour_payload(name="  The Sea Explorer  "))
    assert tour["name"] == "The Sea Explorer"
    assert tour["slug"] == "the-sea-explorer"
    assert tour["ratingsAverage"] == 4.5
    assert tour["ratingsQuantity"] == 0
    assert tour["secretTour"] is False
    assert tour["durationWeeks"] == pytest.approx(5 / 7)
    assert tour["id"] == tour["_id"]


def test_create_rejects_invalid_tour_without_writing(handlers):
    with pytest.raises(DocumentValidationError) as exc:
        handlers["tours"].create(tour_payload(name="Short", difficulty="extreme", priceDiscount=500))
    fields = {v.field for v in exc.value.violations}
    assert fields == {"name", "difficulty", "priceDiscount"}
    messages = {v.message for v in exc.value.violations}
    assert "Difficulty is either: easy, medium, difficult" in messages
    assert "Discount price (500) should be below regular price" in messages
    assert handlers["tours"].collection.count() == 0


def test_missing_required_fields_use_custom_messages(handlers):
    with pytest.raises(DocumentValidationError) as exc:
        handlers["tours"].create({"name": "A tour with no details"})
    messages = {v.field: v.message for v in exc.value.violations}
    assert messages["price"] == "A tour must have a price"
    assert messages["imageCover"] == "A tour must have a cover image"


def test_duplicate_tour_name_rejected(handlers):
    handlers["tours"].create(tour_payload())
    with pytest.raises(DuplicateKeyError):
        handlers["tours"].create(tour_payload())


def test_secret_tours_hidden_from_reads(handlers):
    visible = handlers["tours"].create(tour_payload())
    secret = handlers["tours"].create(tour_payload(name="The Secret Valley", secretTour=True))

    listed = handlers["tours"].get_all({})
    assert [t["_id"] for t in listed.data] == [visible["_id"]]
    assert listed.results == 1

    # Asking for secret tours explicitly does not reveal them either
    assert handlers["tours"].get_all({"secretTour": "true"}).results == 0

    with pytest.raises(NotFound):
        handlers["tours"].get_one(secret["_id"])


def test_get_one_populates_guides_and_reviews(handlers):
    guide = add_user(handlers)
    gone = add_user(handlers, name="Former Guide", email="former@example.com", active=False)
    author = add_user(handlers, name="Reviewer", email="reviewer@example.com", role="user")
    tour = handlers["tours"].create(tour_payload(guides=[guide["_id"], gone["_id"]]))
    handlers["reviews"].create({"review": "Great!", "rating": 5, "tour": tour["_id"], "user": author["_id"]})

    detail = handlers["tours"].get_one(tour["_id"])
    assert [g["name"] for g in detail["guides"]] == ["Guide Person"]
    assert "password" not in detail["guides"][0]
    assert "passwordChangedAt" not in detail["guides"][0]
    assert len(detail["reviews"]) == 1
    assert detail["reviews"][0]["user"]["name"] == "Reviewer"
    assert set(detail["reviews"][0]["user"]) == {"_id", "id", "name", "photo"}

    listed = handlers["tours"].get_all({})
    assert "reviews" not in listed.data[0]


def test_update_revalidates_merged_document(handlers):
    tour = handlers["tours"].create(tour_payload(priceDiscount=100))
    with pytest.raises(DocumentValidationError):
        handlers["tours"].update(tour["_id"], {"price": 50})

    updated = handlers["tours"].update(tour["_id"], {"price": 500, "name": "The Forest Runner"})
    assert updated["price"] == 500
    assert updated["slug"] == "the-forest-runner"
    assert updated["priceDiscount"] == 100


def test_update_and_delete_unknown_ids(handlers):
    missing = "0" * 24
    with pytest.raises(NotFound, match="No document found with that ID"):
        handlers["tours"].update(missing, {"price": 1})
    with pytest.raises(NotFound):
        handlers["tours"].delete(missing)


def test_delete(handlers):
    tour = handlers["tours"].create(tour_payload())
    handlers["tours"].delete(tour["_id"])
    with pytest.raises(NotFound):
        handlers["tours"].get_one(tour["_id"])


def test_scope_filter_narrows_list(handlers):
    a = handlers["tours"].create(tour_payload())
    b = handlers["tours"].create(tour_payload(name="The Sea Explorer"))
    u1 = add_user(handlers, email="u1@example.com", role="user")
    u2 = add_user(handlers, email="u2@example.com", role="user")
    handlers["reviews"].create({"review": "ok", "rating": 4, "tour": a["_id"], "user": u1["_id"]})
    handlers["reviews"].create({"review": "ok", "rating": 3, "tour": a["_id"], "user": u2["_id"]})
    handlers["reviews"].create({"review": "ok", "rating": 2, "tour": b["_id"], "user": u1["_id"]})

    assert handlers["reviews"].get_all({}, {"tour": a["_id"]}).results == 2
    assert handlers["reviews"].get_all({}, {"tour": b["_id"]}).results == 1


def test_one_review_per_user_and_tour(handlers):
    tour = handlers["tours"].create(tour_payload())
    user = add_user(handlers, role="user")
    handlers["reviews"].create({"review": "first", "rating": 4, "tour": tour["_id"], "user": user["_id"]})
    with pytest.raises(DuplicateKeyError):
        handlers["reviews"].create({"review": "second", "rating": 5, "tour": tour["_id"], "user": user["_id"]})


def test_review_writes_recompute_tour_rating(handlers):
    tour = handlers["tours"].create(tour_payload())
    u1 = add_user(handlers, email="u1@example.com", role="user")
    u2 = add_user(handlers, email="u2@example.com", role="user")
    tours = handlers["tours"].collection

    r1 = handlers["reviews"].create({"review": "good", "rating": 4, "tour": tour["_id"], "user": u1["_id"]})
    handlers["reviews"].create({"review": "great", "rating": 5, "tour": tour["_id"], "user": u2["_id"]})
    stored = tours.find_by_id(tour["_id"])
    assert stored["ratingsAverage"] == 4.5
    assert stored["ratingsQuantity"] == 2

    handlers["reviews"].update(r1["_id"], {"rating": 2})
    stored = tours.find_by_id(tour["_id"])
    assert stored["ratingsAverage"] == 3.5

    handlers["reviews"].delete(r1["_id"])
    stored = tours.find_by_id(tour["_id"])
    assert (stored["ratingsAverage"], stored["ratingsQuantity"]) == (5, 1)


def test_last_review_deleted_resets_rating(handlers):
    tour = handlers["tours"].create(tour_payload())
    user = add_user(handlers, role="user")
    review = handlers["reviews"].create({"review": "meh", "rating": 1, "tour": tour["_id"], "user": user["_id"]})
    handlers["reviews"].delete(review["_id"])
    stored = handlers["tours"].collection.find_by_id(tour["_id"])
    assert (stored["ratingsAverage"], stored["ratingsQuantity"]) == (4.5, 0)


def test_users_hide_private_fields_and_soft_deleted_accounts(handlers):
    active = add_user(handlers, email="active@example.com")
    add_user(handlers, email="closed@example.com", active=False)

    listed = handlers["users"].get_all({})
    assert [u["email"] for u in listed.data] == ["active@example.com"]
    assert "password" not in listed.data[0]
    assert "active" not in listed.data[0]

    detail = handlers["users"].get_one(active["_id"])
    assert "password" not in detail


def test_deleting_a_user_only_deactivates(handlers):
    user = add_user(handlers)
    handlers["users"].delete(user["_id"])
    stored = handlers["users"].collection.find_by_id(user["_id"])
    assert stored["active"] is False
    with pytest.raises(NotFound):
        handlers["users"].get_one(user["_id"])
    with pytest.raises(NotFound):
        handlers["users"].delete(user["_id"])


def test_admin_user_update_keeps_credentials(handlers):
    user = add_user(handlers)
    handlers["users"].update(user["_id"], {"role": "lead-guide", "password": "newpassword", "active": False})
    stored = handlers["users"].collection.find_by_id(user["_id"])
    assert stored["role"] == "lead-guide"
    assert stored["password"] == user["password"]
    assert stored["active"] is True
