"""Shared fixtures: in-memory store, fake collaborators, app and client"""

import itertools

import pytest
from fastapi.testclient import TestClient

from tourhub.services import CheckoutSession, Mailer
from tourhub.storage import DocumentStore
from tourhub.utils.config import AppSettings, AuthSettings, Settings
from tourhub.utils.exceptions import UpstreamError
from web.main import create_app

PASSWORD = "pass1234"


class RecordingTransport:
    """Email transport that keeps messages in memory"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html, text):
        if self.fail:
            raise UpstreamError("SMTP server unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})


class FakePayments:
    def __init__(self):
        self.sessions = []

    def create_checkout_session(self, tour, customer_email, success_url, cancel_url):
        session = CheckoutSession(id=f"cs_test_{len(self.sessions) + 1}", url="https://checkout.test/pay")
        self.sessions.append({
            "tour": tour,
            "customer_email": customer_email,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })
        return session


class FakeImages:
    def __init__(self):
        self.calls = []

    def resize(self, data, public_id, width, height):
        self.calls.append((public_id, width, height))
        return f"https://img.test/{public_id}.jpg"


def tour_payload(**overrides):
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "maxGroupSize": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "imageCover": "tour-1-cover.jpg",
        "startLocation": {
            "type": "Point",
            "coordinates": [-115.570154, 51.178456],
            "description": "Banff, CAN",
        },
        "startDates": ["2021-04-25T09:00:00", "2021-07-20T09:00:00", "2021-10-05T09:00:00"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings():
    return Settings(
        app=AppSettings(data_dir=None),
        auth=AuthSettings(jwt_secret="test-secret", bcrypt_rounds=4),
    )


@pytest.fixture
def store():
    return DocumentStore()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def mailer(transport):
    return Mailer(transport)


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def images():
    return FakeImages()


@pytest.fixture
def app(settings, store, mailer, payments, images):
    return create_app(settings, store=store, mailer=mailer, payments=payments, images=images)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(services):
    """Factory: register a user (optionally with a role) and return (user, token)."""
    counter = itertools.count(1)

    def _make(role="user", name=None, password=PASSWORD):
        n = next(counter)
        user, token = services.auth.register({
            "name": name or f"Test User{n}",
            "email": f"{role}{n}@example.com",
            "password": password,
            "passwordConfirm": password,
        })
        if role != "user":
            services.store.collection("users").update_by_id(user["_id"], changes={"role": role})
            user = {**user, "role": role}
        return user, token

    return _make


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
