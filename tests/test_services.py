"""Tests for the outbound collaborators: payments, email and images"""

import pytest

from conftest import FakeImages
from tourhub.services import (
    BookingService,
    ConsoleTransport,
    Mailer,
    SendGridTransport,
    SmtpTransport,
    StripeGateway,
    build_transport,
    process_tour_images,
)
from tourhub.utils.config import EmailSettings, PaymentSettings
from tourhub.utils.exceptions import ConfigError, UpstreamError, ValidationError

TOUR = {
    "_id": "5c88fa8cf4afda39709c2955",
    "name": "The Sea Explorer",
    "price": 497.5,
    "summary": "Exploring the jaw-dropping US east coast by foot and by boat",
    "imageCover": "tour-2-cover.jpg",
}


class StubResponse:
    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class StubSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.auth = None

    def post(self, url, data=None, json=None, timeout=None):
        self.calls.append({"url": url, "data": data, "json": json, "timeout": timeout})
        return self.responses.pop(0)


def test_stripe_checkout_session_form():
    session = StubSession(StubResponse(200, {"id": "cs_123", "url": "https://checkout.stripe.com/c/cs_123"}))
    gateway = StripeGateway(PaymentSettings(stripe_secret_key="sk_test_abc"), session=session)

    result = gateway.create_checkout_session(TOUR, "jonas@example.com", "https://site/?ok", "https://site/tour/x")
    assert result.id == "cs_123"
    assert result.url.endswith("cs_123")

    assert session.auth == ("sk_test_abc", "")
    call = session.calls[0]
    assert call["url"] == "https://api.stripe.com/v1/checkout/sessions"
    form = call["data"]
    assert form["customer_email"] == "jonas@example.com"
    assert form["client_reference_id"] == TOUR["_id"]
    assert form["line_items[0][price_data][unit_amount]"] == 49750
    assert form["line_items[0][price_data][product_data][name]"] == "The Sea Explorer Tour"
    assert form["line_items[0][price_data][product_data][images][0]"].endswith("/tour-2-cover.jpg")


def test_stripe_client_error_is_not_retried():
    session = StubSession(StubResponse(400, {"error": {"message": "No such price"}}))
    gateway = StripeGateway(PaymentSettings(stripe_secret_key="sk_test_abc"), session=session)
    with pytest.raises(UpstreamError, match="No such price"):
        gateway.create_checkout_session(TOUR, "jonas@example.com", "s", "c")
    assert len(session.calls) == 1


def test_stripe_requires_key():
    with pytest.raises(ConfigError):
        StripeGateway(PaymentSettings())


def test_sendgrid_send():
    session = StubSession(StubResponse(202))
    transport = SendGridTransport(EmailSettings(backend="sendgrid", sendgrid_api_key="SG.key"), session=session)
    transport.send("jonas@example.com", "Hello", "<p>Hi</p>", "Hi")

    assert session.headers["Authorization"] == "Bearer SG.key"
    body = session.calls[0]["json"]
    assert body["personalizations"] == [{"to": [{"email": "jonas@example.com"}]}]
    assert body["content"][0] == {"type": "text/plain", "value": "Hi"}


def test_sendgrid_rejection():
    session = StubSession(StubResponse(400, text="bad sender"))
    transport = SendGridTransport(EmailSettings(sendgrid_api_key="SG.key"), session=session)
    with pytest.raises(UpstreamError, match="bad sender"):
        transport.send("jonas@example.com", "Hello", "<p>Hi</p>", "Hi")


def test_build_transport():
    assert isinstance(build_transport(EmailSettings()), ConsoleTransport)
    assert isinstance(build_transport(EmailSettings(backend="smtp")), SmtpTransport)
    with pytest.raises(ConfigError):
        build_transport(EmailSettings(backend="sendgrid"))
    with pytest.raises(ConfigError):
        build_transport(EmailSettings(backend="pigeon"))


def test_mailer_renders_both_parts(transport):
    Mailer(transport).send_welcome({"name": "Jonas Schmedtmann", "email": "jonas@example.com"}, "https://site/me")
    message = transport.sent[0]
    assert message["to"] == "jonas@example.com"
    assert message["subject"] == "Welcome to the Tourhub family!"
    assert "Hi Jonas" in message["text"]
    assert "https://site/me" in message["html"]


def test_tour_images_resized_and_named():
    images = FakeImages()
    changes = process_tour_images(
        images, "t1", cover=(b"c", "image/jpeg"), images=[(b"1", "image/png"), (b"2", "image/png")]
    )
    assert changes["imageCover"].endswith("-cover.jpg")
    assert [url.rsplit("-", 1)[1] for url in changes["images"]] == ["1.jpg", "2.jpg"]
    assert {call[1:] for call in images.calls} == {(2000, 1333)}
    assert process_tour_images(images, "t1") == {}


def test_tour_images_limits():
    with pytest.raises(ValidationError):
        process_tour_images(FakeImages(), "t1", images=[(b"x", "image/png")] * 4)
    with pytest.raises(UpstreamError):
        process_tour_images(None, "t1", cover=(b"c", "image/jpeg"))


def test_booking_completion_needs_all_params(services):
    assert services.bookings.complete_checkout({"tour": "a", "user": "b"}) is None
    assert services.bookings.complete_checkout({}) is None


def test_checkout_without_payment_provider(services, make_user):
    tour = services.tours.create({
        "name": "The Forest Hiker", "duration": 5, "maxGroupSize": 25, "difficulty": "easy",
        "price": 397, "summary": "Hike", "imageCover": "tour-1-cover.jpg",
    })
    user, _ = make_user()
    service = BookingService(services.tours, services.handlers["bookings"], payments=None)
    with pytest.raises(UpstreamError, match="not configured"):
        service.create_checkout(tour["_id"], user, "http://testserver/")
