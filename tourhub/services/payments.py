"""Stripe Checkout gateway (REST, form-encoded)"""

from typing import Any, Dict, NamedTuple, Optional

import requests
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..utils.config import PaymentSettings
from ..utils.exceptions import ConfigError, UpstreamError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CheckoutSession(NamedTuple):
    id: str
    url: str


class _TransientPaymentError(Exception):
    pass


class StripeGateway:
    def __init__(self, settings: PaymentSettings, session: Optional[requests.Session] = None):
        if not settings.stripe_secret_key:
            raise ConfigError("STRIPE_SECRET_KEY is required for checkout")
        self.settings = settings
        self.session = session or requests.Session()
        self.session.auth = (settings.stripe_secret_key, "")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(_TransientPaymentError),
    )
    def _post(self, endpoint: str, form: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.settings.api_base_url.rstrip('/')}/{endpoint}"
        try:
            response = self.session.post(url, data=form, timeout=self.settings.timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise _TransientPaymentError(str(e))
        if response.status_code == 429 or response.status_code >= 500:
            raise _TransientPaymentError(f"Stripe returned {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(f"Stripe returned a non-JSON response ({response.status_code})")
        if response.status_code >= 400:
            message = body.get("error", {}).get("message", "unknown error")
            raise UpstreamError(f"Stripe error: {message}", status_code=response.status_code)
        return body

    def create_checkout_session(
        self,
        tour: Dict[str, Any],
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """One-line-item checkout for ``tour`` at its current price."""
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
            "client_reference_id": tour["_id"],
            "line_items[0][quantity]": 1,
            "line_items[0][price_data][currency]": self.settings.currency,
            "line_items[0][price_data][unit_amount]": int(round(tour["price"] * 100)),
            "line_items[0][price_data][product_data][name]": f"{tour['name']} Tour",
            "line_items[0][price_data][product_data][description]": tour.get("summary", ""),
        }
        if tour.get("imageCover"):
            form["line_items[0][price_data][product_data][images][0]"] = (
                f"{self.settings.image_base_url.rstrip('/')}/{tour['imageCover']}"
            )
        try:
            body = self._post("checkout/sessions", form)
        except RetryError as e:
            logger.error("Stripe checkout failed", tour_id=tour["_id"], error=str(e.last_attempt.exception()))
            raise UpstreamError("Payment provider unavailable")
        logger.info("Checkout session created", tour_id=tour["_id"], session_id=body.get("id"))
        return CheckoutSession(id=body["id"], url=body.get("url", ""))
