"""Tour checkout and booking completion"""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from ..resources import ResourceHandlers
from ..utils.exceptions import UpstreamError
from ..utils.logger import get_logger
from .payments import CheckoutSession

logger = get_logger(__name__)

COMPLETION_PARAMS = ("tour", "user", "price")


class BookingService:
    def __init__(self, tours: ResourceHandlers, bookings: ResourceHandlers, payments):
        self.tours = tours
        self.bookings = bookings
        self.payments = payments

    def create_checkout(self, tour_id: str, principal: Dict[str, Any], base_url: str) -> CheckoutSession:
        """Open a payment session for ``tour_id``; payment success lands on the overview page."""
        if self.payments is None:
            raise UpstreamError("Payments are not configured")
        tour = self.tours.get_one(tour_id)
        base_url = base_url.rstrip("/")
        query = urlencode({"tour": tour["_id"], "user": principal["_id"], "price": tour["price"]})
        session = self.payments.create_checkout_session(
            tour,
            customer_email=principal["email"],
            success_url=f"{base_url}/?{query}",
            cancel_url=f"{base_url}/tour/{tour.get('slug', '')}",
        )
        logger.info("Checkout started", tour_id=tour["_id"], user_id=principal["_id"], session_id=session.id)
        return session

    def complete_checkout(self, params: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Record a booking from the payment-success redirect.

        Returns None unless tour, user and price are all present. The
        parameters are not signed, so anyone who knows the URL shape can
        create a booking.
        """
        if not all(params.get(name) for name in COMPLETION_PARAMS):
            return None
        booking = self.bookings.create({name: params[name] for name in COMPLETION_PARAMS})
        logger.info("Booking recorded", booking_id=booking["_id"], tour_id=booking["tour"])
        return booking
