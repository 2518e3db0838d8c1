from .bookings import BookingService
from .email import ConsoleTransport, Mailer, SendGridTransport, SmtpTransport, build_transport
from .images import CloudinaryImageProcessor, ensure_image, process_tour_images
from .payments import CheckoutSession, StripeGateway

__all__ = [
    "BookingService",
    "ConsoleTransport",
    "Mailer",
    "SendGridTransport",
    "SmtpTransport",
    "build_transport",
    "CloudinaryImageProcessor",
    "ensure_image",
    "process_tour_images",
    "CheckoutSession",
    "StripeGateway",
]
