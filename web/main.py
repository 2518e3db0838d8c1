"""FastAPI application factory for the Tourhub API and website"""

from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from jinja2 import Environment, FileSystemLoader, select_autoescape

from tourhub import __version__
from tourhub.auth import AuthService
from tourhub.resources import build_handlers
from tourhub.services import BookingService, CloudinaryImageProcessor, Mailer, StripeGateway, build_transport
from tourhub.storage import DocumentStore
from tourhub.utils.config import Settings, load_settings
from tourhub.utils.logger import get_logger

from .errors import register_error_handlers
from .routes import bookings, reviews, tours, users, views
from .state import Services

logger = get_logger(__name__)

WEB_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = WEB_DIR / "templates"
STATIC_DIR = WEB_DIR / "static"


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    mailer: Optional[Mailer] = None,
    payments=None,
    images=None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to the ones described by ``settings``; tests pass
    an in-memory store and fakes instead.
    """
    settings = settings or load_settings()
    store = store if store is not None else DocumentStore(settings.app.data_dir)
    mailer = mailer or Mailer(build_transport(settings.email))
    if payments is None and settings.payments.stripe_secret_key:
        payments = StripeGateway(settings.payments)
    if images is None and settings.images.is_configured:
        images = CloudinaryImageProcessor(settings.images)

    handlers = build_handlers(store)
    services = Services(
        settings=settings,
        store=store,
        handlers=handlers,
        auth=AuthService(store, settings.auth, mailer, images),
        mailer=mailer,
        bookings=BookingService(handlers["tours"], handlers["bookings"], payments),
        jinja_env=Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=select_autoescape(["html"])),
        payments=payments,
        images=images,
    )

    app = FastAPI(
        title=settings.app.name,
        description="Tour booking API and website",
        version=__version__,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins if settings.app.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    app.include_router(tours.router)
    app.include_router(reviews.nested_router)
    app.include_router(reviews.router)
    app.include_router(users.router)
    app.include_router(bookings.router)
    app.include_router(views.router)

    logger.info(
        "Application created",
        environment=settings.app.environment,
        data_dir=settings.app.data_dir,
        payments=payments is not None,
        images=images is not None,
    )
    return app
