"""Per-application service container, stored on ``app.state.services``"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from jinja2 import Environment

from tourhub.auth import AuthService
from tourhub.resources import ResourceHandlers
from tourhub.services import BookingService, Mailer
from tourhub.storage import DocumentStore
from tourhub.utils.config import Settings


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    handlers: Dict[str, ResourceHandlers]
    auth: AuthService
    mailer: Mailer
    bookings: BookingService
    jinja_env: Environment
    payments: Optional[Any] = None
    images: Optional[Any] = None

    @property
    def tours(self) -> ResourceHandlers:
        return self.handlers["tours"]

    @property
    def reviews(self) -> ResourceHandlers:
        return self.handlers["reviews"]

    @property
    def users(self) -> ResourceHandlers:
        return self.handlers["users"]

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        return self.jinja_env.get_template(template_name).render(**context)

    async def render_async(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render in the threadpool so the event loop is not blocked."""
        return await run_in_threadpool(self.render, template_name, context)


def get_services(request: Request) -> Services:
    return request.app.state.services
