"""
Central error translator.

Every exception raised while handling a request ends up here. Operational
errors (AppError) are shown verbatim; anything else is a bug and is hidden
in production. API paths get JSON, rendered pages get an HTML error page.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourhub.resources.errors import translate_storage_error
from tourhub.storage import StorageError
from tourhub.utils.exceptions import AppError, NotFound, ValidationError
from tourhub.utils.logger import get_logger

logger = get_logger(__name__)

GENERIC_MESSAGE = "Something went very wrong!"
GENERIC_PAGE_MESSAGE = "Please try again later."


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api")


def _is_production(request: Request) -> bool:
    return request.app.state.services.settings.app.is_production


async def _render_error_page(request: Request, status_code: int, message: str) -> HTMLResponse:
    html = await request.app.state.services.render_async(
        "error.html",
        {"title": "Something went wrong!", "msg": message, "user": getattr(request.state, "user", None)},
    )
    return HTMLResponse(html, status_code=status_code)


async def send_error(request: Request, exc: Exception) -> JSONResponse:
    operational = isinstance(exc, AppError)
    status_code = exc.status_code if operational else 500
    production = _is_production(request)

    if operational:
        log = logger.warning if status_code < 500 else logger.error
        log("Request failed", path=request.url.path, status_code=status_code, error=exc.message)
    else:
        logger.exception("Unhandled error", path=request.url.path, error=str(exc))

    if not _is_api(request):
        if operational:
            message = exc.message
        else:
            message = GENERIC_PAGE_MESSAGE if production else str(exc)
        return await _render_error_page(request, status_code, message)

    if production:
        if operational:
            body = {"status": exc.status, "message": exc.message}
        else:
            body = {"status": "error", "message": GENERIC_MESSAGE}
    else:
        body = {
            "status": exc.status if operational else "error",
            "message": exc.message if operational else str(exc),
            "error": {"type": type(exc).__name__, "repr": repr(exc)},
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
        if isinstance(exc, ValidationError) and exc.violations:
            body["errors"] = exc.violations
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


async def handle_storage_error(request: Request, exc: StorageError):
    translated = translate_storage_error(exc)
    return await send_error(request, translated or exc)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    violations = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "path", "query"))
        violations[field or "request"] = err.get("msg", "invalid")
    message = "Invalid input data. " + ". ".join(f"{k}: {v}" for k, v in violations.items())
    return await send_error(request, ValidationError(message, violations))


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        error = NotFound(f"Can't find {request.url.path} on this server!")
    else:
        error = AppError(str(exc.detail), status_code=exc.status_code)
    return await send_error(request, error)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, send_error)
    app.add_exception_handler(StorageError, handle_storage_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, send_error)
