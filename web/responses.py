"""JSON envelopes and request payload helpers"""

from typing import Any, Dict, Optional, Tuple

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from tourhub.query import parse_query_params
from tourhub.utils.config import Settings
from tourhub.utils.exceptions import ValidationError

from .deps import LOGGED_OUT, SESSION_COOKIE

SECONDS_PER_DAY = 24 * 60 * 60
LOGOUT_COOKIE_SECONDS = 10


def success(data: Any = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"status": "success", **extra}
    if data is not None:
        body["data"] = data
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


def no_content() -> Response:
    return Response(status_code=204)


def send_token(user: Dict[str, Any], token: str, settings: Settings, status_code: int = 200) -> JSONResponse:
    """Token in the body plus an http-only session cookie."""
    response = success({"user": user}, status_code=status_code, token=token)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.auth.jwt_cookie_expires_in_days * SECONDS_PER_DAY,
        httponly=True,
        secure=settings.app.is_production,
        samesite="lax",
    )
    return response


def clear_token() -> JSONResponse:
    response = success()
    response.set_cookie(key=SESSION_COOKIE, value=LOGGED_OUT, max_age=LOGOUT_COOKIE_SECONDS, httponly=True)
    return response


def query_params(request: Request, repeatable: Tuple[str, ...] = ()) -> Dict[str, Any]:
    return parse_query_params(request.query_params.multi_items(), repeatable)


async def read_body(request: Request) -> Tuple[Dict[str, Any], Dict[str, list]]:
    """
    Parse a JSON or multipart body.

    Returns (fields, files); files maps field name -> list of UploadFile.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        fields: Dict[str, Any] = {}
        files: Dict[str, list] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                files.setdefault(key, []).append(value)
            else:
                fields[key] = value
        return fields, files

    raw = await request.body()
    if not raw:
        return {}, {}
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload, {}


async def read_upload(upload: Optional[UploadFile]) -> Optional[Tuple[bytes, Optional[str]]]:
    if upload is None:
        return None
    return await upload.read(), upload.content_type
