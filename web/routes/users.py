"""User routes: signup/login/password lifecycle, self service, admin CRUD"""

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.concurrency import run_in_threadpool

from tourhub.auth.access import USER_ADMINS
from tourhub.utils.exceptions import AppError
from tourhub.utils.logger import get_logger

from ..deps import protect, require_roles
from ..responses import clear_token, no_content, query_params, read_body, read_upload, send_token, success
from ..state import Services, get_services

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])
admins = [Depends(require_roles(USER_ADMINS))]


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _send_welcome(services: Services, user: Dict[str, Any], url: str) -> None:
    try:
        services.mailer.send_welcome(user, url)
    except Exception as e:
        logger.warning("Welcome email failed", user_id=user["_id"], error=str(e))


@router.post("/signup")
async def signup(request: Request, background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    user, token = await run_in_threadpool(services.auth.register, payload)
    # Sent after the response
    background_tasks.add_task(_send_welcome, services, user, f"{_base_url(request)}/me")
    return send_token(user, token, services.settings, status_code=201)


@router.post("/login")
async def login(request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    user, token = await run_in_threadpool(services.auth.authenticate, payload.get("email"), payload.get("password"))
    return send_token(user, token, services.settings)


@router.get("/logout")
async def logout():
    return clear_token()


@router.post("/forgetPassword")
async def forget_password(request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    base_url = _base_url(request)
    await run_in_threadpool(
        services.auth.initiate_password_reset,
        payload.get("email"),
        lambda token: f"{base_url}/api/v1/users/resetPassword/{token}",
    )
    return success(message="Token sent to email!")


@router.patch("/resetPassword/{token}")
async def reset_password(token: str, request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    user, new_token = await run_in_threadpool(
        services.auth.complete_password_reset, token, payload.get("password"), payload.get("passwordConfirm")
    )
    return send_token(user, new_token, services.settings)


@router.patch("/updatePassword")
async def update_password(
    request: Request,
    services: Services = Depends(get_services),
    user: Dict[str, Any] = Depends(protect),
):
    payload, _ = await read_body(request)
    updated, token = await run_in_threadpool(
        services.auth.change_password,
        user["_id"],
        payload.get("passwordCurrent"),
        payload.get("password"),
        payload.get("passwordConfirm"),
    )
    return send_token(updated, token, services.settings)


@router.get("/me")
async def get_me(services: Services = Depends(get_services), user: Dict[str, Any] = Depends(protect)):
    me = await run_in_threadpool(services.users.get_one, user["_id"])
    return success({"data": me})


@router.patch("/updateMe")
async def update_me(
    request: Request,
    services: Services = Depends(get_services),
    user: Dict[str, Any] = Depends(protect),
):
    """JSON, or multipart with an optional ``photo`` upload"""
    payload, files = await read_body(request)
    photos = files.get("photo", [])
    photo = await read_upload(photos[0]) if photos else None
    updated = await run_in_threadpool(services.auth.update_me, user["_id"], payload, photo)
    return success({"user": updated})


@router.delete("/deleteMe")
async def delete_me(services: Services = Depends(get_services), user: Dict[str, Any] = Depends(protect)):
    await run_in_threadpool(services.auth.deactivate, user["_id"])
    return no_content()


@router.get("", dependencies=admins)
async def get_all_users(request: Request, services: Services = Depends(get_services)):
    result = await run_in_threadpool(services.users.get_all, query_params(request))
    return success({"data": result.data}, results=result.results)


@router.post("", dependencies=admins)
async def create_user():
    raise AppError("This route is not defined! Please use /signup instead", status_code=500)


@router.get("/{user_id}", dependencies=admins)
async def get_user(user_id: str, services: Services = Depends(get_services)):
    user = await run_in_threadpool(services.users.get_one, user_id)
    return success({"data": user})


@router.patch("/{user_id}", dependencies=admins)
async def update_user(user_id: str, request: Request, services: Services = Depends(get_services)):
    """Admin edit; credential fields are kept from the stored record"""
    payload, _ = await read_body(request)
    user = await run_in_threadpool(services.users.update, user_id, payload)
    return success({"data": user})


@router.delete("/{user_id}", dependencies=admins)
async def delete_user(user_id: str, services: Services = Depends(get_services)):
    await run_in_threadpool(services.users.delete, user_id)
    return no_content()
