"""
FastAPI dependencies for authentication and authorization.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool

from tourhub.auth import ensure_role

from .state import Services, get_services

SESSION_COOKIE = "jwt"
LOGGED_OUT = "loggedout"


def get_session_token(request: Request) -> Optional[str]:
    """Extract session token from request (Authorization header, then cookie)"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def protect(request: Request, services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Dependency: resolve the current principal or fail with AuthError"""
    user = await run_in_threadpool(services.auth.identify, get_session_token(request))
    request.state.user = user
    return user


async def passive_user(request: Request, services: Services = Depends(get_services)) -> Optional[Dict[str, Any]]:
    """Dependency for rendered pages: principal from the cookie, or None"""
    token = request.cookies.get(SESSION_COOKIE)
    if not token or token == LOGGED_OUT:
        return None
    user = await run_in_threadpool(services.auth.identify_passive, token)
    request.state.user = user
    return user


def require_roles(allowed: Iterable[str]):
    """Dependency factory for role-based access control"""
    allowed = tuple(allowed)

    async def role_checker(user: Dict[str, Any] = Depends(protect)) -> Dict[str, Any]:
        return ensure_role(user, allowed)

    return role_checker
