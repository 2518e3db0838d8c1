"""Review routes; also mounted under /tours/{tour_id}/reviews"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from tourhub.auth.access import REVIEW_AUTHORS, REVIEW_EDITORS

from ..deps import protect, require_roles
from ..responses import no_content, query_params, read_body, success
from ..state import Services, get_services

router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"], dependencies=[Depends(protect)])
nested_router = APIRouter(prefix="/api/v1/tours/{tour_id}/reviews", tags=["reviews"], dependencies=[Depends(protect)])


async def _list_reviews(request: Request, services: Services, tour_id: Optional[str] = None):
    scope = {"tour": tour_id} if tour_id else None
    result = await run_in_threadpool(services.reviews.get_all, query_params(request), scope)
    return success({"data": result.data}, results=result.results)


async def _create_review(request: Request, services: Services, user: Dict[str, Any], tour_id: Optional[str] = None):
    payload, _ = await read_body(request)
    # Nested route and current user fill in whatever the body leaves out
    if tour_id and not payload.get("tour"):
        payload["tour"] = tour_id
    if not payload.get("user"):
        payload["user"] = user["_id"]
    review = await run_in_threadpool(services.reviews.create, payload)
    return success({"data": review}, status_code=201)


@router.get("")
async def get_all_reviews(request: Request, services: Services = Depends(get_services)):
    return await _list_reviews(request, services)


@router.post("")
async def create_review(
    request: Request,
    services: Services = Depends(get_services),
    user: Dict[str, Any] = Depends(require_roles(REVIEW_AUTHORS)),
):
    return await _create_review(request, services, user)


@router.get("/{review_id}")
async def get_review(review_id: str, services: Services = Depends(get_services)):
    review = await run_in_threadpool(services.reviews.get_one, review_id)
    return success({"data": review})


@router.patch("/{review_id}", dependencies=[Depends(require_roles(REVIEW_EDITORS))])
async def update_review(review_id: str, request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    review = await run_in_threadpool(services.reviews.update, review_id, payload)
    return success({"data": review})


@router.delete("/{review_id}", dependencies=[Depends(require_roles(REVIEW_EDITORS))])
async def delete_review(review_id: str, services: Services = Depends(get_services)):
    await run_in_threadpool(services.reviews.delete, review_id)
    return no_content()


@nested_router.get("")
async def get_tour_reviews(tour_id: str, request: Request, services: Services = Depends(get_services)):
    return await _list_reviews(request, services, tour_id)


@nested_router.post("")
async def create_tour_review(
    tour_id: str,
    request: Request,
    services: Services = Depends(get_services),
    user: Dict[str, Any] = Depends(require_roles(REVIEW_AUTHORS)),
):
    return await _create_review(request, services, user, tour_id)
