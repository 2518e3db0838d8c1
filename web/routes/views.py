"""Server-rendered pages"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse

from tourhub.utils.exceptions import NotFound

from ..deps import passive_user, protect
from ..state import Services, get_services

router = APIRouter(tags=["views"], include_in_schema=False)


async def _page(services: Services, template: str, title: str, user: Optional[Dict[str, Any]], **context: Any):
    html = await services.render_async(template, {"title": title, "user": user, **context})
    return HTMLResponse(html)


@router.get("/")
async def overview(
    request: Request,
    services: Services = Depends(get_services),
    user: Optional[Dict[str, Any]] = Depends(passive_user),
):
    # Payment success redirect: record the booking, then drop the query string
    booking = await run_in_threadpool(services.bookings.complete_checkout, request.query_params)
    if booking is not None:
        return RedirectResponse(str(request.url.replace(query="")), status_code=302)
    result = await run_in_threadpool(services.tours.get_all, {})
    return await _page(services, "overview.html", "All Tours", user, tours=result.data)


@router.get("/tour/{slug}")
async def tour_detail(
    slug: str,
    services: Services = Depends(get_services),
    user: Optional[Dict[str, Any]] = Depends(passive_user),
):
    def load():
        found = services.tours.collection.find_one({**services.tours.definition.default_filter, "slug": slug})
        if found is None:
            raise NotFound("There is no tour with that name.")
        return services.tours.get_one(found["_id"])

    tour = await run_in_threadpool(load)
    return await _page(services, "tour.html", f"{tour['name']} Tour", user, tour=tour)


@router.get("/login")
async def login_form(
    services: Services = Depends(get_services),
    user: Optional[Dict[str, Any]] = Depends(passive_user),
):
    return await _page(services, "login.html", "Log into your account", user)


@router.get("/me")
async def account(services: Services = Depends(get_services), user: Dict[str, Any] = Depends(protect)):
    return await _page(services, "account.html", "Your account", user)


@router.get("/my-tours")
async def my_tours(services: Services = Depends(get_services), user: Dict[str, Any] = Depends(protect)):
    def load():
        bookings = services.store.collection("bookings").find({"user": user["_id"]}).to_list()
        tour_ids = [b["tour"] for b in bookings]
        return services.tours.get_all({}, {"_id": {"$in": tour_ids}}).data

    tours = await run_in_threadpool(load)
    return await _page(services, "overview.html", "My Tours", user, tours=tours)
