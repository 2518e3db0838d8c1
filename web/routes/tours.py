"""Tour routes, including reports"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from tourhub.auth.access import TOUR_MANAGERS, TOUR_PLANNERS
from tourhub.reports import distances, monthly_plan, tour_stats, tours_within
from tourhub.resources import TOURS
from tourhub.services import process_tour_images

from ..deps import require_roles
from ..responses import no_content, query_params, read_body, read_upload, success
from ..state import Services, get_services

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])

TOP_CHEAP_DEFAULTS = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


async def _list(services: Services, params: Dict[str, Any]):
    result = await run_in_threadpool(services.tours.get_all, params)
    return success({"data": result.data}, results=result.results)


@router.get("")
async def get_all_tours(request: Request, services: Services = Depends(get_services)):
    return await _list(services, query_params(request, TOURS.repeatable_params))


@router.get("/top-5-cheap")
async def top_five_cheap(request: Request, services: Services = Depends(get_services)):
    """Best-rated cheap tours; query parameters may still override the defaults"""
    params = {**TOP_CHEAP_DEFAULTS, **query_params(request, TOURS.repeatable_params)}
    return await _list(services, params)


@router.get("/tour-stats")
async def get_tour_stats(services: Services = Depends(get_services)):
    stats = await run_in_threadpool(tour_stats, services.tours.collection)
    return success({"stats": stats})


@router.get("/monthly-plan/{year}", dependencies=[Depends(require_roles(TOUR_PLANNERS))])
async def get_monthly_plan(year: int, services: Services = Depends(get_services)):
    plan = await run_in_threadpool(monthly_plan, services.tours.collection, year)
    return success({"plan": plan})


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
async def get_tours_within(distance: float, latlng: str, unit: str, services: Services = Depends(get_services)):
    rows = await run_in_threadpool(tours_within, services.tours.collection, distance, latlng, unit)
    rows = [services.tours.present(row) for row in rows]
    return success({"data": rows}, results=len(rows))


@router.get("/distances/{latlng}/unit/{unit}")
async def get_distances(latlng: str, unit: str, services: Services = Depends(get_services)):
    rows = await run_in_threadpool(distances, services.tours.collection, latlng, unit)
    return success({"data": rows})


@router.post("", dependencies=[Depends(require_roles(TOUR_MANAGERS))])
async def create_tour(request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    tour = await run_in_threadpool(services.tours.create, payload)
    return success({"data": tour}, status_code=201)


@router.get("/{tour_id}")
async def get_tour(tour_id: str, services: Services = Depends(get_services)):
    tour = await run_in_threadpool(services.tours.get_one, tour_id)
    return success({"data": tour})


@router.patch("/{tour_id}", dependencies=[Depends(require_roles(TOUR_MANAGERS))])
async def update_tour(tour_id: str, request: Request, services: Services = Depends(get_services)):
    """JSON patch, or multipart with optional ``imageCover`` and ``images`` uploads"""
    payload, files = await read_body(request)
    covers = files.get("imageCover", [])
    cover = await read_upload(covers[0]) if covers else None
    images = [await read_upload(upload) for upload in files.get("images", [])]
    if cover or images:
        payload.update(await run_in_threadpool(process_tour_images, services.images, tour_id, cover, images))
    tour = await run_in_threadpool(services.tours.update, tour_id, payload)
    return success({"data": tour})


@router.delete("/{tour_id}", dependencies=[Depends(require_roles(TOUR_MANAGERS))])
async def delete_tour(tour_id: str, services: Services = Depends(get_services)):
    await run_in_threadpool(services.tours.delete, tour_id)
    return no_content()
