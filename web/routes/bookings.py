"""Booking routes: checkout for users, CRUD for managers"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from tourhub.auth.access import BOOKING_MANAGERS

from ..deps import protect, require_roles
from ..responses import no_content, query_params, read_body, success
from ..state import Services, get_services

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])
managers = [Depends(require_roles(BOOKING_MANAGERS))]


@router.get("/checkout-session/{tour_id}")
async def get_checkout_session(
    tour_id: str,
    request: Request,
    services: Services = Depends(get_services),
    user: Dict[str, Any] = Depends(protect),
):
    base_url = str(request.base_url)
    session = await run_in_threadpool(services.bookings.create_checkout, tour_id, user, base_url)
    return success(session=session._asdict())


@router.get("", dependencies=managers)
async def get_all_bookings(request: Request, services: Services = Depends(get_services)):
    result = await run_in_threadpool(services.handlers["bookings"].get_all, query_params(request))
    return success({"data": result.data}, results=result.results)


@router.post("", dependencies=managers)
async def create_booking(request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    booking = await run_in_threadpool(services.handlers["bookings"].create, payload)
    return success({"data": booking}, status_code=201)


@router.get("/{booking_id}", dependencies=managers)
async def get_booking(booking_id: str, services: Services = Depends(get_services)):
    booking = await run_in_threadpool(services.handlers["bookings"].get_one, booking_id)
    return success({"data": booking})


@router.patch("/{booking_id}", dependencies=managers)
async def update_booking(booking_id: str, request: Request, services: Services = Depends(get_services)):
    payload, _ = await read_body(request)
    booking = await run_in_threadpool(services.handlers["bookings"].update, booking_id, payload)
    return success({"data": booking})


@router.delete("/{booking_id}", dependencies=managers)
async def delete_booking(booking_id: str, services: Services = Depends(get_services)):
    await run_in_threadpool(services.handlers["bookings"].delete, booking_id)
    return no_content()
