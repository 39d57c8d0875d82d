# styledecor/routers/bookings.py
from fastapi import APIRouter, Depends, status, Query, Request
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db import get_db
from ..domain.bookings import BookingLifecycle
from ..schemas.booking import BookingCreate, BookingUpdate, AssignDecorator, ProjectStatusPatch
from ..utils import to_id, ok, pagination
from ..security import get_current_actor
from ..policy import Actor
from ..middleware.rate_limit import apply_rate_limit

router = APIRouter()

def get_lifecycle(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingLifecycle:
    settings = request.app.state.settings
    return BookingLifecycle(db, enforce_forward_project_status=settings.enforce_forward_project_status)

# ---------- Endpoints ----------

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    # Rate limiting: máximo 15 reservas por minuto por IP
    apply_rate_limit(request, "15/minute")
    doc = await bookings.create(current, payload.serviceId, payload.bookingDate, payload.location, payload.notes)
    return ok(to_id(doc), "Booking created successfully")

@router.get("/my-bookings")
async def list_my_bookings(
    page: int = Query(1),
    limit: int = Query(10),
    sort: str = Query("createdAt"),
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    docs, total = await bookings.list_mine(current, page, limit, sort)
    return ok([to_id(d) for d in docs], pagination=pagination(total, page, limit))

@router.get("/all")
async def list_all_bookings(
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
    paymentStatus: Optional[str] = Query(None),
    sort: str = Query("createdAt"),
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    docs, total = await bookings.list_all(current, status, paymentStatus, page, limit, sort)
    return ok([to_id(d) for d in docs], pagination=pagination(total, page, limit))

@router.get("/decorator/assigned")
async def list_assigned_projects(
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    docs = await bookings.list_assigned(current)
    return ok([to_id(d) for d in docs])

@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    return ok(to_id(await bookings.get(booking_id, current)))

@router.put("/{booking_id}")
async def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    doc = await bookings.update_details(
        booking_id, current,
        booking_date=payload.bookingDate,
        location=payload.location,
        notes=payload.notes,
    )
    return ok(to_id(doc), "Booking updated successfully")

@router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: str,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    doc = await bookings.cancel(booking_id, current)
    return ok(to_id(doc), "Booking cancelled successfully")

@router.post("/{booking_id}/assign-decorator")
async def assign_decorator(
    booking_id: str,
    body: AssignDecorator,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    doc = await bookings.assign_decorator(booking_id, current, body.decoratorId)
    return ok(to_id(doc), "Decorator assigned successfully")

@router.put("/{booking_id}/project-status")
async def update_project_status(
    booking_id: str,
    body: ProjectStatusPatch,
    bookings: BookingLifecycle = Depends(get_lifecycle),
    current: Actor = Depends(get_current_actor),
):
    doc = await bookings.advance_project_status(booking_id, current, body.projectStatus)
    return ok(to_id(doc), "Project status updated successfully")
