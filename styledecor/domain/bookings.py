"""Ciclo de vida de una reserva: creación, cambios, cancelación, asignación y avance del proyecto."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..errors import ConflictError, NotFoundError, ValidationError
from ..policy import Action, Actor, authorize
from ..schemas.booking import (
    BOOKING_SORT_KEYS,
    BOOKING_TRANSITIONS,
    PROJECT_STATUS_ORDER,
    BookingStatus,
    PaymentStatus,
    ProjectStatus,
)
from ..schemas.user import Role, UserStatus
from ..utils import page_window, to_object_id

logger = logging.getLogger(__name__)


def parse_booking_date(value: Any) -> datetime:
    """Fecha de reserva en UTC naive (como la devuelve Mongo), siempre futura."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid booking date: {value}")
    else:
        raise ValidationError("Booking date is required")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    if dt <= datetime.utcnow():
        raise ValidationError("Booking date must be in the future")
    return dt


def check_transition(current: Any, target: BookingStatus) -> None:
    """Valida `status` contra BOOKING_TRANSITIONS. Repetir el estado actual no es un cambio."""
    try:
        old = BookingStatus(current)
    except ValueError:
        raise ConflictError(f"Unknown booking status: {current}")
    if old == target:
        return
    if target not in BOOKING_TRANSITIONS[old]:
        raise ConflictError(f"Invalid status transition: {old.value} → {target.value}")


class BookingLifecycle:
    """
    Reglas de negocio sobre la colección ``bookings``.

    Recibe la base de datos ya construida; no abre conexiones propias.
    """

    def __init__(self, db: AsyncIOMotorDatabase, enforce_forward_project_status: bool = False):
        self.db = db
        self.enforce_forward_project_status = enforce_forward_project_status

    async def _load(self, booking_id: Any) -> dict:
        booking = await self.db.bookings.find_one({"_id": to_object_id(booking_id, "bookingId")})
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def _set(self, booking: dict, fields: dict) -> dict:
        fields["updatedAt"] = datetime.utcnow()
        res = await self.db.bookings.update_one({"_id": booking["_id"]}, {"$set": fields})
        if res.matched_count == 0:
            raise NotFoundError("Booking not found")
        return await self.db.bookings.find_one({"_id": booking["_id"]})

    # ---------- Mutaciones ----------

    async def create(
        self,
        actor: Actor,
        service_id: Any,
        booking_date: Any,
        location: str,
        notes: Optional[str] = None,
    ) -> dict:
        try:
            service_oid = to_object_id(service_id, "serviceId")
        except ValidationError:
            raise ValidationError("Service not found")
        service = await self.db.services.find_one({"_id": service_oid})
        if not service or service.get("status", "active") != "active":
            raise ValidationError("Service not found")

        when = parse_booking_date(booking_date)
        if not location or not location.strip():
            raise ValidationError("Location is required")

        now = datetime.utcnow()
        doc = {
            "serviceId": service["_id"],
            "serviceName": service.get("service_name"),
            "serviceCost": float(service.get("cost", 0)),
            "bookingDate": when,
            "location": location.strip(),
            "notes": notes or "",
            "userId": ObjectId(actor.id),
            "userEmail": actor.email,
            "userName": actor.name,
            "status": BookingStatus.pending.value,
            "paymentStatus": PaymentStatus.unpaid.value,
            "projectStatus": None,
            "assignedDecorator": None,
            "createdAt": now,
            "updatedAt": now,
        }
        res = await self.db.bookings.insert_one(doc)
        logger.info(f"Booking {res.inserted_id} created by {actor.email} for service {service_oid}")
        return await self.db.bookings.find_one({"_id": res.inserted_id})

    async def update_details(
        self,
        booking_id: Any,
        actor: Actor,
        booking_date: Any = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        booking = await self._load(booking_id)
        authorize(actor, Action.booking_update, booking)

        fields: dict = {}
        if booking_date is not None:
            fields["bookingDate"] = parse_booking_date(booking_date)
        if location is not None:
            if not location.strip():
                raise ValidationError("Location cannot be empty")
            fields["location"] = location.strip()
        if notes is not None:
            fields["notes"] = notes
        return await self._set(booking, fields)

    async def cancel(self, booking_id: Any, actor: Actor) -> dict:
        booking = await self._load(booking_id)
        authorize(actor, Action.booking_cancel, booking)

        if booking.get("paymentStatus") == PaymentStatus.paid.value:
            raise ConflictError("Cannot cancel paid booking. Contact admin for refund.")
        if booking.get("status") == BookingStatus.cancelled.value:
            raise ConflictError("Booking is already cancelled")
        check_transition(booking.get("status"), BookingStatus.cancelled)

        # Un pago confirmado entre la lectura y la escritura gana a la cancelación
        res = await self.db.bookings.update_one(
            {"_id": booking["_id"], "paymentStatus": {"$ne": PaymentStatus.paid.value}},
            {"$set": {"status": BookingStatus.cancelled.value, "updatedAt": datetime.utcnow()}},
        )
        if res.matched_count == 0:
            raise ConflictError("Cannot cancel paid booking. Contact admin for refund.")
        updated = await self.db.bookings.find_one({"_id": booking["_id"]})
        logger.info(f"Booking {booking['_id']} cancelled by {actor.email}")
        return updated

    async def assign_decorator(self, booking_id: Any, actor: Actor, decorator_id: Any) -> dict:
        authorize(actor, Action.booking_assign)
        booking = await self._load(booking_id)

        if booking.get("paymentStatus") != PaymentStatus.paid.value:
            raise ConflictError("Cannot assign decorator to unpaid booking")
        check_transition(booking.get("status"), BookingStatus.confirmed)

        decorator = await self.db.users.find_one(
            {"_id": to_object_id(decorator_id, "decoratorId")}, {"password": 0}
        )
        if not decorator:
            raise NotFoundError("Decorator not found")
        if decorator.get("role") != Role.decorator.value:
            raise ValidationError("User is not a decorator")
        if decorator.get("status", UserStatus.active.value) != UserStatus.active.value:
            raise ValidationError("Decorator account is disabled")

        updated = await self._set(booking, {
            "assignedDecorator": {
                "id": decorator["_id"],
                "name": decorator.get("name"),
                "email": decorator["email"],
            },
            "projectStatus": ProjectStatus.assigned.value,
            "status": BookingStatus.confirmed.value,
        })
        logger.info(f"Decorator {decorator['email']} assigned to booking {booking['_id']}")
        return updated

    async def advance_project_status(self, booking_id: Any, actor: Actor, new_status: Any) -> dict:
        try:
            target = ProjectStatus(new_status)
        except ValueError:
            raise ValidationError("Invalid project status")

        booking = await self._load(booking_id)
        authorize(actor, Action.booking_advance, booking)

        if not booking.get("assignedDecorator"):
            raise ConflictError("Booking has no assigned decorator")

        if self.enforce_forward_project_status and booking.get("projectStatus"):
            try:
                current = ProjectStatus(booking["projectStatus"])
            except ValueError:
                current = None
            if current and PROJECT_STATUS_ORDER.index(target) < PROJECT_STATUS_ORDER.index(current):
                raise ConflictError(
                    f"Project status cannot move back from {current.value} to {target.value}"
                )

        updated = await self._set(booking, {"projectStatus": target.value})
        if target == ProjectStatus.completed:
            logger.info(f"Booking {booking['_id']} completed by {actor.email}")
        return updated

    # ---------- Lecturas ----------

    async def get(self, booking_id: Any, actor: Actor) -> dict:
        booking = await self._load(booking_id)
        authorize(actor, Action.booking_read, booking)
        return booking

    async def _page(self, query: dict, page: int, limit: int, sort: str) -> tuple[list[dict], int]:
        if sort not in BOOKING_SORT_KEYS:
            raise ValidationError(f"Invalid sort key: {sort}")
        skip, limit = page_window(page, limit)
        total = await self.db.bookings.count_documents(query)
        # _id creciente = orden de inserción, desempata claves iguales
        docs = await (
            self.db.bookings.find(query)
            .sort([(sort, -1), ("_id", 1)])
            .skip(skip)
            .limit(limit)
            .to_list(limit)
        )
        return docs, total

    async def list_mine(
        self, actor: Actor, page: int = 1, limit: int = 10, sort: str = "createdAt"
    ) -> tuple[list[dict], int]:
        query = {"$or": [{"userId": ObjectId(actor.id)}, {"userEmail": actor.email}]}
        return await self._page(query, page, limit, sort)

    async def list_all(
        self,
        actor: Actor,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort: str = "createdAt",
    ) -> tuple[list[dict], int]:
        authorize(actor, Action.booking_list_all)
        query: dict = {}
        if status:
            try:
                query["status"] = BookingStatus(status).value
            except ValueError:
                raise ValidationError(f"Invalid status filter: {status}")
        if payment_status:
            try:
                query["paymentStatus"] = PaymentStatus(payment_status).value
            except ValueError:
                raise ValidationError(f"Invalid paymentStatus filter: {payment_status}")
        return await self._page(query, page, limit, sort)

    async def list_assigned(self, actor: Actor) -> list[dict]:
        authorize(actor, Action.booking_list_assigned)
        return await (
            self.db.bookings.find({"assignedDecorator.email": actor.email})
            .sort([("bookingDate", -1), ("_id", 1)])
            .to_list(None)
        )
