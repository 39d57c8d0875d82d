"""
Conciliación entre los payment intents de la pasarela y el estado de pago
de las reservas.

La confirmación escribe en dos colecciones (``bookings`` y ``payments``) sin
transacción. Para que el resultado sea "una sola vez" y coherente:

* ``transactionId`` (el id del intent) tiene índice único; repetir una
  confirmación devuelve el pago ya registrado en lugar de duplicarlo.
* Si falla la inserción del pago tras marcar la reserva como pagada, se
  restaura el estado de pago anterior de la reserva.
* ``reconcile`` repara una reserva pagada que se quedó sin registro de pago.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import ConflictError, NotFoundError, StorageError, ValidationError
from ..gateways import PaymentGateway, to_minor_units
from ..policy import Action, Actor, authorize
from ..schemas.booking import BookingStatus, PaymentStatus
from ..schemas.payment import PaymentRecordStatus
from ..utils import to_object_id
from .bookings import check_transition

logger = logging.getLogger(__name__)


def _valid_amount(amount: Any) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError("Invalid amount")
    # se redondea antes de comparar: 0.004 no es un importe cobrable
    amount = round(float(amount), 2)
    if amount <= 0:
        raise ValidationError("Invalid amount")
    return amount


def _check_amount_matches(booking: dict, amount: float) -> None:
    cost = round(float(booking.get("serviceCost") or 0), 2)
    if amount != cost:
        raise ValidationError(f"Amount {amount} does not match service cost {cost}")


class PaymentReconciliation:

    def __init__(self, db: AsyncIOMotorDatabase, gateway: PaymentGateway, currency: str = "bdt"):
        self.db = db
        self.gateway = gateway
        self.currency = currency

    async def _load_booking(self, booking_oid: ObjectId) -> dict:
        booking = await self.db.bookings.find_one({"_id": booking_oid})
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def begin_payment_intent(self, actor: Actor, booking_id: Any, amount: Any) -> dict:
        amount = _valid_amount(amount)
        if not booking_id:
            raise ValidationError("Booking ID is required")

        booking = await self._load_booking(to_object_id(booking_id, "bookingId"))
        authorize(actor, Action.booking_pay, booking)
        if booking.get("status") == BookingStatus.cancelled.value:
            raise ConflictError("Cannot pay a cancelled booking")
        if booking.get("paymentStatus") == PaymentStatus.paid.value:
            raise ConflictError("Booking is already paid")
        _check_amount_matches(booking, amount)

        intent = await self.gateway.create_intent(
            to_minor_units(amount),
            self.currency,
            {"bookingId": str(booking["_id"]), "userId": actor.id, "userEmail": actor.email},
        )
        logger.info(f"Payment intent {intent.intent_id} created for booking {booking['_id']}")
        return {"clientSecret": intent.client_secret, "paymentIntentId": intent.intent_id}

    async def _mark_paid(self, booking: dict, intent_ref: str) -> None:
        """
        Compare-and-set: solo marca la reserva si sigue sin pagar (o ya está
        pagada con este mismo intent) y no se ha cancelado entre la lectura
        y la escritura.
        """
        res = await self.db.bookings.update_one(
            {
                "_id": booking["_id"],
                "status": {"$ne": BookingStatus.cancelled.value},
                "$or": [
                    {"paymentStatus": {"$ne": PaymentStatus.paid.value}},
                    {"paymentIntentId": intent_ref},
                ],
            },
            {"$set": {
                "paymentStatus": PaymentStatus.paid.value,
                "paymentIntentId": intent_ref,
                "status": BookingStatus.confirmed.value,
                "updatedAt": datetime.utcnow(),
            }},
        )
        if res.matched_count == 1:
            return

        current = await self.db.bookings.find_one({"_id": booking["_id"]})
        if not current:
            raise NotFoundError("Booking not found")
        if current.get("status") == BookingStatus.cancelled.value:
            raise ConflictError("Cannot pay a cancelled booking")
        raise ConflictError("Booking is already paid")

    async def _restore(self, booking: dict) -> None:
        """Deshace _mark_paid dejando los campos de pago como estaban."""
        update: dict = {"$set": {
            "paymentStatus": booking.get("paymentStatus", PaymentStatus.unpaid.value),
            "status": booking.get("status", BookingStatus.pending.value),
            "updatedAt": datetime.utcnow(),
        }}
        if booking.get("paymentIntentId"):
            update["$set"]["paymentIntentId"] = booking["paymentIntentId"]
        else:
            update["$unset"] = {"paymentIntentId": ""}
        await self.db.bookings.update_one({"_id": booking["_id"]}, update)

    async def confirm_payment(
        self,
        actor: Actor,
        booking_id: Any,
        intent_ref: Optional[str],
        amount: Any,
        payment_method: str = "stripe",
    ) -> dict:
        if not booking_id or not intent_ref or amount is None:
            raise ValidationError("Missing required fields")
        amount = _valid_amount(amount)
        booking_oid = to_object_id(booking_id, "bookingId")

        existing = await self.db.payments.find_one({"transactionId": intent_ref})
        if existing:
            if existing.get("bookingId") != booking_oid:
                raise ConflictError("Payment intent already used for another booking")
            booking = await self._load_booking(booking_oid)
            authorize(actor, Action.booking_pay, booking)
            if booking.get("paymentStatus") != PaymentStatus.paid.value:
                check_transition(booking.get("status"), BookingStatus.confirmed)
                await self._mark_paid(booking, intent_ref)
            logger.info(f"Replayed confirmation for {intent_ref}; returning existing payment")
            return existing

        booking = await self._load_booking(booking_oid)
        authorize(actor, Action.booking_pay, booking)
        if booking.get("paymentStatus") == PaymentStatus.paid.value and \
                booking.get("paymentIntentId") not in (None, intent_ref):
            raise ConflictError("Booking is already paid")
        check_transition(booking.get("status"), BookingStatus.confirmed)
        _check_amount_matches(booking, amount)

        await self._mark_paid(booking, intent_ref)

        payment = {
            "userId": ObjectId(actor.id),
            "bookingId": booking_oid,
            "amount": amount,
            "transactionId": intent_ref,
            "status": PaymentRecordStatus.completed.value,
            "paymentMethod": payment_method,
            "userEmail": actor.email,
            "createdAt": datetime.utcnow(),
        }
        try:
            res = await self.db.payments.insert_one(payment)
        except DuplicateKeyError:
            # Otra confirmación concurrente con el mismo intent ganó la carrera
            winner = await self.db.payments.find_one({"transactionId": intent_ref})
            if winner and winner.get("bookingId") == booking_oid:
                return winner
            await self._restore(booking)
            if winner:
                raise ConflictError("Payment intent already used for another booking")
            # índice único de bookingId: la reserva ya tiene otro pago
            raise ConflictError("Booking is already paid")
        except PyMongoError as e:
            logger.error(f"Payment insert failed for booking {booking_oid}: {e}", exc_info=True)
            try:
                await self._restore(booking)
            except PyMongoError:
                logger.error(f"Could not restore booking {booking_oid}; reconcile required", exc_info=True)
            raise StorageError("Failed to record payment") from e

        logger.info(f"Payment {res.inserted_id} confirmed for booking {booking_oid} ({intent_ref})")
        return await self.db.payments.find_one({"_id": res.inserted_id})

    async def reconcile(self, actor: Actor, booking_id: Any) -> tuple[dict, bool]:
        """
        Devuelve (pago, reparado). Si la reserva figura como pagada pero no
        tiene registro en ``payments``, lo crea a partir de la reserva.
        """
        authorize(actor, Action.payment_reconcile)
        booking = await self._load_booking(to_object_id(booking_id, "bookingId"))
        if booking.get("paymentStatus") != PaymentStatus.paid.value:
            raise ConflictError("Booking is not paid")

        existing = await self.db.payments.find_one({"bookingId": booking["_id"]})
        if existing:
            return existing, False

        intent_ref = booking.get("paymentIntentId")
        if not intent_ref:
            raise ConflictError("Booking has no payment reference; manual review required")

        payment = {
            "userId": booking.get("userId"),
            "bookingId": booking["_id"],
            "amount": round(float(booking.get("serviceCost") or 0), 2),
            "transactionId": intent_ref,
            "status": PaymentRecordStatus.completed.value,
            "paymentMethod": "stripe",
            "userEmail": booking.get("userEmail"),
            "reconciled": True,
            "createdAt": datetime.utcnow(),
        }
        try:
            res = await self.db.payments.insert_one(payment)
        except DuplicateKeyError:
            raise ConflictError("Payment reference already recorded for another booking")
        logger.warning(f"Reconciled missing payment for booking {booking['_id']} ({intent_ref})")
        return await self.db.payments.find_one({"_id": res.inserted_id}), True

    # ---------- Lecturas ----------

    async def history(self, actor: Actor) -> list[dict]:
        return await (
            self.db.payments.find({"userId": ObjectId(actor.id)})
            .sort([("createdAt", -1), ("_id", -1)])
            .to_list(None)
        )

    async def list_all(self, actor: Actor) -> tuple[list[dict], float]:
        authorize(actor, Action.payment_list_all)
        docs = await self.db.payments.find({}).sort([("createdAt", -1), ("_id", -1)]).to_list(None)
        total_revenue = round(sum(float(p.get("amount") or 0) for p in docs), 2)
        return docs, total_revenue

    async def get_by_id(self, actor: Actor, payment_id: Any) -> dict:
        payment = await self.db.payments.find_one({"_id": to_object_id(payment_id, "paymentId")})
        if not payment:
            raise NotFoundError("Payment not found")
        authorize(actor, Action.payment_read, payment)
        return payment
