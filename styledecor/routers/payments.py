# styledecor/routers/payments.py
from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db import get_db
from ..domain.payments import PaymentReconciliation
from ..security import get_current_actor
from ..policy import Actor
from ..utils import to_id, ok
from ..schemas.payment import PaymentIntentCreate, PaymentConfirm
from ..middleware.rate_limit import apply_rate_limit

router = APIRouter()

def get_reconciliation(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)) -> PaymentReconciliation:
    state = request.app.state
    return PaymentReconciliation(db, state.gateway, currency=state.settings.currency)

@router.post("/create-payment-intent")
async def create_payment_intent(
    request: Request,
    payload: PaymentIntentCreate,
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    # Rate limiting: máximo 10 intents por minuto por IP
    apply_rate_limit(request, "10/minute")
    intent = await payments.begin_payment_intent(current, payload.bookingId, payload.amount)
    return ok(**intent)

@router.post("/confirm-payment")
async def confirm_payment(
    request: Request,
    payload: PaymentConfirm,
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    apply_rate_limit(request, "20/minute")
    payment = await payments.confirm_payment(
        current, payload.bookingId, payload.paymentIntentId, payload.amount, payload.paymentMethod
    )
    return ok(to_id(payment), "Payment confirmed successfully")

@router.get("/history")
async def payment_history(
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    """Pagos del usuario actual, más recientes primero"""
    docs = await payments.history(current)
    return ok([to_id(d) for d in docs], count=len(docs))

@router.get("/all")
async def list_all_payments(
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    """Todos los pagos (admin) con el total recaudado calculado al vuelo"""
    docs, total_revenue = await payments.list_all(current)
    return ok([to_id(d) for d in docs], totalRevenue=total_revenue, count=len(docs))

@router.post("/reconcile/{booking_id}")
async def reconcile_booking_payment(
    booking_id: str,
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    payment, repaired = await payments.reconcile(current, booking_id)
    message = "Missing payment record restored" if repaired else "Booking already reconciled"
    return ok(to_id(payment), message, repaired=repaired)

@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    payments: PaymentReconciliation = Depends(get_reconciliation),
    current: Actor = Depends(get_current_actor),
):
    return ok(to_id(await payments.get_by_id(current, payment_id)))
