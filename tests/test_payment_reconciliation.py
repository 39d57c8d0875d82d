"""
Tests de conciliación de pagos (sin HTTP)
"""
import asyncio

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from styledecor.errors import (
    ConflictError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    StorageError,
    ValidationError,
)

from tests.conftest import insert_user, patch_collection, yield_on_round_trips


async def test_full_payment_scenario(reconciliation, db, gateway, owner, booking):
    booking_id = str(booking["_id"])

    intent = await reconciliation.begin_payment_intent(owner, booking_id, 50000)
    assert intent == {"clientSecret": "pi_123_secret_test", "paymentIntentId": "pi_123"}
    assert gateway.calls[0]["amount_minor"] == 5_000_000
    assert gateway.calls[0]["currency"] == "bdt"
    assert gateway.calls[0]["metadata"]["bookingId"] == booking_id

    # crear el intent no toca la reserva
    untouched = await db.bookings.find_one({"_id": booking["_id"]})
    assert untouched["paymentStatus"] == "unpaid"

    payment = await reconciliation.confirm_payment(owner, booking_id, "pi_123", 50000)
    assert payment["amount"] == 50000
    assert payment["transactionId"] == "pi_123"
    assert payment["status"] == "completed"
    assert payment["userId"] == ObjectId(owner.id)

    paid = await db.bookings.find_one({"_id": booking["_id"]})
    assert paid["paymentStatus"] == "paid"
    assert paid["status"] == "confirmed"
    assert paid["paymentIntentId"] == "pi_123"
    assert await db.payments.count_documents({"bookingId": booking["_id"]}) == 1


async def test_replayed_confirmation_records_one_payment(reconciliation, db, owner, booking):
    first = await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 50000)
    second = await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 50000)
    assert second["_id"] == first["_id"]
    assert await db.payments.count_documents({"transactionId": "pi_123"}) == 1


async def test_unique_transaction_index_rejects_a_blind_second_insert(db, owner, paid_booking):
    # Lo que hacía la confirmación original: insertar sin comprobar nada
    with pytest.raises(DuplicateKeyError):
        await db.payments.insert_one({
            "userId": ObjectId(owner.id),
            "bookingId": paid_booking["_id"],
            "amount": 50000,
            "transactionId": "pi_123",
            "status": "completed",
        })
    assert await db.payments.count_documents({}) == 1


async def test_same_intent_for_another_booking_conflicts(reconciliation, lifecycle, owner, service, next_week, paid_booking):
    second = await lifecycle.create(owner, str(service["_id"]), next_week, "Sylhet")
    with pytest.raises(ConflictError):
        await reconciliation.confirm_payment(owner, str(second["_id"]), "pi_123", 50000)


async def test_second_intent_on_paid_booking_conflicts(reconciliation, owner, paid_booking):
    with pytest.raises(ConflictError):
        await reconciliation.confirm_payment(owner, str(paid_booking["_id"]), "pi_other", 50000)
    with pytest.raises(ConflictError):
        await reconciliation.begin_payment_intent(owner, str(paid_booking["_id"]), 50000)


@pytest.mark.parametrize("amount", [0, -10, None, "50000", True])
async def test_begin_intent_rejects_bad_amount(reconciliation, owner, booking, amount):
    with pytest.raises(ValidationError):
        await reconciliation.begin_payment_intent(owner, str(booking["_id"]), amount)


async def test_begin_intent_requires_booking(reconciliation, owner):
    with pytest.raises(ValidationError):
        await reconciliation.begin_payment_intent(owner, None, 100)
    with pytest.raises(NotFoundError):
        await reconciliation.begin_payment_intent(owner, "507f1f77bcf86cd799439011", 100)


async def test_begin_intent_amount_must_match_cost(reconciliation, owner, booking):
    with pytest.raises(ValidationError):
        await reconciliation.begin_payment_intent(owner, str(booking["_id"]), 100)


async def test_begin_intent_by_stranger_is_forbidden(reconciliation, other_user, booking):
    with pytest.raises(ForbiddenError):
        await reconciliation.begin_payment_intent(other_user, str(booking["_id"]), 50000)


async def test_begin_intent_on_cancelled_booking_conflicts(reconciliation, lifecycle, owner, booking):
    await lifecycle.cancel(str(booking["_id"]), owner)
    with pytest.raises(ConflictError):
        await reconciliation.begin_payment_intent(owner, str(booking["_id"]), 50000)


async def test_gateway_failure_propagates(reconciliation, gateway, db, owner, booking):
    gateway.error = GatewayError("Failed to create payment intent")
    with pytest.raises(GatewayError):
        await reconciliation.begin_payment_intent(owner, str(booking["_id"]), 50000)
    after = await db.bookings.find_one({"_id": booking["_id"]})
    assert after["paymentStatus"] == "unpaid"


async def test_confirm_validates_input(reconciliation, owner, booking):
    with pytest.raises(ValidationError):
        await reconciliation.confirm_payment(owner, str(booking["_id"]), None, 50000)
    with pytest.raises(ValidationError):
        await reconciliation.confirm_payment(owner, None, "pi_123", 50000)
    with pytest.raises(ValidationError):
        await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 49999)


async def test_confirm_missing_booking(reconciliation, owner):
    with pytest.raises(NotFoundError):
        await reconciliation.confirm_payment(owner, "507f1f77bcf86cd799439011", "pi_123", 50000)


async def test_failed_payment_insert_restores_booking(reconciliation, db, owner, booking, monkeypatch):
    calls = []

    async def fail_once(original, coll, *args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise PyMongoError("connection reset")
        return await original(coll, *args, **kwargs)
    patch_collection(monkeypatch, db, "payments", "insert_one", fail_once)

    with pytest.raises(StorageError):
        await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 50000)

    after = await db.bookings.find_one({"_id": booking["_id"]})
    assert after["paymentStatus"] == "unpaid"
    assert after["status"] == "pending"
    assert "paymentIntentId" not in after
    assert await db.payments.count_documents({}) == 0

    # el cliente puede reintentar con el mismo intent
    payment = await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 50000)
    assert payment["transactionId"] == "pi_123"


async def test_replay_repairs_booking_left_unpaid(reconciliation, db, owner, paid_booking):
    await db.bookings.update_one(
        {"_id": paid_booking["_id"]},
        {"$set": {"paymentStatus": "unpaid", "status": "pending"}},
    )
    await reconciliation.confirm_payment(owner, str(paid_booking["_id"]), "pi_123", 50000)
    after = await db.bookings.find_one({"_id": paid_booking["_id"]})
    assert after["paymentStatus"] == "paid"
    assert after["status"] == "confirmed"
    assert await db.payments.count_documents({}) == 1


async def test_replay_does_not_reopen_a_cancelled_booking(reconciliation, db, owner, paid_booking):
    # pago registrado pero la reserva quedó sin pagar y después se canceló
    await db.bookings.update_one(
        {"_id": paid_booking["_id"]},
        {"$set": {"paymentStatus": "unpaid", "status": "cancelled"}},
    )
    with pytest.raises(ConflictError):
        await reconciliation.confirm_payment(owner, str(paid_booking["_id"]), "pi_123", 50000)
    after = await db.bookings.find_one({"_id": paid_booking["_id"]})
    assert after["status"] == "cancelled"
    assert after["paymentStatus"] == "unpaid"


async def test_concurrent_confirmations_with_different_intents(reconciliation, db, owner, booking, monkeypatch):
    yield_on_round_trips(monkeypatch, db)
    booking_id = str(booking["_id"])

    results = await asyncio.gather(
        reconciliation.confirm_payment(owner, booking_id, "pi_A", 50000),
        reconciliation.confirm_payment(owner, booking_id, "pi_B", 50000),
        return_exceptions=True,
    )

    payments = [r for r in results if isinstance(r, dict)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(payments) == 1
    assert len(conflicts) == 1
    assert await db.payments.count_documents({"bookingId": booking["_id"]}) == 1

    after = await db.bookings.find_one({"_id": booking["_id"]})
    assert after["paymentStatus"] == "paid"
    assert after["paymentIntentId"] == payments[0]["transactionId"]


async def test_concurrent_replays_of_one_intent(reconciliation, db, owner, booking, monkeypatch):
    yield_on_round_trips(monkeypatch, db)
    booking_id = str(booking["_id"])

    first, second = await asyncio.gather(
        reconciliation.confirm_payment(owner, booking_id, "pi_123", 50000),
        reconciliation.confirm_payment(owner, booking_id, "pi_123", 50000),
    )
    assert first["_id"] == second["_id"]
    assert await db.payments.count_documents({}) == 1


async def test_confirm_racing_a_cancel(reconciliation, lifecycle, db, owner, booking, monkeypatch):
    yield_on_round_trips(monkeypatch, db)
    booking_id = str(booking["_id"])

    results = await asyncio.gather(
        reconciliation.confirm_payment(owner, booking_id, "pi_123", 50000),
        lifecycle.cancel(booking_id, owner),
        return_exceptions=True,
    )
    assert sum(isinstance(r, ConflictError) for r in results) == 1

    after = await db.bookings.find_one({"_id": booking["_id"]})
    payments = await db.payments.count_documents({})
    # o pagada y confirmada con su pago, o cancelada sin pago
    assert (after["status"], after["paymentStatus"], payments) in [
        ("confirmed", "paid", 1),
        ("cancelled", "unpaid", 0),
    ]


async def test_sub_cent_amount_is_rejected(reconciliation, lifecycle, db, gateway, owner, next_week):
    free = await db.services.insert_one({
        "service_name": "Free consultation", "cost": 0, "service_category": "home", "status": "active",
    })
    created = await lifecycle.create(owner, str(free.inserted_id), next_week, "Dhaka")

    with pytest.raises(ValidationError):
        await reconciliation.begin_payment_intent(owner, str(created["_id"]), 0.004)
    with pytest.raises(ValidationError):
        await reconciliation.confirm_payment(owner, str(created["_id"]), "pi_123", 0.004)
    assert gateway.calls == []
    assert await db.payments.count_documents({}) == 0


async def test_unique_booking_index_rejects_a_second_payment(db, owner, paid_booking):
    with pytest.raises(DuplicateKeyError):
        await db.payments.insert_one({
            "userId": ObjectId(owner.id),
            "bookingId": paid_booking["_id"],
            "amount": 50000,
            "transactionId": "pi_other",
            "status": "completed",
        })


# ---------- Reconcile ----------

async def test_reconcile_restores_missing_payment(reconciliation, db, admin, owner, booking):
    # Estado que dejaba la confirmación original si fallaba el segundo write
    await db.bookings.update_one(
        {"_id": booking["_id"]},
        {"$set": {"paymentStatus": "paid", "status": "confirmed", "paymentIntentId": "pi_lost"}},
    )
    payment, repaired = await reconciliation.reconcile(admin, str(booking["_id"]))
    assert repaired is True
    assert payment["transactionId"] == "pi_lost"
    assert payment["amount"] == 50000
    assert payment["userId"] == ObjectId(owner.id)

    again, repaired = await reconciliation.reconcile(admin, str(booking["_id"]))
    assert repaired is False
    assert again["_id"] == payment["_id"]


async def test_reconcile_rules(reconciliation, db, admin, owner, booking):
    with pytest.raises(ForbiddenError):
        await reconciliation.reconcile(owner, str(booking["_id"]))
    with pytest.raises(ConflictError):
        await reconciliation.reconcile(admin, str(booking["_id"]))
    await db.bookings.update_one({"_id": booking["_id"]}, {"$set": {"paymentStatus": "paid"}})
    with pytest.raises(ConflictError):
        await reconciliation.reconcile(admin, str(booking["_id"]))


# ---------- Lecturas ----------

async def test_history_lists_only_own_payments_newest_first(reconciliation, lifecycle, db, owner, other_user, service, next_week):
    first = await lifecycle.create(owner, str(service["_id"]), next_week, "Dhaka")
    second = await lifecycle.create(owner, str(service["_id"]), next_week, "Khulna")
    theirs = await lifecycle.create(other_user, str(service["_id"]), next_week, "Rajshahi")
    p1 = await reconciliation.confirm_payment(owner, str(first["_id"]), "pi_1", 50000)
    p2 = await reconciliation.confirm_payment(owner, str(second["_id"]), "pi_2", 50000)
    await reconciliation.confirm_payment(other_user, str(theirs["_id"]), "pi_3", 50000)

    history = await reconciliation.history(owner)
    assert [p["_id"] for p in history] == [p2["_id"], p1["_id"]]


async def test_list_all_sums_revenue(reconciliation, lifecycle, db, owner, admin, service, next_week):
    for ref in ("pi_a", "pi_b", "pi_c"):
        b = await lifecycle.create(owner, str(service["_id"]), next_week, "Dhaka")
        await reconciliation.confirm_payment(owner, str(b["_id"]), ref, 50000)

    docs, total_revenue = await reconciliation.list_all(admin)
    assert len(docs) == 3
    assert total_revenue == 150000

    with pytest.raises(ForbiddenError):
        await reconciliation.list_all(owner)


async def test_get_by_id_access(reconciliation, db, owner, other_user, admin, paid_booking):
    payment = await db.payments.find_one({"transactionId": "pi_123"})
    payment_id = str(payment["_id"])

    assert (await reconciliation.get_by_id(owner, payment_id))["_id"] == payment["_id"]
    assert (await reconciliation.get_by_id(admin, payment_id))["_id"] == payment["_id"]
    with pytest.raises(ForbiddenError):
        await reconciliation.get_by_id(other_user, payment_id)
    with pytest.raises(NotFoundError):
        await reconciliation.get_by_id(owner, "507f1f77bcf86cd799439011")
    with pytest.raises(ValidationError):
        await reconciliation.get_by_id(owner, "nope")


async def test_admin_can_confirm_on_behalf_of_owner(reconciliation, db, admin, booking):
    payment = await reconciliation.confirm_payment(admin, str(booking["_id"]), "pi_cash", 50000, "cash")
    assert payment["paymentMethod"] == "cash"


async def test_unrelated_decorator_cannot_pay(reconciliation, db, booking):
    stranger = await insert_user(db, "Dee", "dee@example.com", role="decorator")
    with pytest.raises(ForbiddenError):
        await reconciliation.confirm_payment(stranger, str(booking["_id"]), "pi_x", 50000)
