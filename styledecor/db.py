from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .config import Settings


def create_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.mongodb_uri)


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.users.create_index("email", unique=True)
    await db.users.create_index([("role", ASCENDING), ("status", ASCENDING)])
    await db.services.create_index([("service_category", ASCENDING)])
    await db.bookings.create_index([("userId", ASCENDING)])
    await db.bookings.create_index([("assignedDecorator.email", ASCENDING)])
    await db.bookings.create_index([("createdAt", DESCENDING)])
    await db.payments.create_index([("userId", ASCENDING)])
    # Un único pago por reserva
    await db.payments.create_index("bookingId", unique=True)
    # Una confirmación por payment intent
    await db.payments.create_index("transactionId", unique=True)


def get_db(request: Request) -> AsyncIOMotorDatabase:
    """La base de datos la crea la app (ver main.create_app) y vive en app.state."""
    return request.app.state.db
