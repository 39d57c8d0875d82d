"""
Configuración de pytest para tests
"""
import asyncio
import os
import pytest
from datetime import datetime, timedelta
from dotenv import load_dotenv
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorClient

from styledecor.config import Settings
from styledecor.db import ensure_indexes
from styledecor.domain.bookings import BookingLifecycle
from styledecor.domain.payments import PaymentReconciliation
from styledecor.main import create_app
from styledecor.policy import Actor
from styledecor.schemas.user import Role
from styledecor.security import create_access_token

from tests.fakes import FakeGateway

load_dotenv()

# Con TEST_MONGODB_URI los tests usan un MongoDB real; si no, mongomock-motor
TEST_DB_NAME = os.getenv("TEST_DB_NAME", "styledecor_test")
TEST_MONGODB_URI = os.getenv("TEST_MONGODB_URI")


async def insert_user(db, name: str, email: str, role: str = "user", status: str = "active", **extra) -> Actor:
    now = datetime.utcnow()
    res = await db.users.insert_one({
        "name": name,
        "email": email,
        "password": "not-a-bcrypt-hash",
        "role": role,
        "status": status,
        "createdAt": now,
        "updatedAt": now,
        **extra,
    })
    return Actor(id=str(res.inserted_id), email=email, role=Role(role), name=name)


def patch_collection(monkeypatch, db, collection_name: str, method: str, replacement):
    """
    Sustituye ``method`` solo para ``collection_name``. ``replacement`` recibe
    el método original y la colección: ``async def f(original, coll, *args, **kwargs)``.
    Se parchea la clase porque la base de datos puede crear un objeto
    colección nuevo en cada acceso.
    """
    cls = type(db[collection_name])
    original = getattr(cls, method)

    async def wrapper(self, *args, **kwargs):
        if self.name == collection_name:
            return await replacement(original, self, *args, **kwargs)
        return await original(self, *args, **kwargs)

    monkeypatch.setattr(cls, method, wrapper)


def yield_on_round_trips(monkeypatch, db, collection_names=("bookings", "payments")):
    """Cada lectura o escritura cede el event loop antes de ejecutarse, como con motor."""
    async def suspended(original, coll, *args, **kwargs):
        await asyncio.sleep(0)
        return await original(coll, *args, **kwargs)

    for name in collection_names:
        for method in ("find_one", "insert_one", "update_one"):
            patch_collection(monkeypatch, db, name, method, suspended)


@pytest.fixture
async def db():
    """Base de datos de test con los mismos índices que la real"""
    if TEST_MONGODB_URI:
        client = AsyncIOMotorClient(TEST_MONGODB_URI)
        await client.drop_database(TEST_DB_NAME)
    else:
        client = AsyncMongoMockClient()
    database = client[TEST_DB_NAME]
    await ensure_indexes(database)
    yield database
    if TEST_MONGODB_URI:
        await client.drop_database(TEST_DB_NAME)
        client.close()


@pytest.fixture
def gateway():
    return FakeGateway(intent_id="pi_123")


@pytest.fixture
def settings():
    return Settings(env="test", payment_gateway="mock")


@pytest.fixture
def app(settings, db, gateway):
    application = create_app(settings=settings, db=db, gateway=gateway)
    # Deshabilitar rate limiting en los tests
    application.state.limiter = None
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    def _headers(actor: Actor) -> dict:
        token = create_access_token(actor.id, actor.email, actor.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def owner(db):
    return await insert_user(db, "Olivia Owner", "owner@example.com")


@pytest.fixture
async def other_user(db):
    return await insert_user(db, "Oscar Other", "other@example.com")


@pytest.fixture
async def admin(db):
    return await insert_user(db, "Ada Admin", "admin@example.com", role="admin")


@pytest.fixture
async def decorator(db):
    return await insert_user(
        db, "Dana Decorator", "dana@example.com", role="decorator",
        decoratorInfo={"specialty": "Wedding", "experience": 4, "rating": 4.9, "totalProjects": 0},
    )


@pytest.fixture
async def other_decorator(db):
    return await insert_user(
        db, "Diego Decorator", "diego@example.com", role="decorator",
        decoratorInfo={"specialty": "Birthday", "experience": 2, "rating": 4.1, "totalProjects": 0},
    )


@pytest.fixture
async def service(db):
    """Servicio del catálogo con coste 50000"""
    now = datetime.utcnow()
    res = await db.services.insert_one({
        "service_name": "Wedding Stage Decoration",
        "cost": 50000.0,
        "unit": "per event",
        "service_category": "wedding",
        "description": "Stage and floral arrangements",
        "status": "active",
        "createdAt": now,
        "updatedAt": now,
    })
    return await db.services.find_one({"_id": res.inserted_id})


@pytest.fixture
def next_week():
    return datetime.utcnow() + timedelta(days=7)


@pytest.fixture
def lifecycle(db):
    return BookingLifecycle(db)


@pytest.fixture
def reconciliation(db, gateway):
    return PaymentReconciliation(db, gateway, currency="bdt")


@pytest.fixture
async def booking(lifecycle, owner, service, next_week):
    """Reserva recién creada por `owner`"""
    return await lifecycle.create(owner, str(service["_id"]), next_week, "Dhaka, Gulshan 2", "Blue theme")


@pytest.fixture
async def paid_booking(reconciliation, owner, booking):
    await reconciliation.confirm_payment(owner, str(booking["_id"]), "pi_123", 50000)
    return await reconciliation.db.bookings.find_one({"_id": booking["_id"]})
