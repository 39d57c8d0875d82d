# styledecor/routers/dev.py
# Endpoint de desarrollo para crear datos de prueba
from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
import logging

from ..db import get_db
from ..security import hash_password
from ..schemas.service import DEFAULT_SERVICE_IMAGE
from ..schemas.user import Role, UserStatus
from ..utils import ok

logger = logging.getLogger(__name__)

router = APIRouter()

SAMPLE_SERVICES = [
    {"service_name": "Wedding Stage Decoration", "cost": 50000, "unit": "per event",
     "service_category": "wedding", "description": "Stage, entrance and floral arrangements."},
    {"service_name": "Birthday Party Setup", "cost": 12000, "unit": "per event",
     "service_category": "birthday", "description": "Balloons, backdrop and table decoration."},
    {"service_name": "Home Interior Styling", "cost": 800, "unit": "per sq-ft",
     "service_category": "home", "description": "Furniture layout, lighting and accessories."},
    {"service_name": "Corporate Event Decoration", "cost": 35000, "unit": "per event",
     "service_category": "office", "description": "Branding, stage and seating for corporate events."},
]

async def _ensure_user(db: AsyncIOMotorDatabase, doc: dict) -> bool:
    if await db.users.find_one({"email": doc["email"]}):
        return False
    await db.users.insert_one(doc)
    return True

@router.post("/seed-data")
async def seed_data(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Crea el admin, un decorador de ejemplo y algunos servicios.
    Solo para desarrollo; lo que ya existe no se toca.
    """
    settings = request.app.state.settings
    now = datetime.utcnow()
    created = {"users": 0, "services": 0}

    admin = {
        "name": "StyleDecor Admin",
        "email": settings.admin_email.lower(),
        "password": hash_password(settings.admin_password),
        "photoURL": "",
        "role": Role.admin.value,
        "status": UserStatus.active.value,
        "createdAt": now,
        "updatedAt": now,
    }
    decorator = {
        "name": "Sample Decorator",
        "email": "decorator@styledecor.com",
        "password": hash_password("decorator123"),
        "photoURL": "",
        "role": Role.decorator.value,
        "status": UserStatus.active.value,
        "decoratorInfo": {"specialty": "Wedding", "experience": 5, "rating": 4.8, "totalProjects": 0},
        "createdAt": now,
        "updatedAt": now,
    }
    for doc in (admin, decorator):
        if await _ensure_user(db, doc):
            created["users"] += 1

    for svc in SAMPLE_SERVICES:
        if await db.services.find_one({"service_name": svc["service_name"]}):
            continue
        await db.services.insert_one({
            **svc,
            "image": DEFAULT_SERVICE_IMAGE,
            "createdByEmail": admin["email"],
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        })
        created["services"] += 1

    logger.info(f"Seed data: {created}")
    return ok(created, "Seed data created")
