from fastapi import APIRouter, Depends, status, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from bson import ObjectId
import logging

from ..db import get_db
from ..errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from ..security import hash_password, verify_password, create_access_token, get_current_actor
from ..policy import Actor
from ..schemas.user import Register, Login, Role, UserStatus
from ..utils import to_id, ok
from ..middleware.rate_limit import apply_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter()

def public_user(doc: dict) -> dict:
    """Usuario sin el hash de la contraseña, con userId como en el front."""
    d = to_id(doc)
    d.pop("password", None)
    d["userId"] = d.get("id")
    return d

def _token_response(user: dict) -> dict:
    token = create_access_token(str(user["_id"]), user["email"], user.get("role", Role.user.value))
    return ok(token=token, access_token=token, token_type="bearer", user=public_user(user))

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: Request, payload: Register, db: AsyncIOMotorDatabase = Depends(get_db)):
    # Rate limiting: máximo 5 registros por minuto por IP
    apply_rate_limit(request, "5/minute")

    email = payload.email.lower()
    if await db.users.find_one({"email": email}):
        raise ConflictError("User already exists")

    now = datetime.utcnow()
    doc = {
        "name": payload.name,
        "email": email,
        "password": hash_password(payload.password),
        "photoURL": payload.photoURL or "",
        "role": Role.user.value,
        "status": UserStatus.active.value,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        res = await db.users.insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    logger.info(f"User registered: {email}")
    return _token_response(await db.users.find_one({"_id": res.inserted_id}))

@router.post("/login")
async def login(request: Request, payload: Login, db: AsyncIOMotorDatabase = Depends(get_db)):
    # Rate limiting: máximo 10 intentos de login por minuto por IP
    apply_rate_limit(request, "10/minute")

    user = await db.users.find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise UnauthorizedError("Invalid credentials")
    if user.get("status", UserStatus.active.value) != UserStatus.active.value:
        raise ForbiddenError("Account is disabled")
    return _token_response(user)

@router.get("/me")
async def me(
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    user = await db.users.find_one({"_id": ObjectId(current.id)}, {"password": 0})
    if not user:
        raise NotFoundError("User not found")
    return ok(public_user(user))
