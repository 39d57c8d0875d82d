from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId

from .config import get_settings
from .db import get_db
from .errors import ForbiddenError, UnauthorizedError
from .policy import Actor
from .schemas.user import Role, UserStatus

settings = get_settings()
ALGO = "HS256"
pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def hash_password(plain: str) -> str:
    return pwd.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd.verify(plain, hashed)


def create_access_token(user_id: str, email: str, role: str, expires_hours: Optional[int] = None) -> str:
    expire = datetime.utcnow() + timedelta(hours=expires_hours or settings.jwt_expires_hours)
    payload = {"sub": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGO])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if not payload.get("sub") or not ObjectId.is_valid(str(payload["sub"])):
        raise UnauthorizedError("Invalid or expired token")
    return payload


async def get_current_actor(
    db: AsyncIOMotorDatabase = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> Actor:
    payload = decode_access_token(token)
    # El rol se lee del usuario, no del token: un cambio de rol surte efecto sin re-login
    doc = await db.users.find_one({"_id": ObjectId(payload["sub"])}, {"password": 0})
    if not doc:
        raise UnauthorizedError("User not found")
    if doc.get("status", UserStatus.active.value) != UserStatus.active.value:
        raise ForbiddenError("Account is disabled")
    return Actor(
        id=str(doc["_id"]),
        email=doc["email"],
        role=Role(doc.get("role", Role.user.value)),
        name=doc.get("name"),
    )
