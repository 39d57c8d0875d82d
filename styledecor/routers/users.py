# styledecor/routers/users.py
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from bson import ObjectId
import logging

from ..db import get_db
from ..errors import NotFoundError
from ..security import get_current_actor
from ..policy import Action, Actor, authorize
from ..schemas.user import MakeDecorator, Role, UserStatus
from ..utils import to_id, to_object_id, ok

logger = logging.getLogger(__name__)

router = APIRouter()

HIDE_PASSWORD = {"password": 0}

@router.get("/profile")
async def get_profile(
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    user = await db.users.find_one({"_id": ObjectId(current.id)}, HIDE_PASSWORD)
    if not user:
        raise NotFoundError("User not found")
    return ok(to_id(user))

@router.get("/all")
async def list_users(
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.user_manage)
    docs = await db.users.find({}, HIDE_PASSWORD).sort("createdAt", -1).to_list(None)
    return ok([to_id(d) for d in docs])

@router.put("/{user_id}/make-decorator")
async def make_decorator(
    user_id: str,
    body: MakeDecorator,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.user_manage)
    oid = to_object_id(user_id, "userId")
    res = await db.users.update_one(
        {"_id": oid},
        {"$set": {
            "role": Role.decorator.value,
            "decoratorInfo": {
                "specialty": body.specialty or "General Decoration",
                "experience": body.experience or 0,
                "rating": body.rating if body.rating is not None else 5.0,
                "totalProjects": 0,
            },
            "updatedAt": datetime.utcnow(),
        }},
    )
    if res.matched_count == 0:
        raise NotFoundError("User not found")
    logger.info(f"User {user_id} promoted to decorator by {current.email}")
    return ok(to_id(await db.users.find_one({"_id": oid}, HIDE_PASSWORD)),
              "User promoted to decorator successfully")

@router.put("/{user_id}/toggle-status")
async def toggle_status(
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.user_manage)
    oid = to_object_id(user_id, "userId")
    user = await db.users.find_one({"_id": oid}, HIDE_PASSWORD)
    if not user:
        raise NotFoundError("User not found")

    active = user.get("status", UserStatus.active.value) == UserStatus.active.value
    new_status = UserStatus.disabled if active else UserStatus.active
    await db.users.update_one(
        {"_id": oid},
        {"$set": {"status": new_status.value, "updatedAt": datetime.utcnow()}},
    )
    verb = "enabled" if new_status == UserStatus.active else "disabled"
    return ok({"id": user_id, "status": new_status.value}, f"User {verb} successfully")
