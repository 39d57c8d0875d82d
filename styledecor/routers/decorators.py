# styledecor/routers/decorators.py
# Listado público de decoradores activos, mejor valorados primero
from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db import get_db
from ..schemas.user import Role, UserStatus
from ..utils import to_id, ok

router = APIRouter()

ACTIVE_DECORATORS = {"role": Role.decorator.value, "status": UserStatus.active.value}

@router.get("")
async def list_decorators(db: AsyncIOMotorDatabase = Depends(get_db)):
    docs = await (
        db.users.find(ACTIVE_DECORATORS, {"password": 0})
        .sort([("decoratorInfo.rating", -1), ("_id", 1)])
        .to_list(None)
    )
    return ok([to_id(d) for d in docs])

@router.get("/top")
async def top_decorators(
    limit: int = Query(6, ge=1, le=50),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    docs = await (
        db.users.find(ACTIVE_DECORATORS, {"password": 0})
        .sort([("decoratorInfo.rating", -1), ("_id", 1)])
        .limit(limit)
        .to_list(limit)
    )
    return ok([to_id(d) for d in docs])
