# styledecor/routers/services.py
from fastapi import APIRouter, Depends, status, Query
from typing import Optional, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
import re

from ..db import get_db
from ..errors import NotFoundError, ValidationError
from ..security import get_current_actor
from ..policy import Action, Actor, authorize
from ..schemas.service import ServiceCreate, ServiceUpdate, DEFAULT_SERVICE_IMAGE, SERVICE_SORT_KEYS
from ..utils import to_id, to_object_id, ok, page_window, pagination

router = APIRouter()

# GET /services?search=&category=&minPrice=&maxPrice=
@router.get("")
async def list_services(
    search: str = "",
    category: str = "",
    minPrice: float = Query(0, ge=0),
    maxPrice: float = Query(1_000_000, ge=0),
    page: int = Query(1),
    limit: int = Query(10),
    sort: str = Query("createdAt"),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    if sort not in SERVICE_SORT_KEYS:
        raise ValidationError(f"Invalid sort key: {sort}")
    skip, limit = page_window(page, limit)

    q: Dict[str, Any] = {"cost": {"$gte": minPrice, "$lte": maxPrice}}
    if search:
        q["service_name"] = {"$regex": re.escape(search), "$options": "i"}
    if category and category != "all":
        q["service_category"] = category

    total = await db.services.count_documents(q)
    docs = await (
        db.services.find(q)
        .sort([(sort, -1), ("_id", 1)])
        .skip(skip)
        .limit(limit)
        .to_list(limit)
    )
    return ok([to_id(d) for d in docs], pagination=pagination(total, page, limit))

@router.get("/meta/categories")
async def list_categories(db: AsyncIOMotorDatabase = Depends(get_db)):
    categories = await db.services.distinct("service_category")
    return ok(sorted(c for c in categories if c))

@router.get("/{service_id}")
async def get_service(service_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    doc = await db.services.find_one({"_id": to_object_id(service_id, "serviceId")})
    if not doc:
        raise NotFoundError("Service not found")
    return ok(to_id(doc))

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.catalog_manage)
    now = datetime.utcnow()
    doc = payload.model_dump()
    doc.update({
        "image": payload.image or DEFAULT_SERVICE_IMAGE,
        "createdByEmail": current.email,
        "createdAt": now,
        "updatedAt": now,
        "status": "active",
    })
    res = await db.services.insert_one(doc)
    return ok(to_id(await db.services.find_one({"_id": res.inserted_id})), "Service created successfully")

@router.put("/{service_id}")
async def update_service(
    service_id: str,
    payload: ServiceUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.catalog_manage)
    oid = to_object_id(service_id, "serviceId")
    fields = payload.model_dump(exclude_none=True)
    fields["updatedAt"] = datetime.utcnow()
    res = await db.services.update_one({"_id": oid}, {"$set": fields})
    if res.matched_count == 0:
        raise NotFoundError("Service not found")
    return ok(to_id(await db.services.find_one({"_id": oid})), "Service updated successfully")

@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    current: Actor = Depends(get_current_actor),
):
    authorize(current, Action.catalog_manage)
    res = await db.services.delete_one({"_id": to_object_id(service_id, "serviceId")})
    if res.deleted_count == 0:
        raise NotFoundError("Service not found")
    return ok(message="Service deleted successfully")
