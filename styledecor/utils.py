# styledecor/utils.py
from typing import Any, Dict, Optional
import math
from bson import ObjectId
from datetime import datetime

from .errors import ValidationError

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y todos los ObjectIds a strings.
    También convierte datetime a ISO format strings.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime):
            d[key] = value.isoformat()
        elif isinstance(value, dict):
            d[key] = to_id(value)
        elif isinstance(value, list):
            d[key] = [
                str(item) if isinstance(item, ObjectId)
                else item.isoformat() if isinstance(item, datetime)
                else to_id(item) if isinstance(item, dict)
                else item
                for item in value
            ]

    return d

# ==================== Utilidades de Base de Datos ====================

def to_object_id(value: Any, field_name: str = "id") -> ObjectId:
    """
    Convierte un string a ObjectId con validación.
    """
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(str(value)):
        raise ValidationError(f"Invalid {field_name}: {value}")
    return ObjectId(str(value))

# ==================== Paginación y respuestas ====================

MAX_PAGE_SIZE = 100

def page_window(page: int, limit: int) -> tuple[int, int]:
    """Devuelve (skip, limit) validando los parámetros de paginación."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit, limit

def pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }

def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """Sobre estándar de respuesta: {success, data|message, ...extra}."""
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
