from pydantic import BaseModel, Field
from typing import Optional

DEFAULT_SERVICE_IMAGE = "https://images.unsplash.com/photo-1513694203232-719a280e022f?w=800"

SERVICE_SORT_KEYS = {"createdAt", "updatedAt", "cost", "service_name"}

class ServiceCreate(BaseModel):
    service_name: str = Field(..., min_length=2, max_length=120)
    cost: float = Field(..., ge=0)
    unit: Optional[str] = Field(None, max_length=40)
    service_category: str = Field(..., min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=2000)
    image: Optional[str] = None

class ServiceUpdate(BaseModel):
    service_name: Optional[str] = Field(None, min_length=2, max_length=120)
    cost: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=40)
    service_category: Optional[str] = Field(None, min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=2000)
    image: Optional[str] = None
