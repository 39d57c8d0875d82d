from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime
from typing import Optional

class BookingStatus(str, Enum):
    pending   = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"

class PaymentStatus(str, Enum):
    unpaid = "unpaid"
    paid   = "paid"

class ProjectStatus(str, Enum):
    assigned           = "Assigned"
    planning           = "Planning Phase"
    materials_prepared = "Materials Prepared"
    on_the_way         = "On the Way to Venue"
    setup_in_progress  = "Setup in Progress"
    completed          = "Completed"

# Orden de avance de un proyecto asignado
PROJECT_STATUS_ORDER: list[ProjectStatus] = list(ProjectStatus)

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.pending: {BookingStatus.confirmed, BookingStatus.cancelled},
    BookingStatus.confirmed: {BookingStatus.cancelled},
    BookingStatus.cancelled: set(),
}

BOOKING_SORT_KEYS = {"createdAt", "updatedAt", "bookingDate", "serviceCost"}

class BookingCreate(BaseModel):
    serviceId: str
    bookingDate: datetime
    location: str = Field(..., min_length=1, max_length=300)
    notes: Optional[str] = Field(None, max_length=2000)

class BookingUpdate(BaseModel):
    bookingDate: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=300)
    notes: Optional[str] = Field(None, max_length=2000)

class AssignDecorator(BaseModel):
    decoratorId: str

class ProjectStatusPatch(BaseModel):
    # Se valida contra ProjectStatus en el servicio
    projectStatus: str
