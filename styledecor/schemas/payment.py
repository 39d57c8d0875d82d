from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional

class PaymentRecordStatus(str, Enum):
    completed = "completed"

class PaymentIntentCreate(BaseModel):
    bookingId: Optional[str] = Field(None, description="ID de la reserva a pagar")
    amount: float = Field(..., description="Monto en unidades de la moneda (no céntimos)")

class PaymentConfirm(BaseModel):
    bookingId: Optional[str] = None
    paymentIntentId: Optional[str] = Field(None, description="ID devuelto por la pasarela")
    amount: float
    paymentMethod: str = Field("stripe", max_length=40)
