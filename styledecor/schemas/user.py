from pydantic import BaseModel, EmailStr, Field
from enum import Enum
from typing import Optional

class Role(str, Enum):
    user      = "user"
    decorator = "decorator"
    admin     = "admin"

class UserStatus(str, Enum):
    active   = "active"
    disabled = "disabled"

class Register(BaseModel):
    name: str = Field(..., min_length=2, max_length=80, description="Nombre completo del usuario")
    email: EmailStr = Field(..., description="Email válido")
    password: str = Field(..., min_length=6, max_length=72, description="Contraseña (mín. 6 caracteres)")
    photoURL: Optional[str] = Field(None, description="URL de foto de perfil")

class Login(BaseModel):
    email: EmailStr
    password: str

class MakeDecorator(BaseModel):
    specialty: Optional[str] = Field(None, max_length=120)
    experience: Optional[int] = Field(None, ge=0, le=80)
    rating: Optional[float] = Field(None, ge=0, le=5)
