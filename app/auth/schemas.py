from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr
from app.models.enums import Role
import uuid

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None
    type: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    id: uuid.UUID
    email: EmailStr
    full_name: Optional[str] = None
    is_active: bool = True
    role: Role
    client_id: Optional[uuid.UUID] = None

    model_config = ConfigDict(from_attributes=True)
