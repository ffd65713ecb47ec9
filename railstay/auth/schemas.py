from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=255)

class UserCreate(UserBase):
    password: str = Field(..., min_length=6)

class User(UserBase):
    id: int
    has_payment_password: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LoginRequest(BaseModel):
    username: str
    password: str

class AuthResponse(BaseModel):
    access_token: str
    token_type: str
    user: User

# Traveler / guest records
class PersonalInfoCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    identity_card_id: str = Field(..., min_length=1, max_length=64)
    is_default: bool = False

class PersonalInfo(BaseModel):
    uuid: str
    name: str
    identity_card_id: str
    is_default: bool

    class Config:
        from_attributes = True
