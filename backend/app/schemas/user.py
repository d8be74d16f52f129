"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_]+$")
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    role: Literal["client", "professional"] = "client"

    # Professional profile, only read when role == "professional"
    business_name: Optional[str] = Field(None, min_length=2, max_length=255)
    booking_mode: Literal["auto", "manual"] = "manual"
    city: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def require_business_name(self) -> "UserCreate":
        if self.role == "professional" and not self.business_name:
            raise ValueError("Business name is required for professionals")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
