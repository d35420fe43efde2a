"""
Pydantic schemas for the identity boundary and admin user listings.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class ProfileLookup(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=255)


class ProfileComplete(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: str = Field(..., pattern=r"^\d{10}$")


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    phone_number: str
    role: str
    is_blocked: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: int
    email: str
    name: str
    phone_number: str
    is_blocked: bool

    model_config = {"from_attributes": True}


class ProfileLookupResponse(BaseModel):
    needs_completion: bool
    user: Optional[UserResponse] = None
    email: str
    suggested_name: str = ""


class UserBlockResponse(BaseModel):
    message: str
    user: UserResponse
