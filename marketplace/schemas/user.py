from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
import re


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if not re.match(r'^[A-Za-z0-9_.-]{3,50}$', v):
            raise ValueError('Username may only contain letters, digits, ".", "_" and "-"')
        return v


class UserCreate(UserBase):
    password: str
    is_admin: bool = False

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        if not re.search(r'[A-Z]', v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not re.search(r'\d', v):
            raise ValueError('Password must contain at least one digit')
        return v


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    is_admin: bool
    average_rating: float
    review_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserDetailResponse(UserResponse):
    reviews: List[Dict[str, Any]]

    class Config:
        from_attributes = True


class SessionUser(BaseModel):
    username: str
    is_admin: bool
    average_rating: Optional[float] = None
    review_count: Optional[int] = None
