from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    END_USER = "end-user"
    COLLECTOR = "collector"
    ADMIN = "admin"


class UserSubtype(str, Enum):
    GENERATOR = "generator"
    ORGANIZATION = "organization"
    DIY_SELLER = "diy-seller"


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    role: UserRole = UserRole.END_USER
    subtype: Optional[UserSubtype] = None

    phone: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    password: Optional[str] = None


class UserProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: EmailStr
    role: UserRole
    subtype: Optional[UserSubtype] = None

    phone: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    # rewards
    green_coins: int = Field(0, ge=0)
    eco_score: int = Field(0, ge=0)

    is_verified: bool = False

    created_at: datetime
    updated_at: datetime
