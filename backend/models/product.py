from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from utils.money import Money


class ProductStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    INACTIVE = "inactive"


class ProductCreate(BaseModel):
    title: str
    description: Optional[str] = None

    price: Money = Field(..., gt=0)
    category: str

    condition: Optional[str] = None
    materials: Optional[str] = None
    location: Optional[str] = None


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    seller_id: str

    title: str
    description: Optional[str] = None
    price: Money
    category: str

    condition: Optional[str] = None
    materials: Optional[str] = None
    location: Optional[str] = None

    status: ProductStatus = ProductStatus.ACTIVE
    views: int = 0
    likes: int = 0

    created_at: datetime
    updated_at: datetime
