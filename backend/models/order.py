from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from utils.money import Money


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    buyer_id: str
    seller_id: str
    product_id: str

    quantity: int = Field(..., ge=1)
    unit_price: Money

    # total_amount == platform_fee + seller_amount, always
    total_amount: Money
    platform_fee: Money
    seller_amount: Money

    shipping_address: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING

    created_at: datetime
    updated_at: datetime
