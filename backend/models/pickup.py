from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from models.user import Coordinates
from utils.money import Money, Quantity


class WasteType(str, Enum):
    PLASTIC = "plastic"
    PAPER = "paper"
    METAL = "metal"
    E_WASTE = "e-waste"
    ORGANIC = "organic"
    MIXED = "mixed"
    CARDBOARD = "cardboard"
    GLASS = "glass"


class PickupStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PickupRequestCreate(BaseModel):
    waste_type: WasteType
    quantity: Quantity = Field(..., gt=0)
    address: str
    scheduled_date: datetime
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = None


class PickupRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str

    waste_type: WasteType
    quantity: Quantity
    address: str
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = None
    scheduled_date: datetime

    status: PickupStatus = PickupStatus.PENDING
    collector_id: Optional[str] = None

    # pricing, fixed at creation
    estimated_value: Money
    green_coins_award: int = Field(..., ge=0)
    actual_price: Optional[Money] = None

    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
