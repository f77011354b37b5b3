from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum
from decimal import Decimal

from utils.money import Money


class LedgerEntryType(str, Enum):
    GREEN_COINS_CREDIT = "GREEN_COINS_CREDIT"
    GREEN_COINS_DEBIT = "GREEN_COINS_DEBIT"
    COLLECTOR_EARNING = "COLLECTOR_EARNING"
    SALE_CREDIT = "SALE_CREDIT"
    PLATFORM_FEE = "PLATFORM_FEE"
    SALE_REVERSAL = "SALE_REVERSAL"
    PLATFORM_FEE_REVERSAL = "PLATFORM_FEE_REVERSAL"


class LedgerEntry(BaseModel):
    """
    Append-only money / reward movement. Never updated, never deleted.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: Optional[str] = None
    entry_type: LedgerEntryType

    amount: Money = Field(default=Decimal("0.00"))
    green_coins: int = 0

    reason: Optional[str] = None
    related_id: Optional[str] = None
    created_at: datetime


class TimelineEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    entity: str             # user | pickup_request | product | order
    entity_id: str
    event: str
    actor_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
