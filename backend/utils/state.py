from dataclasses import dataclass, field
from typing import Dict, List

from models.user import User
from models.pickup import PickupRequest
from models.product import Product
from models.order import Order
from models.ledger import LedgerEntry, TimelineEvent


@dataclass
class StoreState:
    """
    Every collection the coordination store owns.

    Records are frozen models, so a shallow copy is enough for the
    copy-on-write commit in CoordinationStore: a mutator works on
    `state.copy()` and the copy only becomes live when it returns.
    """
    users: Dict[str, User] = field(default_factory=dict)
    credentials: Dict[str, str] = field(default_factory=dict)   # user_id -> bcrypt hash
    pickup_requests: Dict[str, PickupRequest] = field(default_factory=dict)
    products: Dict[str, Product] = field(default_factory=dict)
    orders: Dict[str, Order] = field(default_factory=dict)
    ledger: List[LedgerEntry] = field(default_factory=list)
    timeline: List[TimelineEvent] = field(default_factory=list)

    def copy(self) -> "StoreState":
        return StoreState(
            users=dict(self.users),
            credentials=dict(self.credentials),
            pickup_requests=dict(self.pickup_requests),
            products=dict(self.products),
            orders=dict(self.orders),
            ledger=list(self.ledger),
            timeline=list(self.timeline),
        )
