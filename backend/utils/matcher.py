from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from math import asin, cos, radians, sin, sqrt
from typing import Optional

from config.constants import URGENCY_HIGH_HOURS, URGENCY_MEDIUM_HOURS
from models.pickup import PickupRequest
from models.user import Coordinates, UserRole
from utils.errors import ValidationFailed
from utils.guards import require_role
from utils.request_ledger import list_pending
from utils.state import StoreState

EARTH_RADIUS_KM = 6371.0

SORT_KEYS = ("distance", "payment", "urgency", "rating")
FILTER_KEYS = ("all", "high", "medium", "low")
URGENCY_RANK = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class CollectorContext:
    collector_id: str
    location: Optional[Coordinates] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class RankedRequest:
    request: PickupRequest
    urgency: str
    distance_km: Optional[float]
    payment: Decimal
    rating: int

    def to_dict(self) -> dict:
        return {
            "request": self.request.model_dump(mode="json"),
            "urgency": self.urgency,
            "distance_km": self.distance_km,
            "payment": float(self.payment),
            "rating": self.rating,
        }


# ============================================================
# PURE HELPERS
# ============================================================

def haversine_km(a: Coordinates, b: Coordinates) -> float:
    lat1, lng1, lat2, lng2 = map(radians, (a.lat, a.lng, b.lat, b.lng))
    h = sin((lat2 - lat1) / 2) ** 2 + cos(lat1) * cos(lat2) * sin((lng2 - lng1) / 2) ** 2
    return round(2 * EARTH_RADIUS_KM * asin(sqrt(h)), 2)


def urgency_tier(scheduled_date: datetime, now: datetime) -> str:
    hours_left = (scheduled_date - now).total_seconds() / 3600
    if hours_left <= URGENCY_HIGH_HOURS:
        return "high"
    if hours_left <= URGENCY_MEDIUM_HOURS:
        return "medium"
    return "low"


def _sort_key(sort_key: str):
    # every key ends with the request id so ordering is reproducible
    if sort_key == "distance":
        return lambda r: (r.distance_km is None, r.distance_km or 0.0, r.request.id)
    if sort_key == "payment":
        return lambda r: (-r.payment, r.request.id)
    if sort_key == "urgency":
        return lambda r: (URGENCY_RANK[r.urgency], r.request.id)
    return lambda r: (-r.rating, r.request.id)


# ============================================================
# RANKING
# ============================================================

def rank_pending_requests(
    state: StoreState,
    context: CollectorContext,
    sort_key: str = "distance",
    filter_key: str = "all",
    *,
    now: datetime,
) -> list[RankedRequest]:
    """
    Rank the pending pickups a collector could accept.

    Read-only: accepting is a separate call into the request ledger.
    Distance is measured from the context location, falling back to the
    collector's saved coordinates; requests without coordinates go last.
    Rating is the owner's EcoScore.
    """
    if sort_key not in SORT_KEYS:
        raise ValidationFailed(f"Unknown sort key: {sort_key}", allowed=list(SORT_KEYS))
    if filter_key not in FILTER_KEYS:
        raise ValidationFailed(f"Unknown urgency filter: {filter_key}", allowed=list(FILTER_KEYS))

    collector = require_role(state, context.collector_id, UserRole.COLLECTOR, name="collector")
    origin = context.location or collector.coordinates
    needle = (context.search or "").strip().lower()

    rows = []
    for request in list_pending(state):
        if needle and needle not in request.address.lower() and needle not in request.waste_type.value:
            continue

        urgency = urgency_tier(request.scheduled_date, now)
        if filter_key != "all" and urgency != filter_key:
            continue

        owner = state.users.get(request.owner_id)
        rows.append(RankedRequest(
            request=request,
            urgency=urgency,
            distance_km=haversine_km(origin, request.coordinates) if origin and request.coordinates else None,
            payment=request.estimated_value,
            rating=owner.eco_score if owner else 0,
        ))

    rows.sort(key=_sort_key(sort_key))
    return rows
