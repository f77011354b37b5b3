from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Literal, Optional

from database import get_store
from models.pickup import PickupRequest, PickupRequestCreate
from models.user import Coordinates, User, UserRole
from utils.matcher import CollectorContext
from utils.money import Money
from utils.security import get_current_user, require_role
from utils.store import CoordinationStore

router = APIRouter(prefix="/api/pickups", tags=["Pickups"])


class CompletePickup(BaseModel):
    actual_price: Optional[Money] = Field(None, ge=0)


# ======================================================
# END-USER
# ======================================================

@router.post("", response_model=PickupRequest, status_code=201)
async def create_pickup(
    data: PickupRequestCreate,
    owner: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.create_pickup_request(
        owner.id,
        data.waste_type,
        data.quantity,
        data.address,
        data.scheduled_date,
        coordinates=data.coordinates,
        description=data.description,
    )


@router.get("/mine", response_model=list[PickupRequest])
async def my_pickups(
    owner: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_by_owner(owner.id)


@router.post("/{request_id}/cancel", response_model=PickupRequest)
async def cancel_pickup(
    request_id: str,
    user: User = Depends(require_role(UserRole.END_USER, UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.cancel_pickup_request(request_id, actor_id=user.id)


# ======================================================
# COLLECTOR
# ======================================================

@router.get("/pending", response_model=list[PickupRequest])
async def pending_pickups(
    collector: User = Depends(require_role(UserRole.COLLECTOR, UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_pending()


@router.get("/browse")
async def browse_pickups(
    sort: Literal["distance", "payment", "urgency", "rating"] = Query("distance"),
    urgency: Literal["all", "high", "medium", "low"] = Query("all"),
    q: Optional[str] = Query(None, description="Address / waste type search"),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    collector: User = Depends(require_role(UserRole.COLLECTOR)),
    store: CoordinationStore = Depends(get_store),
):
    if (lat is None) != (lng is None):
        raise HTTPException(400, "lat and lng must be given together")

    context = CollectorContext(
        collector_id=collector.id,
        location=Coordinates(lat=lat, lng=lng) if lat is not None else None,
        search=q,
    )
    rows = await store.rank_pending_requests(context, sort_key=sort, filter_key=urgency)
    return {
        "count": len(rows),
        "high_priority": sum(1 for r in rows if r.urgency == "high"),
        "requests": [r.to_dict() for r in rows],
    }


@router.get("/assigned", response_model=list[PickupRequest])
async def assigned_pickups(
    collector: User = Depends(require_role(UserRole.COLLECTOR)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_by_collector(collector.id)


@router.post("/{request_id}/accept", response_model=PickupRequest)
async def accept_pickup(
    request_id: str,
    collector: User = Depends(require_role(UserRole.COLLECTOR)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.accept_pickup_request(request_id, collector.id)


@router.post("/{request_id}/complete", response_model=PickupRequest)
async def complete_pickup(
    request_id: str,
    data: Optional[CompletePickup] = None,
    collector: User = Depends(require_role(UserRole.COLLECTOR)),
    store: CoordinationStore = Depends(get_store),
):
    actual_price = data.actual_price if data else None
    return await store.complete_pickup_request(request_id, actual_price, actor_id=collector.id)


# ======================================================
# SHARED
# ======================================================

def _can_view(user: User, request: PickupRequest) -> bool:
    if user.role in (UserRole.ADMIN, UserRole.COLLECTOR):
        return True
    return request.owner_id == user.id


@router.get("/{request_id}", response_model=PickupRequest)
async def get_pickup(
    request_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    request = await store.get_pickup_request(request_id)
    if not _can_view(user, request):
        raise HTTPException(403, "You do not have permission to view this request")
    return request


@router.get("/{request_id}/history")
async def pickup_history(
    request_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    request = await store.get_pickup_request(request_id)
    if not _can_view(user, request):
        raise HTTPException(403, "You do not have permission to view this request")
    return {"request_id": request_id, "history": await store.status_history(request_id)}
