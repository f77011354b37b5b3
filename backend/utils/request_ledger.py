import logging
from datetime import datetime, timezone
from decimal import Decimal

from config.constants import (
    DEFAULT_RATE_PER_KG,
    ECO_SCORE_PER_KG,
    GREEN_COINS_PER_RUPEE,
    RATE_PER_KG,
)
from models.pickup import PickupRequest, PickupStatus, WasteType
from models.user import Coordinates, UserRole
from utils.errors import InvalidState, NotFound, Unauthorized, ValidationFailed
from utils.guards import is_admin, new_id, require_role, require_user
from utils.identity_registry import add_eco_score, adjust_green_coins
from utils.money import floor_int, round_half_up, to_money, to_quantity
from utils.state import StoreState
from utils.timeline import events_for, record_event
from utils.wallet_service import ENTRY_COLLECTOR_EARNING, add_ledger_entry

logger = logging.getLogger(__name__)

# Legal lifecycle edges. Anything else is InvalidState.
TRANSITIONS = {
    PickupStatus.PENDING: {PickupStatus.ASSIGNED, PickupStatus.CANCELLED},
    PickupStatus.ASSIGNED: {PickupStatus.COMPLETED},
    PickupStatus.COMPLETED: set(),
    PickupStatus.CANCELLED: set(),
}


# ==============================
# Pricing
# ==============================

def estimate_value(waste_type: WasteType, quantity) -> Decimal:
    rate = RATE_PER_KG.get(WasteType(waste_type).value, DEFAULT_RATE_PER_KG)
    return to_money(to_quantity(quantity) * rate)


def green_coins_for(estimated_value: Decimal) -> int:
    return round_half_up(estimated_value * GREEN_COINS_PER_RUPEE)


def to_naive_utc(value: datetime) -> datetime:
    # store clock is naive UTC; offset-aware input is converted, naive input is taken as UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ==============================
# Helpers
# ==============================

def get_pickup_request(state: StoreState, request_id: str) -> PickupRequest:
    request = state.pickup_requests.get(request_id)
    if not request:
        raise NotFound("Pickup request not found", request_id=request_id)
    return request


def _transition(request: PickupRequest, target: PickupStatus) -> None:
    if target not in TRANSITIONS[request.status]:
        raise InvalidState(
            f"Pickup request cannot move from {request.status.value} to {target.value}",
            request_id=request.id,
            status=request.status.value,
        )


# ==============================
# Create
# ==============================

def create_pickup_request(
    state: StoreState,
    owner_id: str,
    waste_type,
    quantity,
    address: str,
    scheduled_date: datetime,
    *,
    now: datetime,
    coordinates: Coordinates | dict | None = None,
    description: str | None = None,
) -> PickupRequest:
    owner = require_role(state, owner_id, UserRole.END_USER, name="owner")

    try:
        waste_type = WasteType(waste_type)
    except ValueError:
        raise ValidationFailed("Unknown waste type", waste_type=str(waste_type))

    try:
        quantity = to_quantity(quantity)
    except (ArithmeticError, TypeError, ValueError):
        raise ValidationFailed("Quantity must be a number")
    if quantity <= 0:
        raise ValidationFailed("Quantity must be greater than zero")

    address = (address or "").strip()
    if not address:
        raise ValidationFailed("Address is required")

    if not isinstance(scheduled_date, datetime):
        raise ValidationFailed("Scheduled date must be a datetime")
    scheduled_date = to_naive_utc(scheduled_date)

    if isinstance(coordinates, dict):
        coordinates = Coordinates.model_validate(coordinates)

    estimated = estimate_value(waste_type, quantity)

    request = PickupRequest(
        id=new_id(),
        owner_id=owner.id,
        waste_type=waste_type,
        quantity=quantity,
        address=address,
        coordinates=coordinates,
        description=description,
        scheduled_date=scheduled_date,
        status=PickupStatus.PENDING,
        estimated_value=estimated,
        green_coins_award=green_coins_for(estimated),
        created_at=now,
        updated_at=now,
    )
    state.pickup_requests[request.id] = request

    record_event(
        state,
        entity="pickup_request",
        entity_id=request.id,
        event="PICKUP_CREATED",
        now=now,
        actor_id=owner.id,
        metadata={"status": PickupStatus.PENDING.value},
    )
    logger.info("PICKUP_CREATED request=%s owner=%s value=%s", request.id, owner.id, estimated)
    return request


# ==============================
# Lifecycle
# ==============================

def accept_pickup_request(
    state: StoreState,
    request_id: str,
    collector_id: str,
    *,
    now: datetime,
) -> PickupRequest:
    """
    pending -> assigned. The caller (CoordinationStore) holds the store
    lock, so the status check and the write are one atomic step.
    """
    request = get_pickup_request(state, request_id)
    _transition(request, PickupStatus.ASSIGNED)
    collector = require_role(state, collector_id, UserRole.COLLECTOR, name="collector")

    updated = request.model_copy(update={
        "status": PickupStatus.ASSIGNED,
        "collector_id": collector.id,
        "assigned_at": now,
        "updated_at": now,
    })
    state.pickup_requests[request_id] = updated

    record_event(
        state,
        entity="pickup_request",
        entity_id=request_id,
        event="PICKUP_ASSIGNED",
        now=now,
        actor_id=collector.id,
        metadata={"status": PickupStatus.ASSIGNED.value},
    )
    logger.info("PICKUP_ASSIGNED request=%s collector=%s", request_id, collector.id)
    return updated


def complete_pickup_request(
    state: StoreState,
    request_id: str,
    actual_price=None,
    *,
    now: datetime,
    actor_id: str | None = None,
) -> PickupRequest:
    request = get_pickup_request(state, request_id)
    _transition(request, PickupStatus.COMPLETED)

    if actor_id is not None and actor_id != request.collector_id and not is_admin(state, actor_id):
        raise Unauthorized("Only the assigned collector can complete this pickup", request_id=request_id)

    if actual_price is None:
        price = request.estimated_value
    else:
        try:
            price = to_money(actual_price)
        except (ArithmeticError, TypeError, ValueError):
            raise ValidationFailed("Actual price must be a number")
        if price < 0:
            raise ValidationFailed("Actual price cannot be negative")

    owner = require_user(state, request.owner_id, "owner")

    updated = request.model_copy(update={
        "status": PickupStatus.COMPLETED,
        "actual_price": price,
        "completed_at": now,
        "updated_at": now,
    })
    state.pickup_requests[request_id] = updated

    # rewards always go through the registry
    if request.green_coins_award > 0:
        adjust_green_coins(
            state,
            owner.id,
            request.green_coins_award,
            "pickup",
            now=now,
            related_id=request_id,
        )
    add_eco_score(state, owner.id, floor_int(request.quantity * ECO_SCORE_PER_KG), now=now)

    if price > 0:
        add_ledger_entry(
            state,
            ENTRY_COLLECTOR_EARNING,
            now=now,
            user_id=request.collector_id,
            amount=price,
            reason=f"Pickup completed: {request.waste_type.value} ({request.quantity}kg)",
            related_id=request_id,
        )

    record_event(
        state,
        entity="pickup_request",
        entity_id=request_id,
        event="PICKUP_COMPLETED",
        now=now,
        actor_id=actor_id or request.collector_id,
        metadata={"status": PickupStatus.COMPLETED.value, "actual_price": str(price)},
    )
    logger.info("PICKUP_COMPLETED request=%s collector=%s price=%s", request_id, request.collector_id, price)
    return updated


def cancel_pickup_request(
    state: StoreState,
    request_id: str,
    *,
    now: datetime,
    actor_id: str | None = None,
) -> PickupRequest:
    request = get_pickup_request(state, request_id)
    _transition(request, PickupStatus.CANCELLED)

    if actor_id is not None and actor_id != request.owner_id and not is_admin(state, actor_id):
        raise Unauthorized("Only the owner can cancel this pickup", request_id=request_id)

    updated = request.model_copy(update={
        "status": PickupStatus.CANCELLED,
        "cancelled_at": now,
        "updated_at": now,
    })
    state.pickup_requests[request_id] = updated

    record_event(
        state,
        entity="pickup_request",
        entity_id=request_id,
        event="PICKUP_CANCELLED",
        now=now,
        actor_id=actor_id or request.owner_id,
        metadata={"status": PickupStatus.CANCELLED.value},
    )
    logger.info("PICKUP_CANCELLED request=%s", request_id)
    return updated


# ==============================
# Queries (pure)
# ==============================

def _newest_first(requests) -> list[PickupRequest]:
    return sorted(requests, key=lambda r: r.id, reverse=True)


def list_pending(state: StoreState) -> list[PickupRequest]:
    return sorted(
        (r for r in state.pickup_requests.values() if r.status == PickupStatus.PENDING),
        key=lambda r: r.id,
    )


def list_by_owner(state: StoreState, owner_id: str) -> list[PickupRequest]:
    return _newest_first(r for r in state.pickup_requests.values() if r.owner_id == owner_id)


def list_by_collector(state: StoreState, collector_id: str) -> list[PickupRequest]:
    return _newest_first(r for r in state.pickup_requests.values() if r.collector_id == collector_id)


def status_history(state: StoreState, request_id: str) -> list[str]:
    get_pickup_request(state, request_id)
    return [
        e.metadata["status"]
        for e in events_for(state, "pickup_request", request_id)
        if "status" in e.metadata
    ]
