from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from config.constants import (
    CO2_SAVED_PER_KG,
    MONTHLY_BUCKETS,
    RECENT_ACTIVITY_LIMIT,
    TOP_COLLECTORS_LIMIT,
)
from models.order import OrderStatus
from models.pickup import PickupRequest, PickupStatus
from models.product import ProductStatus
from models.user import UserRole
from utils.guards import require_role, require_user
from utils.money import safe_ratio, to_money, to_quantity
from utils.state import StoreState

# ============================================================
# STATISTICS AGGREGATOR
# ============================================================
# Every reader is a pure full scan over one StoreState snapshot.
# Nothing is cached, so a dashboard can never show stale numbers.
# Every ratio goes through safe_ratio: an empty denominator gives 0.
# ============================================================


def _completed(requests: Iterable[PickupRequest]) -> List[PickupRequest]:
    return [r for r in requests if r.status == PickupStatus.COMPLETED]


def _sum_quantity(requests: Iterable[PickupRequest]) -> Decimal:
    return to_quantity(sum((r.quantity for r in requests), Decimal("0")))


def _sum_paid(requests: Iterable[PickupRequest]) -> Decimal:
    return to_money(sum((r.actual_price or Decimal("0") for r in requests), Decimal("0")))


def _co2(waste: Decimal) -> Decimal:
    return to_money(waste * CO2_SAVED_PER_KG)


def waste_type_breakdown(requests: Iterable[PickupRequest]) -> List[Dict[str, Any]]:
    """Completed quantity and count per waste type, largest first."""
    buckets: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"quantity": Decimal("0"), "count": 0})
    for r in requests:
        bucket = buckets[r.waste_type.value]
        bucket["quantity"] += r.quantity
        bucket["count"] += 1

    rows = [
        {"waste_type": wt, "quantity": to_quantity(b["quantity"]), "count": b["count"]}
        for wt, b in buckets.items()
    ]
    return sorted(rows, key=lambda row: (-row["quantity"], row["waste_type"]))


def monthly_completed(requests: Iterable[PickupRequest], now: datetime, months: int = MONTHLY_BUCKETS) -> List[int]:
    """Completed pickups per calendar month, oldest first, current month last."""
    counts = [0] * months
    current = now.year * 12 + now.month - 1
    for r in requests:
        if r.status != PickupStatus.COMPLETED or not r.completed_at:
            continue
        offset = current - (r.completed_at.year * 12 + r.completed_at.month - 1)
        if 0 <= offset < months:
            counts[months - 1 - offset] += 1
    return counts


# ============================================================
# COLLECTOR
# ============================================================

def collector_stats(state: StoreState, collector_id: str) -> Dict[str, Any]:
    require_role(state, collector_id, UserRole.COLLECTOR, name="collector")

    mine = [r for r in state.pickup_requests.values() if r.collector_id == collector_id]
    completed = _completed(mine)

    total_pickups = len(completed)
    total_earnings = _sum_paid(completed)
    waste_collected = _sum_quantity(completed)

    return {
        "total_pickups": total_pickups,
        "total_earnings": total_earnings,
        "waste_collected": waste_collected,
        # kg per completed pickup
        "efficiency": safe_ratio(waste_collected, total_pickups),
        "active_pickups": sum(1 for r in mine if r.status == PickupStatus.ASSIGNED),
        "avg_earnings_per_pickup": safe_ratio(total_earnings, total_pickups),
        "waste_type_breakdown": waste_type_breakdown(completed),
    }


# ============================================================
# END-USERS
# ============================================================

def recent_activity(state: StoreState, user_id: str, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
    pickups = [
        {
            "id": r.id,
            "type": "pickup",
            "title": f"{r.waste_type.value} pickup",
            "status": r.status.value,
            "value": r.actual_price if r.actual_price is not None else r.estimated_value,
            "date": r.updated_at,
        }
        for r in state.pickup_requests.values() if r.owner_id == user_id
    ]
    products = [
        {
            "id": p.id,
            "type": "product",
            "title": p.title,
            "status": p.status.value,
            "value": p.price,
            "date": p.updated_at,
        }
        for p in state.products.values() if p.seller_id == user_id
    ]
    activity = sorted(pickups + products, key=lambda a: (a["date"], a["id"]), reverse=True)
    return activity[:limit]


def user_stats(state: StoreState, user_id: str) -> Dict[str, Any]:
    user = require_user(state, user_id)

    mine = [r for r in state.pickup_requests.values() if r.owner_id == user_id]
    completed = _completed(mine)
    waste = _sum_quantity(completed)
    earnings = _sum_paid(completed)

    upcoming = sorted(
        (r for r in mine if r.status == PickupStatus.ASSIGNED),
        key=lambda r: (r.scheduled_date, r.id),
    )

    return {
        "total_pickups": len(completed),
        "pending_pickups": sum(1 for r in mine if r.status == PickupStatus.PENDING),
        "waste_collected": waste,
        "green_coins": user.green_coins,
        "eco_score": user.eco_score,
        "total_earnings": earnings,
        "co2_saved": _co2(waste),
        "avg_pickup_value": safe_ratio(earnings, len(completed)),
        "next_pickup": upcoming[0].scheduled_date if upcoming else None,
        "recent_activity": recent_activity(state, user_id),
    }


def organization_stats(state: StoreState, user_id: str, *, now: datetime) -> Dict[str, Any]:
    user = require_user(state, user_id)

    mine = [r for r in state.pickup_requests.values() if r.owner_id == user_id]
    completed = _completed(mine)
    waste = _sum_quantity(completed)

    return {
        "pickups_sponsored": len(completed),
        "pending_pickups": sum(1 for r in mine if r.status == PickupStatus.PENDING),
        "waste_recycled": waste,
        "co2_saved": _co2(waste),
        "total_value": _sum_paid(completed),
        "green_coins": user.green_coins,
        "waste_type_breakdown": waste_type_breakdown(completed),
        "monthly_pickups": monthly_completed(mine, now),
    }


def seller_stats(state: StoreState, user_id: str) -> Dict[str, Any]:
    require_user(state, user_id)

    products = [p for p in state.products.values() if p.seller_id == user_id]
    orders = [o for o in state.orders.values() if o.seller_id == user_id and o.status != OrderStatus.CANCELLED]
    sold = [p for p in products if p.status == ProductStatus.SOLD]

    return {
        "items_listed": len(products),
        "items_sold": len(sold),
        "active_listings": sum(1 for p in products if p.status == ProductStatus.ACTIVE),
        "total_earnings": to_money(sum((o.seller_amount for o in orders), Decimal("0"))),
        "platform_fees": to_money(sum((o.platform_fee for o in orders), Decimal("0"))),
        "completed_sales": sum(1 for o in orders if o.status == OrderStatus.DELIVERED),
        "total_views": sum(p.views for p in products),
        "total_likes": sum(p.likes for p in products),
        # percent of listings that sold, one decimal
        "conversion_rate": round(safe_ratio(len(sold) * 100, len(products)), 1),
    }


# ============================================================
# PLATFORM
# ============================================================

def top_collectors(state: StoreState, limit: int = TOP_COLLECTORS_LIMIT) -> List[Dict[str, Any]]:
    rows = []
    for user in state.users.values():
        if user.role != UserRole.COLLECTOR:
            continue
        completed = _completed(r for r in state.pickup_requests.values() if r.collector_id == user.id)
        rows.append({
            "collector_id": user.id,
            "name": user.name,
            "total_pickups": len(completed),
            "total_earnings": _sum_paid(completed),
            "waste_collected": _sum_quantity(completed),
        })
    rows.sort(key=lambda row: (-row["total_earnings"], row["collector_id"]))
    return rows[:limit]


def admin_stats(state: StoreState, *, now: datetime) -> Dict[str, Any]:
    requests = list(state.pickup_requests.values())
    completed = _completed(requests)
    waste = _sum_quantity(completed)
    live_orders = [o for o in state.orders.values() if o.status != OrderStatus.CANCELLED]

    return {
        "total_users": sum(1 for u in state.users.values() if u.role == UserRole.END_USER),
        "total_collectors": sum(1 for u in state.users.values() if u.role == UserRole.COLLECTOR),
        "total_requests": len(requests),
        "completed_requests": len(completed),
        "pending_requests": sum(1 for r in requests if r.status == PickupStatus.PENDING),
        "active_products": sum(1 for p in state.products.values() if p.status == ProductStatus.ACTIVE),
        "waste_processed": waste,
        "pickup_revenue": _sum_paid(completed),
        "marketplace_revenue": to_money(sum((o.total_amount for o in live_orders), Decimal("0"))),
        "platform_fees": to_money(sum((o.platform_fee for o in live_orders), Decimal("0"))),
        "co2_saved": _co2(waste),
        "completion_rate": round(safe_ratio(len(completed) * 100, len(requests)), 1),
        "monthly_pickups": monthly_completed(requests, now),
        "waste_type_breakdown": waste_type_breakdown(completed),
        "top_collectors": top_collectors(state),
    }
