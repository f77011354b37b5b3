from bson import ObjectId

from models.pickup import PickupStatus
from models.user import User, UserRole
from utils.errors import NotFound, Unauthorized
from utils.state import StoreState


def new_id() -> str:
    # ObjectIds grow monotonically inside one process, so ids sort by creation
    return str(ObjectId())


# -------------------------------
# User / Role Guards
# -------------------------------

def require_user(state: StoreState, user_id: str, name: str = "user") -> User:
    user = state.users.get(user_id)
    if not user:
        raise NotFound(f"{name.capitalize()} not found", **{f"{name}_id": user_id})
    return user


def require_role(state: StoreState, user_id: str, *roles: UserRole, name: str = "user") -> User:
    user = require_user(state, user_id, name)
    if user.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise Unauthorized(f"{name.capitalize()} must have role: {allowed}", **{f"{name}_id": user_id})
    return user


def is_admin(state: StoreState, actor_id: str | None) -> bool:
    actor = state.users.get(actor_id) if actor_id else None
    return bool(actor and actor.role == UserRole.ADMIN)


# -------------------------------
# Store Integrity Guard
# -------------------------------

def integrity_problems(state: StoreState) -> list[str]:
    """
    Cross-collection invariants. An empty list means the state is sound;
    restore() refuses any snapshot that yields problems.
    """
    problems = []

    def expect_role(user_id, role, what):
        user = state.users.get(user_id)
        if not user:
            problems.append(f"{what}: unknown user {user_id}")
        elif role is not None and user.role != role:
            problems.append(f"{what}: user {user_id} is {user.role.value}, expected {role.value}")

    for user in state.users.values():
        if user.green_coins < 0:
            problems.append(f"user {user.id}: negative green_coins")
        if (user.role == UserRole.END_USER) != (user.subtype is not None):
            problems.append(f"user {user.id}: subtype must be set iff role is end-user")

    for r in state.pickup_requests.values():
        expect_role(r.owner_id, UserRole.END_USER, f"pickup {r.id} owner")
        holds_collector = r.status in (PickupStatus.ASSIGNED, PickupStatus.COMPLETED)
        if holds_collector != (r.collector_id is not None):
            problems.append(f"pickup {r.id}: collector_id must be set iff assigned/completed")
        if r.collector_id is not None:
            expect_role(r.collector_id, UserRole.COLLECTOR, f"pickup {r.id} collector")
        if r.quantity <= 0:
            problems.append(f"pickup {r.id}: quantity must be positive")

    for p in state.products.values():
        expect_role(p.seller_id, None, f"product {p.id} seller")
        if p.price <= 0:
            problems.append(f"product {p.id}: price must be positive")

    for o in state.orders.values():
        expect_role(o.buyer_id, None, f"order {o.id} buyer")
        expect_role(o.seller_id, None, f"order {o.id} seller")
        if o.product_id not in state.products:
            problems.append(f"order {o.id}: unknown product {o.product_id}")
        if o.platform_fee + o.seller_amount != o.total_amount:
            problems.append(f"order {o.id}: fee + seller amount != total")

    for user_id in state.credentials:
        if user_id not in state.users:
            problems.append(f"credentials for unknown user {user_id}")

    return problems
