import logging
from datetime import datetime

from pydantic import ValidationError

from models.user import User, UserCreate, UserProfileUpdate, UserRole, UserSubtype
from utils.errors import InsufficientBalance, NotFound, Unauthorized, ValidationFailed
from utils.guards import new_id, require_user
from utils.hash import hash_password, verify_password
from utils.state import StoreState
from utils.timeline import record_event
from utils.wallet_service import ENTRY_COINS_CREDIT, ENTRY_COINS_DEBIT, add_ledger_entry

logger = logging.getLogger(__name__)


# ==============================
# Accounts
# ==============================

def _parse_profile(profile) -> UserCreate:
    if isinstance(profile, UserCreate):
        return profile
    try:
        return UserCreate.model_validate(profile)
    except ValidationError as e:
        raise ValidationFailed("Invalid user profile", errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])


def create_user(state: StoreState, profile, *, now: datetime) -> User:
    data = _parse_profile(profile)

    name = (data.name or "").strip()
    if not name:
        raise ValidationFailed("Name is required")

    if data.role == UserRole.END_USER and data.subtype is None:
        raise ValidationFailed("Subtype is required for end-users")
    if data.role != UserRole.END_USER and data.subtype is not None:
        raise ValidationFailed("Subtype is only allowed for end-users")

    email = data.email.strip().lower()
    if get_user_by_email(state, email):
        raise ValidationFailed("Email already registered", email=email)

    password_hash = hash_password(data.password) if data.password else None

    user = User(
        id=new_id(),
        name=name,
        email=email,
        role=data.role,
        subtype=data.subtype,
        phone=data.phone,
        address=data.address,
        coordinates=data.coordinates,
        green_coins=0,
        eco_score=0,
        is_verified=False,
        created_at=now,
        updated_at=now,
    )

    state.users[user.id] = user
    if password_hash:
        state.credentials[user.id] = password_hash

    record_event(
        state,
        entity="user",
        entity_id=user.id,
        event="USER_CREATED",
        now=now,
        metadata={"role": user.role.value},
    )
    logger.info("USER_CREATED user=%s role=%s", user.id, user.role.value)
    return user


def get_user(state: StoreState, user_id: str) -> User:
    return require_user(state, user_id)


def get_user_by_email(state: StoreState, email: str) -> User | None:
    email = (email or "").strip().lower()
    return next((u for u in state.users.values() if u.email == email), None)


def list_users(
    state: StoreState,
    role: UserRole | None = None,
    subtype: UserSubtype | None = None,
) -> list[User]:
    users = [
        u for u in state.users.values()
        if (role is None or u.role == role) and (subtype is None or u.subtype == subtype)
    ]
    return sorted(users, key=lambda u: u.id)


def authenticate(state: StoreState, email: str, password: str) -> User:
    user = get_user_by_email(state, email)
    if not user or not verify_password(password, state.credentials.get(user.id)):
        raise Unauthorized("Incorrect email or password")
    return user


def update_profile(state: StoreState, user_id: str, updates: UserProfileUpdate, *, now: datetime) -> User:
    user = require_user(state, user_id)

    changes = updates.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationFailed("Name cannot be empty")
    if "coordinates" in changes and updates.coordinates is not None:
        changes["coordinates"] = updates.coordinates

    if not changes:
        return user

    updated = user.model_copy(update={**changes, "updated_at": now})
    state.users[user_id] = updated
    return updated


def set_verified(
    state: StoreState,
    user_id: str,
    verified: bool = True,
    *,
    now: datetime,
    actor_id: str | None = None,
) -> User:
    user = require_user(state, user_id)
    if user.is_verified == verified:
        return user

    updated = user.model_copy(update={"is_verified": verified, "updated_at": now})
    state.users[user_id] = updated

    record_event(
        state,
        entity="user",
        entity_id=user_id,
        event="USER_VERIFIED" if verified else "USER_UNVERIFIED",
        now=now,
        actor_id=actor_id,
    )
    return updated


# ==============================
# Rewards
# ==============================

def adjust_green_coins(
    state: StoreState,
    user_id: str,
    delta: int,
    reason: str,
    *,
    now: datetime,
    related_id: str | None = None,
) -> int:
    """
    The only sanctioned mutator of User.green_coins.
    Balance never drops below zero; an overdraw leaves it untouched.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationFailed("GreenCoins delta must be an integer")
    if delta == 0:
        raise ValidationFailed("GreenCoins delta cannot be zero")
    if not (reason or "").strip():
        raise ValidationFailed("Reason is required")

    user = state.users.get(user_id)
    if not user:
        raise NotFound("User not found", user_id=user_id)

    new_balance = user.green_coins + delta
    if new_balance < 0:
        raise InsufficientBalance(
            "Insufficient GreenCoins balance",
            user_id=user_id,
            balance=user.green_coins,
            requested=-delta,
        )

    state.users[user_id] = user.model_copy(update={"green_coins": new_balance, "updated_at": now})

    add_ledger_entry(
        state,
        ENTRY_COINS_CREDIT if delta > 0 else ENTRY_COINS_DEBIT,
        now=now,
        user_id=user_id,
        green_coins=delta,
        reason=reason,
        related_id=related_id,
    )

    logger.info("GREEN_COINS_ADJUSTED user=%s delta=%s balance=%s reason=%s", user_id, delta, new_balance, reason)
    return new_balance


def add_eco_score(state: StoreState, user_id: str, points: int, *, now: datetime) -> int:
    if points < 0:
        raise ValidationFailed("EcoScore only grows")
    user = require_user(state, user_id)
    if points == 0:
        return user.eco_score
    score = user.eco_score + points
    state.users[user_id] = user.model_copy(update={"eco_score": score, "updated_at": now})
    return score
