from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from typing import Optional

from database import get_store
from models.user import User, UserProfileUpdate, UserRole, UserSubtype
from utils.security import assert_self_or_admin, get_current_user, require_role
from utils.store import CoordinationStore

router = APIRouter(prefix="/api/users", tags=["Users"])

# =========================
# SCHEMAS
# =========================

class GreenCoinAdjustment(BaseModel):
    delta: int
    reason: str = Field(..., min_length=1)


class GreenCoinRedemption(BaseModel):
    amount: int = Field(..., gt=0)
    reason: str = "redemption"


class VerifyUser(BaseModel):
    verified: bool = True


# =========================
# SELF
# =========================

@router.patch("/me", response_model=User)
async def update_me(
    data: UserProfileUpdate,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    return await store.update_profile(user.id, data)


@router.post("/me/redeem")
async def redeem_green_coins(
    data: GreenCoinRedemption,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    balance = await store.adjust_green_coins(user.id, -data.amount, data.reason)
    return {"message": "GreenCoins redeemed", "green_coins": balance}


@router.get("/me/ledger")
async def my_ledger(
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    entries = await store.ledger_for(user.id)
    return {"count": len(entries), "entries": entries}


# =========================
# ADMIN
# =========================

@router.get("", response_model=list[User])
async def list_users(
    role: Optional[UserRole] = Query(None),
    subtype: Optional[UserSubtype] = Query(None),
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_users(role=role, subtype=subtype)


@router.get("/{user_id}", response_model=User)
async def get_user(
    user_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    assert_self_or_admin(user, user_id)
    return await store.get_user(user_id)


@router.post("/{user_id}/verify", response_model=User)
async def verify_user(
    user_id: str,
    data: VerifyUser,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.set_verified(user_id, data.verified, actor_id=admin.id)


@router.post("/{user_id}/green-coins")
async def adjust_green_coins(
    user_id: str,
    data: GreenCoinAdjustment,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    balance = await store.adjust_green_coins(user_id, data.delta, data.reason)
    return {"user_id": user_id, "green_coins": balance}
