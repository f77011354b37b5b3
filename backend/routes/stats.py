from fastapi import APIRouter, Depends

from database import get_store
from models.user import User, UserRole, UserSubtype
from utils.security import assert_self_or_admin, get_current_user, require_role
from utils.store import CoordinationStore

router = APIRouter(prefix="/api/stats", tags=["Stats"])


@router.get("/me")
async def my_stats(
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    """
    Dashboard for whoever is calling, picked by role and subtype.
    """
    if user.role == UserRole.ADMIN:
        return await store.admin_stats()
    if user.role == UserRole.COLLECTOR:
        return await store.collector_stats(user.id)
    if user.subtype == UserSubtype.ORGANIZATION:
        return await store.organization_stats(user.id)
    if user.subtype == UserSubtype.DIY_SELLER:
        return await store.seller_stats(user.id)
    return await store.user_stats(user.id)


@router.get("/user/{user_id}")
async def user_stats(
    user_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    assert_self_or_admin(user, user_id)
    return await store.user_stats(user_id)


@router.get("/collector/{collector_id}")
async def collector_stats(
    collector_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    assert_self_or_admin(user, collector_id)
    return await store.collector_stats(collector_id)


@router.get("/organization/{user_id}")
async def organization_stats(
    user_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    assert_self_or_admin(user, user_id)
    return await store.organization_stats(user_id)


@router.get("/seller/{user_id}")
async def seller_stats(
    user_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    assert_self_or_admin(user, user_id)
    return await store.seller_stats(user_id)


@router.get("/admin")
async def admin_stats(
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.admin_stats()
