from fastapi import APIRouter, Depends, Request
import logging

from database import get_store
from models.user import User, UserRole
from utils.security import require_role
from utils.store import CoordinationStore
from workers.snapshot_worker import save_snapshot


router = APIRouter(prefix="/api/admin", tags=["Admin"])

logger = logging.getLogger(__name__)


# =====================================================
# SNAPSHOTS
# =====================================================

@router.get("/snapshot")
async def export_snapshot(
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return store.snapshot()


@router.post("/snapshot/restore")
async def restore_snapshot(
    data: dict,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    await store.restore(data)
    logger.warning("SNAPSHOT_RESTORED admin=%s users=%s", admin.id, len(store.state.users))
    return {
        "message": "Snapshot restored",
        "users": len(store.state.users),
        "pickup_requests": len(store.state.pickup_requests),
        "products": len(store.state.products),
        "orders": len(store.state.orders),
    }


@router.post("/snapshot/save")
async def save_snapshot_now(
    request: Request,
    admin: User = Depends(require_role(UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    await save_snapshot(store, request.app.state.repository)
    return {"message": "Snapshot saved"}
