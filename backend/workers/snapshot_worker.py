import asyncio
import logging

from config.env import SNAPSHOT_INTERVAL_SECONDS
from utils.repository import SnapshotRepository
from utils.store import CoordinationStore

logger = logging.getLogger(__name__)


async def save_snapshot(store: CoordinationStore, repository: SnapshotRepository) -> None:
    snapshot = store.snapshot()
    await repository.save(snapshot)
    logger.info(
        "SNAPSHOT_SAVED users=%s pickups=%s orders=%s",
        len(snapshot["users"]), len(snapshot["pickup_requests"]), len(snapshot["orders"]),
    )


async def snapshot_worker(
    store: CoordinationStore,
    repository: SnapshotRepository,
    interval_seconds: int = SNAPSHOT_INTERVAL_SECONDS,
):
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await save_snapshot(store, repository)
        except Exception:
            logger.exception("SNAPSHOT_SAVE_ERROR")
