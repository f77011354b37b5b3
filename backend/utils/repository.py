import asyncio
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """
    Durability seam for the coordination store. The store never talks to
    storage itself: the composition root loads a snapshot at startup and
    the snapshot worker saves one periodically.
    """

    async def load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def save(self, snapshot: Dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryRepository(SnapshotRepository):
    def __init__(self):
        self._snapshot: Optional[Dict[str, Any]] = None

    async def load(self):
        return self._snapshot

    async def save(self, snapshot):
        self._snapshot = snapshot


class JsonFileRepository(SnapshotRepository):
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def _read(self):
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _write(self, snapshot):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(snapshot, fh)
        # atomic swap, a crash mid-write keeps the previous snapshot
        os.replace(tmp, self.path)

    async def load(self):
        return await asyncio.to_thread(self._read)

    async def save(self, snapshot):
        await asyncio.to_thread(self._write, snapshot)


class MongoSnapshotRepository(SnapshotRepository):
    """
    Keeps the latest snapshot as one document in MongoDB (via motor).
    """

    SNAPSHOT_KEY = "coordination_store"

    def __init__(self, db, collection: str = "store_snapshots"):
        self.collection = db[collection]

    async def load(self):
        doc = await self.collection.find_one({"_id": self.SNAPSHOT_KEY})
        if not doc:
            return None
        return doc.get("snapshot")

    async def save(self, snapshot):
        await self.collection.update_one(
            {"_id": self.SNAPSHOT_KEY},
            {
                "$set": {
                    "snapshot": snapshot,
                    "saved_at": datetime.utcnow(),
                }
            },
            upsert=True,
        )
