from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient

from config.env import (
    MONGO_SNAPSHOT_COLLECTION,
    MONGO_URI,
    SNAPSHOT_BACKEND,
    SNAPSHOT_PATH,
)
from utils.repository import (
    JsonFileRepository,
    MemoryRepository,
    MongoSnapshotRepository,
    SnapshotRepository,
)
from utils.store import CoordinationStore


def build_repository(backend: str = SNAPSHOT_BACKEND) -> SnapshotRepository:
    if backend == "json":
        return JsonFileRepository(SNAPSHOT_PATH)

    if backend == "mongo":
        if not MONGO_URI:
            raise RuntimeError("MONGODB_URI not set")
        client = AsyncIOMotorClient(MONGO_URI)
        return MongoSnapshotRepository(client.get_default_database(), MONGO_SNAPSHOT_COLLECTION)

    return MemoryRepository()


def get_store(request: Request) -> CoordinationStore:
    return request.app.state.store
