import os

os.environ.setdefault("JWT_SECRET", "test-secret-for-pytest")
os.environ.setdefault("SNAPSHOT_BACKEND", "memory")

from datetime import datetime, timedelta

import pytest

from models.user import UserCreate, UserRole, UserSubtype
from utils.store import CoordinationStore

NOW = datetime(2026, 3, 15, 10, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    return CoordinationStore(clock=clock)


@pytest.fixture
def make_user(store):
    counter = {"n": 0}

    async def _make(role=UserRole.END_USER, subtype=UserSubtype.GENERATOR, **fields):
        counter["n"] += 1
        if role != UserRole.END_USER:
            subtype = None
        profile = UserCreate(
            name=fields.pop("name", f"{role.value} {counter['n']}"),
            email=fields.pop("email", f"{role.value.replace('-', '')}{counter['n']}@trash2trade.com"),
            role=role,
            subtype=subtype,
            **fields,
        )
        return await store.create_user(profile)

    return _make


@pytest.fixture
async def generator(make_user):
    return await make_user(name="Asha")


@pytest.fixture
async def collector(make_user):
    return await make_user(role=UserRole.COLLECTOR, name="Ravi")


@pytest.fixture
async def admin(make_user):
    return await make_user(role=UserRole.ADMIN, name="Ops")


@pytest.fixture
def tomorrow(clock):
    return clock.now + timedelta(days=1)
