import asyncio
import json
from decimal import Decimal

import pytest

from models.pickup import PickupStatus, WasteType
from models.product import ProductCreate
from utils.errors import ValidationFailed
from utils.guards import integrity_problems
from utils.repository import JsonFileRepository, MemoryRepository
from utils.store import CoordinationStore
from utils.wallet_service import ledger_green_coin_balance
from workers.snapshot_worker import save_snapshot, snapshot_worker


@pytest.fixture
async def busy_store(store, make_user, generator, collector, tomorrow):
    buyer = await make_user(name="Buyer")
    request = await store.create_pickup_request(generator.id, WasteType.PLASTIC, 5, "9 Bund Garden", tomorrow)
    await store.accept_pickup_request(request.id, collector.id)
    await store.complete_pickup_request(request.id, 75)

    product = await store.add_product(generator.id, ProductCreate(title="Crate shelf", price=300, category="furniture"))
    await store.create_order(product.id, buyer.id)
    return store


async def test_json_round_trip_restores_identical_state(busy_store, clock, tmp_path):
    repository = JsonFileRepository(tmp_path / "snapshots" / "store.json")
    await save_snapshot(busy_store, repository)

    on_disk = json.loads((tmp_path / "snapshots" / "store.json").read_text())
    assert on_disk["version"] == 1

    fresh = CoordinationStore(clock=clock)
    await fresh.restore(await repository.load())

    assert fresh.state.users == busy_store.state.users
    assert fresh.state.pickup_requests == busy_store.state.pickup_requests
    assert fresh.state.orders == busy_store.state.orders
    assert fresh.state.ledger == busy_store.state.ledger
    assert integrity_problems(fresh.state) == []


async def test_missing_json_snapshot_loads_as_none(tmp_path):
    assert await JsonFileRepository(tmp_path / "absent.json").load() is None


async def test_restore_rejects_broken_references(busy_store, clock):
    snapshot = busy_store.snapshot()
    snapshot["pickup_requests"][0]["collector_id"] = "no-such-collector"

    fresh = CoordinationStore(clock=clock)
    with pytest.raises(ValidationFailed) as exc:
        await fresh.restore(snapshot)
    assert exc.value.details["problems"]
    assert fresh.state.users == {}


async def test_restore_rejects_malformed_records(busy_store, clock):
    snapshot = busy_store.snapshot()
    snapshot["orders"][0]["total_amount"] = "lots"

    with pytest.raises(ValidationFailed):
        await CoordinationStore(clock=clock).restore(snapshot)


async def test_restore_rejects_unknown_version(clock):
    with pytest.raises(ValidationFailed):
        await CoordinationStore(clock=clock).restore({"version": 99})


async def test_memory_repository(busy_store):
    repository = MemoryRepository()
    assert await repository.load() is None
    await save_snapshot(busy_store, repository)
    assert (await repository.load())["users"]


async def test_green_coins_match_ledger(busy_store, generator):
    user = await busy_store.get_user(generator.id)
    assert user.green_coins == ledger_green_coin_balance(busy_store.state, generator.id) == 38


async def test_every_completed_request_has_collector(busy_store):
    for request in busy_store.state.pickup_requests.values():
        if request.status == PickupStatus.COMPLETED:
            assert request.collector_id is not None
            assert request.actual_price == Decimal("75.00")
    for order in busy_store.state.orders.values():
        assert order.platform_fee + order.seller_amount == order.total_amount


async def test_snapshot_worker_saves_periodically(busy_store):
    repository = MemoryRepository()
    task = asyncio.create_task(snapshot_worker(busy_store, repository, interval_seconds=0))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await repository.load())["version"] == 1
