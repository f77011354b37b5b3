from datetime import timedelta
from decimal import Decimal

import pytest

from models.pickup import WasteType
from models.user import Coordinates, UserRole
from utils.errors import Unauthorized, ValidationFailed
from utils.matcher import SORT_KEYS, CollectorContext, haversine_km, urgency_tier

PUNE = Coordinates(lat=18.5204, lng=73.8567)
NEAR = Coordinates(lat=18.5304, lng=73.8467)
FAR = Coordinates(lat=18.9000, lng=73.2000)


def test_urgency_tiers(clock):
    assert urgency_tier(clock.now + timedelta(hours=5), clock.now) == "high"
    assert urgency_tier(clock.now + timedelta(hours=24), clock.now) == "high"
    assert urgency_tier(clock.now + timedelta(hours=48), clock.now) == "medium"
    assert urgency_tier(clock.now + timedelta(days=5), clock.now) == "low"
    assert urgency_tier(clock.now - timedelta(hours=1), clock.now) == "high"


def test_haversine_is_symmetric_and_zero_on_self():
    assert haversine_km(PUNE, PUNE) == 0
    assert haversine_km(PUNE, FAR) == haversine_km(FAR, PUNE)
    assert 1 < haversine_km(PUNE, NEAR) < 2


@pytest.fixture
async def board(store, make_user, clock):
    """Three pending pickups with distinct distance, payment, urgency and owner EcoScore."""
    keen = await make_user(name="Keen")
    casual = await make_user(name="Casual")

    far_metal = await store.create_pickup_request(
        casual.id, WasteType.METAL, 10, "Lonavala market", clock.now + timedelta(days=6), coordinates=FAR,
    )
    near_paper = await store.create_pickup_request(
        keen.id, WasteType.PAPER, 2, "Shivaji Nagar", clock.now + timedelta(hours=6), coordinates=NEAR,
    )
    unknown_glass = await store.create_pickup_request(
        casual.id, WasteType.GLASS, 4, "Kothrud", clock.now + timedelta(hours=50),
    )

    # give Keen a higher EcoScore through a completed pickup
    helper = await make_user(role=UserRole.COLLECTOR)
    done = await store.create_pickup_request(keen.id, WasteType.PLASTIC, 10, "Shivaji Nagar", clock.now)
    await store.accept_pickup_request(done.id, helper.id)
    await store.complete_pickup_request(done.id)

    return {"far": far_metal, "near": near_paper, "unknown": unknown_glass}


def _ids(rows):
    return [r.request.id for r in rows]


async def test_distance_sort_puts_unknown_last(store, collector, board):
    rows = await store.rank_pending_requests(CollectorContext(collector.id, location=PUNE), "distance")
    assert _ids(rows) == [board["near"].id, board["far"].id, board["unknown"].id]
    assert rows[-1].distance_km is None


async def test_without_location_every_distance_is_unknown(store, collector, board):
    rows = await store.rank_pending_requests(CollectorContext(collector.id), "distance")
    assert all(r.distance_km is None for r in rows)
    # ties fall back to creation order
    assert _ids(rows) == sorted(_ids(rows))


async def test_payment_sort(store, collector, board):
    rows = await store.rank_pending_requests(CollectorContext(collector.id), "payment")
    assert _ids(rows) == [board["far"].id, board["unknown"].id, board["near"].id]
    assert rows[0].payment == Decimal("300.00")


async def test_urgency_sort_and_filter(store, collector, board):
    rows = await store.rank_pending_requests(CollectorContext(collector.id), "urgency")
    assert [r.urgency for r in rows] == ["high", "medium", "low"]

    high = await store.rank_pending_requests(CollectorContext(collector.id), "distance", "high")
    assert _ids(high) == [board["near"].id]


async def test_rating_sort_uses_owner_eco_score(store, collector, board):
    rows = await store.rank_pending_requests(CollectorContext(collector.id), "rating")
    assert rows[0].rating > rows[1].rating == rows[2].rating
    # far and unknown share an owner, so their tie falls back to request id
    assert _ids(rows) == [board["near"].id, board["far"].id, board["unknown"].id]


@pytest.mark.parametrize("sort_key", SORT_KEYS)
async def test_identical_requests_rank_by_id_under_every_key(store, collector, generator, clock, sort_key):
    when = clock.now + timedelta(hours=30)
    created = [
        await store.create_pickup_request(generator.id, WasteType.PAPER, 3, "Baner", when, coordinates=NEAR)
        for _ in range(3)
    ]

    rows = await store.rank_pending_requests(CollectorContext(collector.id, location=PUNE), sort_key)
    assert len({(r.payment, r.urgency, r.rating, r.distance_km) for r in rows}) == 1
    assert _ids(rows) == sorted(r.id for r in created)


async def test_search_matches_address_or_waste_type(store, collector, board):
    by_address = await store.rank_pending_requests(CollectorContext(collector.id, search="kothrud"))
    assert _ids(by_address) == [board["unknown"].id]

    by_type = await store.rank_pending_requests(CollectorContext(collector.id, search="metal"))
    assert _ids(by_type) == [board["far"].id]


async def test_ranking_is_read_only(store, collector, board):
    before = store.state
    await store.rank_pending_requests(CollectorContext(collector.id, location=PUNE))
    assert store.state is before


async def test_bad_keys_and_roles(store, collector, generator):
    with pytest.raises(ValidationFailed):
        await store.rank_pending_requests(CollectorContext(collector.id), "price")
    with pytest.raises(ValidationFailed):
        await store.rank_pending_requests(CollectorContext(collector.id), "distance", "urgent")
    with pytest.raises(Unauthorized):
        await store.rank_pending_requests(CollectorContext(generator.id))
