from datetime import timedelta
from decimal import Decimal

import pytest

from models.order import OrderStatus
from models.pickup import WasteType
from models.product import ProductCreate
from models.user import UserRole, UserSubtype
from utils.errors import NotFound, Unauthorized


async def _completed_pickup(store, owner, collector, waste_type, quantity, when, price=None):
    request = await store.create_pickup_request(owner.id, waste_type, quantity, "1 Ring Road", when)
    await store.accept_pickup_request(request.id, collector.id)
    return await store.complete_pickup_request(request.id, price)


async def test_collector_with_no_pickups_has_zero_efficiency(store, collector):
    stats = await store.collector_stats(collector.id)

    assert stats["total_pickups"] == 0
    assert stats["efficiency"] == 0
    assert stats["avg_earnings_per_pickup"] == 0
    assert stats["waste_type_breakdown"] == []


async def test_collector_stats(store, generator, collector, tomorrow):
    await _completed_pickup(store, generator, collector, WasteType.PLASTIC, 5, tomorrow, 75)
    await _completed_pickup(store, generator, collector, WasteType.PAPER, 3, tomorrow, 20)
    active = await store.create_pickup_request(generator.id, WasteType.METAL, 1, "1 Ring Road", tomorrow)
    await store.accept_pickup_request(active.id, collector.id)

    stats = await store.collector_stats(collector.id)

    assert stats["total_pickups"] == 2
    assert stats["total_earnings"] == Decimal("95.00")
    assert stats["waste_collected"] == Decimal("8.000")
    assert stats["efficiency"] == Decimal("4.00")
    assert stats["active_pickups"] == 1
    assert stats["avg_earnings_per_pickup"] == Decimal("47.50")
    assert [row["waste_type"] for row in stats["waste_type_breakdown"]] == ["plastic", "paper"]


async def test_collector_stats_rejects_non_collector(store, generator):
    with pytest.raises(Unauthorized):
        await store.collector_stats(generator.id)


async def test_user_stats(store, generator, collector, tomorrow):
    await _completed_pickup(store, generator, collector, WasteType.PLASTIC, 5, tomorrow, 75)
    await store.create_pickup_request(generator.id, WasteType.GLASS, 2, "1 Ring Road", tomorrow)

    stats = await store.user_stats(generator.id)

    assert stats["total_pickups"] == 1
    assert stats["pending_pickups"] == 1
    assert stats["green_coins"] == 38
    assert stats["eco_score"] == 2
    assert stats["waste_collected"] == Decimal("5.000")
    assert stats["co2_saved"] == Decimal("2.50")
    assert stats["total_earnings"] == Decimal("75.00")
    assert stats["next_pickup"] is None
    assert len(stats["recent_activity"]) == 2


async def test_user_stats_unknown_user(store):
    with pytest.raises(NotFound):
        await store.user_stats("nobody")


async def test_organization_stats_monthly_buckets(store, make_user, collector, clock):
    org = await make_user(subtype=UserSubtype.ORGANIZATION)
    await _completed_pickup(store, org, collector, WasteType.CARDBOARD, 10, clock.now)
    clock.advance(days=40)
    await _completed_pickup(store, org, collector, WasteType.CARDBOARD, 6, clock.now)

    stats = await store.organization_stats(org.id)

    assert stats["pickups_sponsored"] == 2
    assert stats["waste_recycled"] == Decimal("16.000")
    assert stats["co2_saved"] == Decimal("8.00")
    assert len(stats["monthly_pickups"]) == 12
    assert stats["monthly_pickups"][-1] == 1
    assert stats["monthly_pickups"][-2] == 1
    assert sum(stats["monthly_pickups"]) == 2


async def test_seller_stats(store, make_user):
    seller = await make_user(subtype=UserSubtype.DIY_SELLER)
    buyer = await make_user()
    sold = await store.add_product(seller.id, ProductCreate(title="Jute bag", price=200, category="bags"))
    await store.add_product(seller.id, ProductCreate(title="Can planter", price=120, category="garden"))
    await store.record_product_view(sold.id)

    order = await store.create_order(sold.id, buyer.id)
    for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        await store.advance_order_status(order.id, status, actor_id=seller.id)

    stats = await store.seller_stats(seller.id)

    assert stats["items_listed"] == 2
    assert stats["items_sold"] == 1
    assert stats["active_listings"] == 1
    assert stats["total_earnings"] == Decimal("190.00")
    assert stats["platform_fees"] == Decimal("10.00")
    assert stats["completed_sales"] == 1
    assert stats["total_views"] == 1
    assert stats["conversion_rate"] == Decimal("50.0")


async def test_seller_stats_with_no_listings(store, make_user):
    seller = await make_user(subtype=UserSubtype.DIY_SELLER)
    stats = await store.seller_stats(seller.id)
    assert stats["conversion_rate"] == 0
    assert stats["total_earnings"] == Decimal("0.00")


async def test_admin_stats(store, make_user, generator, collector, tomorrow):
    second = await make_user(role=UserRole.COLLECTOR, name="Second")
    await _completed_pickup(store, generator, collector, WasteType.PLASTIC, 5, tomorrow, 75)
    await _completed_pickup(store, generator, second, WasteType.METAL, 2, tomorrow, 100)
    await store.create_pickup_request(generator.id, WasteType.PAPER, 1, "1 Ring Road", tomorrow)

    stats = await store.admin_stats()

    assert stats["total_users"] == 1
    assert stats["total_collectors"] == 2
    assert stats["total_requests"] == 3
    assert stats["completed_requests"] == 2
    assert stats["pending_requests"] == 1
    assert stats["pickup_revenue"] == Decimal("175.00")
    assert stats["completion_rate"] == Decimal("66.7")
    assert [c["collector_id"] for c in stats["top_collectors"]] == [second.id, collector.id]


async def test_admin_stats_on_empty_store(store):
    stats = await store.admin_stats()
    assert stats["completion_rate"] == 0
    assert stats["top_collectors"] == []
    assert stats["monthly_pickups"] == [0] * 12


async def test_stats_reflect_latest_state(store, generator, collector, clock):
    request = await store.create_pickup_request(generator.id, WasteType.PAPER, 1, "1 Ring Road", clock.now + timedelta(hours=2))
    assert (await store.user_stats(generator.id))["pending_pickups"] == 1

    await store.cancel_pickup_request(request.id, actor_id=generator.id)
    assert (await store.user_stats(generator.id))["pending_pickups"] == 0
