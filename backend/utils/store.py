import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict

from pydantic import ValidationError

from models.ledger import LedgerEntry, TimelineEvent
from models.order import Order
from models.pickup import PickupRequest
from models.product import Product
from models.user import User
from utils import catalog, identity_registry, matcher, products, request_ledger, stats
from utils.errors import StoreError, StoreFailure, ValidationFailed
from utils.guards import integrity_problems
from utils.state import StoreState

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class CoordinationStore:
    """
    In-process owner of every business entity.

    Constructed by the composition root (main.py) and handed to routes via
    the `get_store` dependency; tests build a fresh one each.

    Concurrency: one asyncio.Lock admits a single mutator at a time. A
    mutator runs against `state.copy()` and the copy replaces the live
    state only if the mutator returns, so a failure never leaves a
    half-applied change. Readers take the live state reference, which is
    never modified in place, so each read sees one consistent snapshot.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None, state: StoreState | None = None):
        self._state = state or StoreState()
        self._lock = asyncio.Lock()
        self._clock = clock or datetime.utcnow

    @property
    def state(self) -> StoreState:
        return self._state

    def now(self) -> datetime:
        return self._clock()

    # ==============================
    # Core plumbing
    # ==============================

    async def _mutate(self, operation: str, fn, *args, **kwargs):
        async with self._lock:
            staged = self._state.copy()
            try:
                result = fn(staged, *args, now=self._clock(), **kwargs)
            except StoreError:
                raise
            except Exception as e:
                logger.exception("STORE_MUTATION_ERROR op=%s", operation)
                raise StoreFailure(f"{operation} failed unexpectedly", operation=operation) from e
            self._state = staged
            return result

    async def _read(self, operation: str, fn, *args, **kwargs):
        state = self._state
        try:
            return fn(state, *args, **kwargs)
        except StoreError:
            raise
        except Exception as e:
            logger.exception("STORE_READ_ERROR op=%s", operation)
            raise StoreFailure(f"{operation} failed unexpectedly", operation=operation) from e

    # ==============================
    # Identity Registry
    # ==============================

    async def create_user(self, profile) -> User:
        return await self._mutate("create_user", identity_registry.create_user, profile)

    async def get_user(self, user_id: str) -> User:
        return await self._read("get_user", identity_registry.get_user, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._read("get_user_by_email", identity_registry.get_user_by_email, email)

    async def list_users(self, role=None, subtype=None) -> list[User]:
        return await self._read("list_users", identity_registry.list_users, role, subtype)

    async def authenticate(self, email: str, password: str) -> User:
        return await self._read("authenticate", identity_registry.authenticate, email, password)

    async def update_profile(self, user_id: str, updates) -> User:
        return await self._mutate("update_profile", identity_registry.update_profile, user_id, updates)

    async def set_verified(self, user_id: str, verified: bool = True, *, actor_id: str | None = None) -> User:
        return await self._mutate("set_verified", identity_registry.set_verified, user_id, verified, actor_id=actor_id)

    async def adjust_green_coins(self, user_id: str, delta: int, reason: str, *, related_id: str | None = None) -> int:
        return await self._mutate(
            "adjust_green_coins", identity_registry.adjust_green_coins, user_id, delta, reason, related_id=related_id
        )

    async def ledger_for(self, user_id: str) -> list[LedgerEntry]:
        def read(state, uid):
            identity_registry.get_user(state, uid)
            return sorted((e for e in state.ledger if e.user_id == uid), key=lambda e: e.id, reverse=True)
        return await self._read("ledger_for", read, user_id)

    # ==============================
    # Request Ledger
    # ==============================

    async def create_pickup_request(self, owner_id: str, waste_type, quantity, address: str, scheduled_date: datetime, **extra) -> PickupRequest:
        return await self._mutate(
            "create_pickup_request",
            request_ledger.create_pickup_request,
            owner_id, waste_type, quantity, address, scheduled_date,
            **extra,
        )

    async def accept_pickup_request(self, request_id: str, collector_id: str) -> PickupRequest:
        return await self._mutate("accept_pickup_request", request_ledger.accept_pickup_request, request_id, collector_id)

    async def complete_pickup_request(self, request_id: str, actual_price=None, *, actor_id: str | None = None) -> PickupRequest:
        return await self._mutate(
            "complete_pickup_request", request_ledger.complete_pickup_request, request_id, actual_price, actor_id=actor_id
        )

    async def cancel_pickup_request(self, request_id: str, *, actor_id: str | None = None) -> PickupRequest:
        return await self._mutate("cancel_pickup_request", request_ledger.cancel_pickup_request, request_id, actor_id=actor_id)

    async def get_pickup_request(self, request_id: str) -> PickupRequest:
        return await self._read("get_pickup_request", request_ledger.get_pickup_request, request_id)

    async def list_pending(self) -> list[PickupRequest]:
        return await self._read("list_pending", request_ledger.list_pending)

    async def list_by_owner(self, owner_id: str) -> list[PickupRequest]:
        return await self._read("list_by_owner", request_ledger.list_by_owner, owner_id)

    async def list_by_collector(self, collector_id: str) -> list[PickupRequest]:
        return await self._read("list_by_collector", request_ledger.list_by_collector, collector_id)

    async def status_history(self, request_id: str) -> list[str]:
        return await self._read("status_history", request_ledger.status_history, request_id)

    # ==============================
    # Marketplace Catalog & Orders
    # ==============================

    async def add_product(self, seller_id: str, details) -> Product:
        return await self._mutate("add_product", catalog.add_product, seller_id, details)

    async def get_product(self, product_id: str) -> Product:
        return await self._read("get_product", catalog.get_product, product_id)

    async def list_products(self, category=None, status=None, q=None, seller_id=None) -> list[Product]:
        return await self._read("list_products", catalog.list_products, category, status, q, seller_id)

    async def list_product_cards(self, category=None, status=None, q=None) -> list[dict]:
        return await self._read("list_product_cards", products.list_product_cards, category, status, q)

    async def product_detail(self, product_id: str) -> dict:
        return await self._read("product_detail", products.product_detail, product_id)

    async def record_product_view(self, product_id: str) -> Product:
        return await self._mutate("record_product_view", catalog.record_product_view, product_id)

    async def like_product(self, product_id: str) -> Product:
        return await self._mutate("like_product", catalog.like_product, product_id)

    async def set_product_inactive(self, product_id: str, *, actor_id: str | None = None) -> Product:
        return await self._mutate("set_product_inactive", catalog.set_product_inactive, product_id, actor_id=actor_id)

    async def reactivate_product(self, product_id: str, *, actor_id: str | None = None) -> Product:
        return await self._mutate("reactivate_product", catalog.reactivate_product, product_id, actor_id=actor_id)

    async def create_order(self, product_id: str, buyer_id: str, quantity: int = 1, *, shipping_address: str | None = None) -> Order:
        return await self._mutate(
            "create_order", catalog.create_order, product_id, buyer_id, quantity, shipping_address=shipping_address
        )

    async def advance_order_status(self, order_id: str, new_status, *, actor_id: str | None = None) -> Order:
        return await self._mutate("advance_order_status", catalog.advance_order_status, order_id, new_status, actor_id=actor_id)

    async def get_order(self, order_id: str) -> Order:
        return await self._read("get_order", catalog.get_order, order_id)

    async def list_orders(self, buyer_id: str | None = None, seller_id: str | None = None) -> list[Order]:
        return await self._read("list_orders", catalog.list_orders, buyer_id, seller_id)

    # ==============================
    # Assignment Matcher
    # ==============================

    async def rank_pending_requests(self, context: matcher.CollectorContext, sort_key: str = "distance", filter_key: str = "all") -> list[matcher.RankedRequest]:
        return await self._read(
            "rank_pending_requests", matcher.rank_pending_requests, context, sort_key, filter_key, now=self._clock()
        )

    # ==============================
    # Statistics Aggregator
    # ==============================

    async def collector_stats(self, collector_id: str) -> Dict[str, Any]:
        return await self._read("collector_stats", stats.collector_stats, collector_id)

    async def user_stats(self, user_id: str) -> Dict[str, Any]:
        return await self._read("user_stats", stats.user_stats, user_id)

    async def organization_stats(self, user_id: str) -> Dict[str, Any]:
        return await self._read("organization_stats", stats.organization_stats, user_id, now=self._clock())

    async def seller_stats(self, user_id: str) -> Dict[str, Any]:
        return await self._read("seller_stats", stats.seller_stats, user_id)

    async def admin_stats(self) -> Dict[str, Any]:
        return await self._read("admin_stats", stats.admin_stats, now=self._clock())

    # ==============================
    # Snapshot export / import
    # ==============================

    def snapshot(self) -> Dict[str, Any]:
        state = self._state
        return {
            "version": SNAPSHOT_VERSION,
            "exported_at": self._clock().isoformat(),
            "users": [u.model_dump(mode="json") for u in state.users.values()],
            "credentials": dict(state.credentials),
            "pickup_requests": [r.model_dump(mode="json") for r in state.pickup_requests.values()],
            "products": [p.model_dump(mode="json") for p in state.products.values()],
            "orders": [o.model_dump(mode="json") for o in state.orders.values()],
            "ledger": [e.model_dump(mode="json") for e in state.ledger],
            "timeline": [e.model_dump(mode="json") for e in state.timeline],
        }

    async def restore(self, data: Dict[str, Any]) -> None:
        """
        Replace the whole state with a previously exported snapshot.
        The snapshot is fully validated first; a bad one changes nothing.
        """
        if data.get("version") != SNAPSHOT_VERSION:
            raise ValidationFailed("Unsupported snapshot version", version=data.get("version"))

        try:
            state = StoreState(
                users={u.id: u for u in map(User.model_validate, data.get("users", []))},
                credentials=dict(data.get("credentials", {})),
                pickup_requests={r.id: r for r in map(PickupRequest.model_validate, data.get("pickup_requests", []))},
                products={p.id: p for p in map(Product.model_validate, data.get("products", []))},
                orders={o.id: o for o in map(Order.model_validate, data.get("orders", []))},
                ledger=[LedgerEntry.model_validate(e) for e in data.get("ledger", [])],
                timeline=[TimelineEvent.model_validate(e) for e in data.get("timeline", [])],
            )
        except ValidationError as e:
            raise ValidationFailed("Snapshot is malformed", errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])

        problems = integrity_problems(state)
        if problems:
            raise ValidationFailed("Snapshot violates store invariants", problems=problems)

        async with self._lock:
            self._state = state

        logger.info(
            "STORE_RESTORED users=%s pickups=%s products=%s orders=%s",
            len(state.users), len(state.pickup_requests), len(state.products), len(state.orders),
        )
