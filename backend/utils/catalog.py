import logging
from datetime import datetime

from pydantic import ValidationError

from config.constants import PLATFORM_FEE_PERCENT, SINGLE_UNIT_LISTINGS
from models.order import Order, OrderStatus
from models.product import Product, ProductCreate, ProductStatus
from utils.errors import InvalidState, NotFound, Unauthorized, ValidationFailed
from utils.guards import is_admin, new_id, require_user
from utils.money import percent_of, to_money
from utils.state import StoreState
from utils.timeline import record_event
from utils.wallet_service import (
    ENTRY_PLATFORM_FEE,
    ENTRY_PLATFORM_FEE_REVERSAL,
    ENTRY_SALE_CREDIT,
    ENTRY_SALE_REVERSAL,
    add_ledger_entry,
)

logger = logging.getLogger(__name__)

ORDER_FLOW = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}
CANCELLABLE_ORDER_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}


# =========================
# PRODUCTS
# =========================

def get_product(state: StoreState, product_id: str) -> Product:
    product = state.products.get(product_id)
    if not product:
        raise NotFound("Product not found", product_id=product_id)
    return product


def add_product(state: StoreState, seller_id: str, details, *, now: datetime) -> Product:
    seller = require_user(state, seller_id, "seller")

    if not isinstance(details, ProductCreate):
        try:
            details = ProductCreate.model_validate(details)
        except ValidationError as e:
            raise ValidationFailed("Invalid product details", errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()])

    title = details.title.strip()
    category = details.category.strip()
    if not title:
        raise ValidationFailed("Title is required")
    if not category:
        raise ValidationFailed("Category is required")
    if details.price <= 0:
        raise ValidationFailed("Price must be greater than zero")

    product = Product(
        id=new_id(),
        seller_id=seller.id,
        title=title,
        description=details.description,
        price=details.price,
        category=category,
        condition=details.condition,
        materials=details.materials,
        location=details.location,
        status=ProductStatus.ACTIVE,
        views=0,
        likes=0,
        created_at=now,
        updated_at=now,
    )
    state.products[product.id] = product

    record_event(state, entity="product", entity_id=product.id, event="PRODUCT_LISTED", now=now, actor_id=seller.id)
    logger.info("PRODUCT_LISTED product=%s seller=%s price=%s", product.id, seller.id, product.price)
    return product


def list_products(
    state: StoreState,
    category: str | None = None,
    status: ProductStatus | None = None,
    q: str | None = None,
    seller_id: str | None = None,
) -> list[Product]:
    needle = (q or "").strip().lower()

    def matches(p: Product) -> bool:
        if category and p.category != category:
            return False
        if status is not None and p.status != status:
            return False
        if seller_id and p.seller_id != seller_id:
            return False
        if needle:
            haystack = " ".join(filter(None, [p.title, p.description, p.category])).lower()
            if needle not in haystack:
                return False
        return True

    return sorted((p for p in state.products.values() if matches(p)), key=lambda p: p.id, reverse=True)


def record_product_view(state: StoreState, product_id: str) -> Product:
    product = get_product(state, product_id)
    updated = product.model_copy(update={"views": product.views + 1})
    state.products[product_id] = updated
    return updated


def like_product(state: StoreState, product_id: str) -> Product:
    product = get_product(state, product_id)
    updated = product.model_copy(update={"likes": product.likes + 1})
    state.products[product_id] = updated
    return updated


def _set_product_status(
    state: StoreState,
    product_id: str,
    *,
    expected: ProductStatus,
    target: ProductStatus,
    actor_id: str | None,
    now: datetime,
    event: str,
) -> Product:
    product = get_product(state, product_id)

    if actor_id is not None and actor_id != product.seller_id and not is_admin(state, actor_id):
        raise Unauthorized("Only the seller can change this listing", product_id=product_id)

    if product.status != expected:
        raise InvalidState(
            f"Product must be {expected.value} (is {product.status.value})",
            product_id=product_id,
            status=product.status.value,
        )

    updated = product.model_copy(update={"status": target, "updated_at": now})
    state.products[product_id] = updated
    record_event(state, entity="product", entity_id=product_id, event=event, now=now, actor_id=actor_id)
    return updated


def set_product_inactive(state: StoreState, product_id: str, *, now: datetime, actor_id: str | None = None) -> Product:
    return _set_product_status(
        state, product_id,
        expected=ProductStatus.ACTIVE, target=ProductStatus.INACTIVE,
        actor_id=actor_id, now=now, event="PRODUCT_DEACTIVATED",
    )


def reactivate_product(state: StoreState, product_id: str, *, now: datetime, actor_id: str | None = None) -> Product:
    return _set_product_status(
        state, product_id,
        expected=ProductStatus.INACTIVE, target=ProductStatus.ACTIVE,
        actor_id=actor_id, now=now, event="PRODUCT_REACTIVATED",
    )


# =========================
# ORDERS
# =========================

def price_order(unit_price, quantity: int) -> dict:
    total = to_money(to_money(unit_price) * quantity)
    platform_fee = percent_of(total, PLATFORM_FEE_PERCENT)
    return {
        "total_amount": total,
        "platform_fee": platform_fee,
        # derived by subtraction so the three always reconcile
        "seller_amount": total - platform_fee,
    }


def get_order(state: StoreState, order_id: str) -> Order:
    order = state.orders.get(order_id)
    if not order:
        raise NotFound("Order not found", order_id=order_id)
    return order


def create_order(
    state: StoreState,
    product_id: str,
    buyer_id: str,
    quantity: int = 1,
    *,
    now: datetime,
    shipping_address: str | None = None,
) -> Order:
    product = get_product(state, product_id)
    if product.status != ProductStatus.ACTIVE:
        raise InvalidState("Product is not available", product_id=product_id, status=product.status.value)

    buyer = require_user(state, buyer_id, "buyer")
    seller = require_user(state, product.seller_id, "seller")

    if buyer.id == seller.id:
        raise Unauthorized("Sellers cannot buy their own listing", product_id=product_id)

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationFailed("Quantity must be a positive integer")
    if SINGLE_UNIT_LISTINGS and quantity != 1:
        raise ValidationFailed("Listings are single items; quantity must be 1")

    pricing = price_order(product.price, quantity)

    order = Order(
        id=new_id(),
        buyer_id=buyer.id,
        seller_id=seller.id,
        product_id=product.id,
        quantity=quantity,
        unit_price=product.price,
        shipping_address=shipping_address or buyer.address,
        status=OrderStatus.PENDING,
        created_at=now,
        updated_at=now,
        **pricing,
    )

    # order and sold flag land in the same commit
    state.orders[order.id] = order
    if SINGLE_UNIT_LISTINGS:
        state.products[product.id] = product.model_copy(update={"status": ProductStatus.SOLD, "updated_at": now})

    add_ledger_entry(
        state,
        ENTRY_SALE_CREDIT,
        now=now,
        user_id=seller.id,
        amount=order.seller_amount,
        reason="ORDER_CREATED",
        related_id=order.id,
    )
    if order.platform_fee > 0:
        add_ledger_entry(
            state,
            ENTRY_PLATFORM_FEE,
            now=now,
            amount=order.platform_fee,
            reason="PLATFORM_FEE",
            related_id=order.id,
        )

    record_event(
        state,
        entity="order",
        entity_id=order.id,
        event="ORDER_CREATED",
        now=now,
        actor_id=buyer.id,
        metadata={"status": OrderStatus.PENDING.value, "total_amount": str(order.total_amount)},
    )
    logger.info("ORDER_CREATED order=%s product=%s buyer=%s total=%s", order.id, product.id, buyer.id, order.total_amount)
    return order


def _reverse_order_entries(state: StoreState, order: Order, *, now: datetime) -> None:
    # ledger is append-only: a cancelled sale is undone by offsetting entries
    add_ledger_entry(
        state,
        ENTRY_SALE_REVERSAL,
        now=now,
        user_id=order.seller_id,
        amount=order.seller_amount,
        reason="ORDER_CANCELLED",
        related_id=order.id,
    )
    if order.platform_fee > 0:
        add_ledger_entry(
            state,
            ENTRY_PLATFORM_FEE_REVERSAL,
            now=now,
            amount=order.platform_fee,
            reason="ORDER_CANCELLED",
            related_id=order.id,
        )


def advance_order_status(
    state: StoreState,
    order_id: str,
    new_status: OrderStatus,
    *,
    now: datetime,
    actor_id: str | None = None,
) -> Order:
    order = get_order(state, order_id)
    try:
        new_status = OrderStatus(new_status)
    except ValueError:
        raise ValidationFailed("Unknown order status", status=str(new_status))
    admin = is_admin(state, actor_id)

    if new_status == OrderStatus.CANCELLED:
        if order.status not in CANCELLABLE_ORDER_STATES:
            raise InvalidState(
                f"Order cannot be cancelled once {order.status.value}",
                order_id=order_id,
                status=order.status.value,
            )
        if actor_id is not None and actor_id not in (order.buyer_id, order.seller_id) and not admin:
            raise Unauthorized("Only the buyer or seller can cancel this order", order_id=order_id)
    else:
        if ORDER_FLOW.get(order.status) != new_status:
            raise InvalidState(
                f"Order cannot move from {order.status.value} to {new_status.value}",
                order_id=order_id,
                status=order.status.value,
            )
        if actor_id is not None and actor_id != order.seller_id and not admin:
            raise Unauthorized("Only the seller can progress this order", order_id=order_id)

    updated = order.model_copy(update={"status": new_status, "updated_at": now})
    state.orders[order_id] = updated

    if new_status == OrderStatus.CANCELLED:
        _reverse_order_entries(state, order, now=now)

    if new_status == OrderStatus.CANCELLED and SINGLE_UNIT_LISTINGS:
        product = state.products.get(order.product_id)
        if product and product.status == ProductStatus.SOLD:
            state.products[product.id] = product.model_copy(update={"status": ProductStatus.ACTIVE, "updated_at": now})

    record_event(
        state,
        entity="order",
        entity_id=order_id,
        event=f"ORDER_{new_status.value.upper()}",
        now=now,
        actor_id=actor_id,
        metadata={"status": new_status.value},
    )
    logger.info("ORDER_STATUS order=%s %s->%s", order_id, order.status.value, new_status.value)
    return updated


def list_orders(state: StoreState, buyer_id: str | None = None, seller_id: str | None = None) -> list[Order]:
    return sorted(
        (
            o for o in state.orders.values()
            if (buyer_id is None or o.buyer_id == buyer_id) and (seller_id is None or o.seller_id == seller_id)
        ),
        key=lambda o: o.id,
        reverse=True,
    )
