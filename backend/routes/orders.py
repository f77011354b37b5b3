from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional

from database import get_store
from models.order import Order, OrderStatus
from models.user import User, UserRole
from utils.security import get_current_user, require_role
from utils.store import CoordinationStore


router = APIRouter(
    prefix="/api/orders",
    tags=["Orders"]
)


class CreateOrderRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    shipping_address: Optional[str] = None


class UpdateOrderStatus(BaseModel):
    status: OrderStatus


# =====================================================
# BUYER
# =====================================================

@router.post("", response_model=Order, status_code=201)
async def create_order(
    data: CreateOrderRequest,
    buyer: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    shipping_address = data.shipping_address or buyer.address
    return await store.create_order(
        data.product_id,
        buyer.id,
        data.quantity,
        shipping_address=shipping_address,
    )


@router.get("/mine", response_model=list[Order])
async def my_orders(
    buyer: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_orders(buyer_id=buyer.id)


# =====================================================
# SELLER
# =====================================================

@router.get("/sales", response_model=list[Order])
async def my_sales(
    seller: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_orders(seller_id=seller.id)


# =====================================================
# SHARED
# =====================================================

@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    order = await store.get_order(order_id)
    if user.role != UserRole.ADMIN and user.id not in (order.buyer_id, order.seller_id):
        raise HTTPException(403, "You do not have permission to view this order")
    return order


@router.post("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    data: UpdateOrderStatus,
    user: User = Depends(get_current_user),
    store: CoordinationStore = Depends(get_store),
):
    return await store.advance_order_status(order_id, data.status, actor_id=user.id)
