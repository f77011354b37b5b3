from fastapi import APIRouter, Depends, Query
from typing import Optional

from database import get_store
from models.product import Product, ProductCreate, ProductStatus
from models.user import User, UserRole
from utils.security import require_role
from utils.store import CoordinationStore

router = APIRouter(prefix="/api/products", tags=["Products"])


# =========================
# BUYER SEARCH
# =========================

@router.get("")
async def search_products(
    q: Optional[str] = Query(None, description="Search query"),
    category: Optional[str] = None,
    status: ProductStatus = ProductStatus.ACTIVE,
    page: int = 1,
    limit: int = 20,
    store: CoordinationStore = Depends(get_store),
):
    # ---- pagination ----
    page = max(page, 1)
    limit = min(max(limit, 1), 50)
    skip = (page - 1) * limit

    cards = await store.list_product_cards(category=category, status=status, q=q)

    return {
        "page": page,
        "limit": limit,
        "total": len(cards),
        "items": cards[skip:skip + limit],
    }


# =========================
# SELLER
# =========================

@router.post("", response_model=Product, status_code=201)
async def create_product(
    data: ProductCreate,
    seller: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.add_product(seller.id, data)


@router.get("/mine", response_model=list[Product])
async def my_products(
    seller: User = Depends(require_role(UserRole.END_USER)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.list_products(seller_id=seller.id)


@router.post("/{product_id}/deactivate", response_model=Product)
async def deactivate_product(
    product_id: str,
    user: User = Depends(require_role(UserRole.END_USER, UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.set_product_inactive(product_id, actor_id=user.id)


@router.post("/{product_id}/reactivate", response_model=Product)
async def reactivate_product(
    product_id: str,
    user: User = Depends(require_role(UserRole.END_USER, UserRole.ADMIN)),
    store: CoordinationStore = Depends(get_store),
):
    return await store.reactivate_product(product_id, actor_id=user.id)


# =========================
# PUBLIC DETAIL
# =========================

@router.get("/{product_id}")
async def get_product(product_id: str, store: CoordinationStore = Depends(get_store)):
    return await store.product_detail(product_id)


@router.post("/{product_id}/view", response_model=Product)
async def view_product(product_id: str, store: CoordinationStore = Depends(get_store)):
    return await store.record_product_view(product_id)


@router.post("/{product_id}/like", response_model=Product)
async def like_product(product_id: str, store: CoordinationStore = Depends(get_store)):
    return await store.like_product(product_id)
