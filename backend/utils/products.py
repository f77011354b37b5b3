from models.product import Product, ProductStatus
from models.user import User
from utils.catalog import get_product, list_products
from utils.state import StoreState


def build_product_card(product: Product, seller: User | None):
    return {
        "id": product.id,
        "title": product.title,
        "price": product.price,
        "category": product.category,
        "condition": product.condition,
        "materials": product.materials,
        "location": product.location,
        "status": product.status.value,
        "views": product.views,
        "likes": product.likes,
        "seller": {
            "id": product.seller_id,
            "name": seller.name if seller else None,
            "eco_score": seller.eco_score if seller else 0,
            "is_verified": seller.is_verified if seller else False,
        },
        "created_at": product.created_at,
    }


def list_product_cards(
    state: StoreState,
    category: str | None = None,
    status: ProductStatus | None = None,
    q: str | None = None,
) -> list[dict]:
    return [
        build_product_card(p, state.users.get(p.seller_id))
        for p in list_products(state, category, status, q)
    ]


def product_detail(state: StoreState, product_id: str) -> dict:
    product = get_product(state, product_id)
    return {
        **build_product_card(product, state.users.get(product.seller_id)),
        "description": product.description,
    }
