"""
Stall Service — Menu operations

The menu is the only source of prices. Checkout sends product ids and
quantities; names and prices are looked up here and copied into the order.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stall.core.errors import ProductUnavailableError, UnknownProductError
from stall.models.product import Product

logger = logging.getLogger(__name__)

# Provisioned on first start when the products table is empty
DEFAULT_MENU: list[dict] = [
    {"name": "から丼", "description": "揚げたてのから揚げをたっぷりと乗せた人気の一品", "price": 420},
    {"name": "キムカラ丼", "description": "から揚げとキムチの組み合わせ", "price": 530},
    {"name": "鳥塩レモン丼", "description": "さっぱりとした塩レモンだれ", "price": 530},
    {"name": "牛カルビ丼", "description": "甘辛だれの牛カルビ", "price": 530},
    {"name": "デラ丼", "description": "全部のせ", "price": 710},
    {"name": "天津飯", "description": "ふわふわ玉子のあんかけ", "price": 430},
    {"name": "からあげ2個", "description": "追加のから揚げ", "price": 90, "category": "side"},
    {"name": "キムチ", "description": "ご飯のお供に", "price": 100, "category": "side"},
]


async def list_products(db: AsyncSession, include_inactive: bool = False) -> list[Product]:
    query = select(Product).order_by(Product.category, Product.name)
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_product(db: AsyncSession, product_id: str) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise UnknownProductError(product_id)
    return product


async def create_product(db: AsyncSession, **fields) -> Product:
    product = Product(**fields)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info("Product %s added to the menu at ¥%d", product.name, product.price)
    return product


async def update_product(db: AsyncSession, product_id: str, **changes) -> Product:
    product = await get_product(db, product_id)
    for field, value in changes.items():
        setattr(product, field, value)
    await db.commit()
    await db.refresh(product)
    logger.info("Product %s updated: %s", product_id, ", ".join(sorted(changes)))
    return product


async def price_items(db: AsyncSession, items: list[dict]) -> list[dict]:
    """
    Turn cart lines ({product_id, quantity, size, customizations}) into
    order lines carrying the menu's current name and price.

    Raises UnknownProductError / ProductUnavailableError for the first line
    that cannot be ordered.
    """
    ids = {item["product_id"] for item in items}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    products = {p.id: p for p in result.scalars().all()}

    lines = []
    for item in items:
        product = products.get(item["product_id"])
        if product is None:
            raise UnknownProductError(item["product_id"])
        if not product.is_active:
            raise ProductUnavailableError(product.id, product.name)
        lines.append({
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "quantity": item["quantity"],
            "size": item.get("size"),
            "customizations": list(item.get("customizations") or []),
        })
    return lines


async def seed_menu(db: AsyncSession, menu: list[dict] = DEFAULT_MENU) -> int:
    """Insert ``menu`` if no product exists yet. Returns the number inserted."""
    existing = (await db.execute(select(func.count(Product.id)))).scalar_one()
    if existing:
        return 0
    db.add_all([Product(**entry) for entry in menu])
    await db.commit()
    logger.info("Seeded menu with %d products", len(menu))
    return len(menu)
