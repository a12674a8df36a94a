"""
Stall Service — Menu API
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stall.core.errors import UnknownProductError
from stall.db.database import get_db
from stall.db.product_ops import get_product, list_products
from stall.schemas.order import ProductResponse

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductResponse])
async def menu(db: AsyncSession = Depends(get_db)):
    """Products currently on sale."""
    return await list_products(db)


@router.get("/{product_id}", response_model=ProductResponse)
async def product_detail(product_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await get_product(db, product_id)
    except UnknownProductError:
        raise HTTPException(status_code=404, detail="Product not found.")
