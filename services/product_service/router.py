from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_current_user
from .schemas import ProductCreate, ProductResponse, ProductUpdate, StockUpdate
from .service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "product", "status": "running"}


@router.get("/", response_model=list[ProductResponse])
async def list_products(
    query: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.list_products(db, query)


@router.get("/listing/{seller_id}", response_model=list[ProductResponse])
async def list_seller_products(seller_id: int, db: AsyncSession = Depends(get_db)):
    return await ProductService.list_seller_products(db, seller_id)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await ProductService.get_product(db, product_id)


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, user_id, product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.update_product(db, product_id, user_id, payload)


@router.put("/{product_id}/stock", response_model=ProductResponse)
async def update_stock(
    product_id: int,
    payload: StockUpdate,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.set_stock(db, product_id, user_id, payload.stock)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await ProductService.delete_product(db, product_id, user_id)
