import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import Forbidden, NotFound
from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, seller_id: int, data: ProductCreate):
        product = Product(
            name=data.name,
            description=data.description,
            price=data.price,
            stock=data.stock,
            image=data.image,
            seller_id=seller_id,
            review_count=0,
        )
        async with db.begin():
            product = await ProductRepository.create_product(db, product)
        logger.info("product_created", product_id=product.id, seller_id=seller_id)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, query: str | None = None):
        async with db.begin():
            products = await ProductRepository.get_all_products(db)

        if not query:
            return products

        # Word-overlap match against the product name
        query_words = set(query.lower().split())
        return [p for p in products if query_words & set(p.name.lower().split())]

    @staticmethod
    async def list_seller_products(db: AsyncSession, seller_id: int):
        async with db.begin():
            return await ProductRepository.get_products_by_seller(db, seller_id)

    @staticmethod
    async def get_product(db: AsyncSession, product_id: int) -> Product:
        async with db.begin():
            product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    @staticmethod
    async def _get_owned(db: AsyncSession, product_id: int, user_id: int) -> Product:
        product = await ProductRepository.get_product_by_id(db, product_id, for_update=True)
        if not product:
            raise NotFound("Product not found")
        if product.seller_id != user_id:
            raise Forbidden("Not authorized to modify this product")
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product_id: int, user_id: int, data: ProductUpdate):
        async with db.begin():
            product = await ProductService._get_owned(db, product_id, user_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(product, field, value)
            product = await ProductRepository.update_product(db, product)
        logger.info("product_updated", product_id=product_id)
        return product

    @staticmethod
    async def set_stock(db: AsyncSession, product_id: int, user_id: int, stock: int):
        async with db.begin():
            product = await ProductService._get_owned(db, product_id, user_id)
            product.stock = stock
            product = await ProductRepository.update_product(db, product)
        logger.info("product_stock_set", product_id=product_id, stock=stock)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: int, user_id: int) -> None:
        async with db.begin():
            product = await ProductService._get_owned(db, product_id, user_id)
            await ProductRepository.delete_product(db, product)
        logger.info("product_deleted", product_id=product_id)
