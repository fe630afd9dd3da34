"""Catalog reads and writes used by the reconciler."""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.db.models import Brand, Product
from catalog_sync.ingest.base import TargetProduct

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """Raised when the catalog cannot be read at all."""
    pass


class StorageWriteError(RuntimeError):
    """Raised when a single product update fails."""

    def __init__(self, product_id: int, message: str):
        super().__init__(f"Failed to update product {product_id}: {message}")
        self.product_id = product_id


class ProductStore:
    """Storage interface over the catalog's products table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_products_missing_price_or_stock(
        self,
        product_ids: Optional[Sequence[int]] = None,
        limit: Optional[int] = None,
    ) -> List[TargetProduct]:
        """
        Load active products whose price or stock is zero or null.

        Args:
            product_ids: Optional restriction to these ids
            limit: Optional cap on the number of rows

        Returns:
            TargetProducts in id order, with brand names joined

        Raises:
            StorageUnavailableError: If the query cannot run
        """
        stmt = (
            select(Product, Brand.name)
            .outerjoin(Brand, Product.brand_id == Brand.id)
            .where(
                Product.is_active.is_(True),
                or_(
                    Product.price == 0,
                    Product.price.is_(None),
                    Product.inventory_quantity == 0,
                    Product.inventory_quantity.is_(None),
                ),
            )
            .order_by(Product.id)
        )
        if product_ids:
            stmt = stmt.where(Product.id.in_(list(product_ids)))
        if limit:
            stmt = stmt.limit(limit)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailableError(f"Could not load products: {e}") from e

        products = [
            TargetProduct(
                id=product.id,
                sku=product.sku,
                name=product.name,
                slug=product.slug,
                price=product.price,
                stock_quantity=product.inventory_quantity,
                brand_name=brand_name,
            )
            for product, brand_name in rows
        ]
        logger.info(f"Found {len(products)} products with missing price or stock")
        return products

    async def update_product(
        self,
        product_id: int,
        price: Optional[Decimal] = None,
        stock_quantity: Optional[int] = None,
    ) -> None:
        """
        Write new price and/or stock for one product in its own transaction.

        Raises:
            StorageWriteError: If the update fails
        """
        values = {}
        if price is not None:
            values["price"] = price
        if stock_quantity is not None:
            values["inventory_quantity"] = stock_quantity
        if not values:
            return

        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(Product).where(Product.id == product_id).values(**values)
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StorageWriteError(product_id, str(e)) from e

        logger.debug(f"Updated product {product_id}: {values}")
