"""Tests for the catalog product store."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from catalog_sync.db.models import Base, Brand, Product
from catalog_sync.db.product_store import ProductStore, StorageUnavailableError, StorageWriteError


async def _seed(session_factory):
    async with session_factory() as session:
        session.add(Brand(id=1, name="Nature's Way"))
        session.add_all([
            Product(id=1, sku="A-1", name="Complete", slug="complete",
                    price=Decimal("9.99"), inventory_quantity=5, brand_id=1),
            Product(id=2, sku="A-2", name="No Price", slug="no-price",
                    price=Decimal("0"), inventory_quantity=5, brand_id=1),
            Product(id=3, sku="A-3", name="Null Stock", slug="null-stock",
                    price=Decimal("4.50"), inventory_quantity=None),
            Product(id=4, sku="A-4", name="Inactive", slug="inactive",
                    price=None, inventory_quantity=None, is_active=False),
            Product(id=5, sku="A-5", name="Zero Stock", slug="zero-stock",
                    price=None, inventory_quantity=0),
        ])
        await session.commit()


@pytest.mark.asyncio
async def test_loads_active_products_missing_price_or_stock(session_factory):
    await _seed(session_factory)

    products = await ProductStore(session_factory).get_products_missing_price_or_stock()

    assert [p.id for p in products] == [2, 3, 5]
    assert products[0].brand_name == "Nature's Way"
    assert products[1].brand_name is None
    assert products[1].stock_quantity is None
    assert all(p.needs_check for p in products)


@pytest.mark.asyncio
async def test_filters_by_ids_and_limit(session_factory):
    await _seed(session_factory)
    store = ProductStore(session_factory)

    by_id = await store.get_products_missing_price_or_stock(product_ids=[1, 5])
    limited = await store.get_products_missing_price_or_stock(limit=2)

    assert [p.id for p in by_id] == [5]
    assert [p.id for p in limited] == [2, 3]


@pytest.mark.asyncio
async def test_update_writes_only_given_fields(session_factory):
    await _seed(session_factory)
    store = ProductStore(session_factory)

    await store.update_product(2, price=Decimal("12.25"))
    await store.update_product(3, stock_quantity=17)

    async with session_factory() as session:
        rows = {p.id: p for p in (await session.execute(select(Product))).scalars()}
    assert rows[2].price == Decimal("12.25")
    assert rows[2].inventory_quantity == 5
    assert rows[3].price == Decimal("4.50")
    assert rows[3].inventory_quantity == 17


@pytest.mark.asyncio
async def test_missing_tables_are_reported(db_engine, session_factory):
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    store = ProductStore(session_factory)

    with pytest.raises(StorageUnavailableError):
        await store.get_products_missing_price_or_stock()

    with pytest.raises(StorageWriteError) as exc_info:
        await store.update_product(1, price=Decimal("1.00"))
    assert exc_info.value.product_id == 1


@pytest.mark.asyncio
async def test_connection_error_on_write_is_wrapped():
    session_factory = MagicMock()
    session = session_factory.return_value.__aenter__.return_value
    session.execute.side_effect = ConnectionResetError("connection reset by peer")

    with pytest.raises(StorageWriteError) as exc_info:
        await ProductStore(session_factory).update_product(7, stock_quantity=3)

    assert exc_info.value.product_id == 7
    assert "connection reset by peer" in str(exc_info.value)
