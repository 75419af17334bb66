"""Shared fixtures for catalog tests.

Every test gets its own SQLite database file, created from the model
metadata, so tests never share rows.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./dairycart-test.db")
os.environ.setdefault("LOG_JSON", "false")

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductRoot,
    ProductVariantBridge,
)
from dairycart.catalog.schemas import OptionCreate, ProductRootCreate
from dairycart.catalog.service import CatalogService
from dairycart.infrastructure.config import Settings
from dairycart.infrastructure.database import Base, build_engine, build_session_factory
from dairycart.notifications import models as notification_models  # noqa: F401
from dairycart.notifications.webhooks import InMemoryNotifier


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create an engine on a fresh database with all tables."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    """A session for component tests; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    """Notifier recording published events."""
    return InMemoryNotifier()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(transaction_timeout_seconds=10.0, sku_collision_retries=1)


@pytest.fixture
def service(session_factory, notifier, test_settings) -> CatalogService:
    """Catalog service over the test database."""
    return CatalogService(session_factory, notifier, test_settings)


@pytest.fixture
def tshirt_data() -> ProductRootCreate:
    """T-Shirt with Color (Red, Blue) and Size (S, M)."""
    return ProductRootCreate(
        name="T-Shirt",
        sku_prefix="tshirt",
        price_cents=1999,
        cost_cents=650,
        taxable=True,
        product_weight=0.3,
        options=[
            OptionCreate(name="Color", values=["Red", "Blue"]),
            OptionCreate(name="Size", values=["S", "M"]),
        ],
    )


@pytest_asyncio.fixture
async def tshirt(service, tshirt_data, notifier) -> int:
    """Create the T-Shirt root and return its ID (notifier cleared)."""
    root_id = await service.create_root(tshirt_data)
    notifier.clear()
    return root_id


class CatalogInspector:
    """Read-only queries used by tests to inspect stored state."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _all(self, query) -> list:
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def active_products(self, root_id: int) -> list[Product]:
        return await self._all(
            select(Product)
            .where(Product.product_root_id == root_id, Product.archived_on.is_(None))
            .order_by(Product.id)
        )

    async def products(self, root_id: int) -> list[Product]:
        return await self._all(
            select(Product).where(Product.product_root_id == root_id).order_by(Product.id)
        )

    async def skus(self, root_id: int) -> list[str]:
        return [p.sku for p in await self.active_products(root_id)]

    async def active_bridges(self, product_id: int) -> list[ProductVariantBridge]:
        return await self._all(
            select(ProductVariantBridge)
            .where(
                ProductVariantBridge.product_id == product_id,
                ProductVariantBridge.archived_on.is_(None),
            )
            .order_by(ProductVariantBridge.id)
        )

    async def bridges(self, product_id: int) -> list[ProductVariantBridge]:
        return await self._all(
            select(ProductVariantBridge)
            .where(ProductVariantBridge.product_id == product_id)
            .order_by(ProductVariantBridge.id)
        )

    async def root(self, root_id: int) -> ProductRoot:
        return (await self._all(select(ProductRoot).where(ProductRoot.id == root_id)))[0]

    async def options(self, root_id: int) -> list[ProductOption]:
        return await self._all(
            select(ProductOption)
            .where(ProductOption.product_root_id == root_id)
            .order_by(ProductOption.id)
        )

    async def option_id(self, root_id: int, name: str) -> int:
        for option in await self.options(root_id):
            if option.name == name and option.archived_on is None:
                return option.id
        raise LookupError(name)

    async def values(self, option_id: int) -> list[ProductOptionValue]:
        return await self._all(
            select(ProductOptionValue)
            .where(ProductOptionValue.product_option_id == option_id)
            .order_by(ProductOptionValue.id)
        )

    async def value_id(self, root_id: int, option_name: str, value: str) -> int:
        option_id = await self.option_id(root_id, option_name)
        for option_value in await self.values(option_id):
            if option_value.value == value and option_value.archived_on is None:
                return option_value.id
        raise LookupError(value)

    async def active_count(self, model: type) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(model.id)).where(model.archived_on.is_(None))
            )
            return result.scalar_one()


@pytest.fixture
def stored(session_factory) -> CatalogInspector:
    """Query helper for asserting on stored catalog state."""
    return CatalogInspector(session_factory)
