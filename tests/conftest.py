"""
Pytest fixtures.

Every test gets its own in-memory SQLite database (aiosqlite, one shared
connection via StaticPool). SQLite ignores SELECT ... FOR UPDATE and does not
enforce foreign keys, which the missing-product tests rely on.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

import logging  # noqa: E402
import uuid  # noqa: E402
from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import func, inspect, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.logging_config import configure_logging, reset_logging  # noqa: E402
from db.database import Base, get_async_session, import_models  # noqa: E402
from db.inventory.claim import DeductionClaim  # noqa: E402
from db.inventory.transaction import InventoryTransaction  # noqa: E402
from db.product import Product  # noqa: E402
from db.recipe import Recipe, RecipeIngredient  # noqa: E402
from services.deduction import SaleLine  # noqa: E402

SALE_DATE = date(2025, 1, 15)


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    reset_logging()
    configure_logging(level="DEBUG", fmt="text")
    yield
    reset_logging()


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def restaurant_id():
    return uuid.uuid4()


@pytest.fixture
async def client(session_maker):
    from main import app

    async def _override():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# =============================================================================
# Data builders
# =============================================================================


async def make_product(db, restaurant_id, name, **fields) -> Product:
    fields.setdefault("current_stock", Decimal("10"))
    fields.setdefault("cost_per_unit", Decimal("1.00"))
    fields.setdefault("conversion_factor", Decimal("1"))
    fields.setdefault("package_qty", Decimal("1"))
    product = Product(restaurant_id=restaurant_id, name=name, **fields)
    db.add(product)
    await db.commit()
    return product


async def make_recipe(db, restaurant_id, name, lines, pos_item_name=None, is_active=True) -> Recipe:
    """`lines` is a list of (product_or_id, quantity, unit)."""
    recipe = Recipe(restaurant_id=restaurant_id, name=name, pos_item_name=pos_item_name, is_active=is_active)
    db.add(recipe)
    await db.flush()
    for product, qty, unit in lines:
        product_id = product.id if isinstance(product, Product) else product
        db.add(RecipeIngredient(recipe_id=recipe.id, product_id=product_id, quantity=Decimal(str(qty)), unit=unit))
    await db.commit()
    return recipe


def sale(restaurant_id, item, qty, order_id=None, **kw) -> SaleLine:
    return SaleLine(
        restaurant_id=restaurant_id,
        pos_item_name=item,
        quantity_sold=Decimal(str(qty)),
        sale_date=kw.pop("sale_date", SALE_DATE),
        external_order_id=order_id,
        **kw,
    )


async def stock_of(session_maker, product: Product) -> Decimal:
    """
    Read current_stock through a fresh session (no identity-map cache).

    The id comes from the instance's identity key, which survives the expiry a
    rollback applies to every attribute.
    """
    product_id = inspect(product).identity[0]
    async with session_maker() as s:
        res = await s.execute(select(Product.current_stock).where(Product.id == product_id))
        return res.scalar_one()


async def ledger_rows(session_maker, restaurant_id):
    async with session_maker() as s:
        res = await s.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.restaurant_id == restaurant_id)
            .order_by(InventoryTransaction.reason)
        )
        return list(res.scalars().all())


async def claim_count(session_maker, restaurant_id) -> int:
    async with session_maker() as s:
        res = await s.execute(
            select(func.count()).select_from(DeductionClaim).where(DeductionClaim.restaurant_id == restaurant_id)
        )
        return res.scalar_one()


@pytest.fixture
def captured_logs(caplog):
    """Records emitted by this project's loggers, at any level."""
    caplog.set_level(logging.DEBUG)

    def _get(name_prefix: str = ""):
        return [r for r in caplog.records if r.name.startswith(name_prefix)]

    return _get
