import argparse
import asyncio
import sys
import uuid
from decimal import Decimal
from pathlib import Path

"""
Seed a small demo catalog (products + recipes) for one restaurant.

Covers every conversion path: bottle/oz (volume), bag/cup (density),
package/each (count), can sold directly on the POS, and an item with no size
data (1:1 fallback).

Run:
  PYTHONPATH=backend python backend/scripts/seed_demo_catalog.py --restaurant-id <uuid>
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from db.database import async_session_maker, create_db_and_tables  # noqa: E402
from db.product import Product  # noqa: E402
from db.recipe import Recipe, RecipeIngredient  # noqa: E402


# name -> product fields
DEMO_PRODUCTS = {
    "Vodka": dict(uom_purchase="bottle", size_value=750, size_unit="ml", cost_per_unit="20.00"),
    "Lime Juice": dict(uom_purchase="bottle", size_value=1, size_unit="l", cost_per_unit="6.00"),
    "Ginger Beer": dict(uom_purchase="can", size_value=12, size_unit="oz", cost_per_unit="1.25"),
    "Soda": dict(uom_purchase="can", size_value=12, size_unit="oz", cost_per_unit="2.50", pos_item_name="Soda Can"),
    "Jasmine Rice": dict(uom_purchase="bag", size_value=20, size_unit="lb", cost_per_unit="18.00"),
    "Corn Tortillas": dict(uom_purchase="package", size_value=12, size_unit="each", cost_per_unit="3.60"),
    "House Hot Sauce": dict(uom_purchase="each", cost_per_unit="4.00"),
}

# recipe name -> (pos_item_name, [(product name, quantity, unit)])
DEMO_RECIPES = {
    "Moscow Mule": ("Moscow Mule", [("Vodka", "1.5", "oz"), ("Lime Juice", "0.5", "oz"), ("Ginger Beer", "4", "oz")]),
    "Rice Bowl": ("Rice Bowl", [("Jasmine Rice", "1", "cup"), ("House Hot Sauce", "1", "tbsp")]),
    "Street Tacos": ("Tacos (3)", [("Corn Tortillas", "3", "each")]),
}


async def seed_catalog(session: AsyncSession, restaurant_id: uuid.UUID, stock: Decimal) -> dict:
    """Insert missing demo products/recipes. Returns {name: id} for everything seeded or found."""
    ids: dict = {}

    res = await session.execute(select(Product).where(Product.restaurant_id == restaurant_id))
    existing = {p.name: p for p in res.scalars().all()}
    for name, fields in DEMO_PRODUCTS.items():
        product = existing.get(name)
        if product is None:
            product = Product(
                restaurant_id=restaurant_id,
                name=name,
                pos_item_name=fields.get("pos_item_name"),
                current_stock=stock,
                cost_per_unit=Decimal(fields["cost_per_unit"]),
                uom_purchase=fields["uom_purchase"],
                size_value=fields.get("size_value"),
                size_unit=fields.get("size_unit"),
                conversion_factor=1,
                package_qty=1,
            )
            session.add(product)
            await session.flush()
        ids[name] = product.id

    res = await session.execute(select(Recipe).where(Recipe.restaurant_id == restaurant_id))
    existing_recipes = {r.name: r for r in res.scalars().all()}
    for name, (pos_name, lines) in DEMO_RECIPES.items():
        recipe = existing_recipes.get(name)
        if recipe is None:
            recipe = Recipe(restaurant_id=restaurant_id, name=name, pos_item_name=pos_name, is_active=True)
            session.add(recipe)
            await session.flush()
            for product_name, qty, unit in lines:
                session.add(
                    RecipeIngredient(
                        recipe_id=recipe.id,
                        product_id=ids[product_name],
                        quantity=Decimal(qty),
                        unit=unit,
                    )
                )
        ids[name] = recipe.id

    await session.commit()
    return ids


async def main_async(restaurant_id: uuid.UUID, stock: Decimal, create_tables: bool):
    if create_tables:
        await create_db_and_tables()
    async with async_session_maker() as session:
        ids = await seed_catalog(session, restaurant_id, stock)
    print(f"[seed_demo_catalog] restaurant={restaurant_id} seeded {len(ids)} products/recipes")


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--restaurant-id", type=uuid.UUID, default=None, help="Defaults to a new random id")
    p.add_argument("--stock", type=Decimal, default=Decimal("24"), help="Opening stock for new products")
    p.add_argument("--create-tables", action="store_true")
    args = p.parse_args()
    asyncio.run(main_async(args.restaurant_id or uuid.uuid4(), args.stock, args.create_tables))


if __name__ == "__main__":
    main()
