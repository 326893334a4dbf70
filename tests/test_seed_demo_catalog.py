from decimal import Decimal

from scripts.seed_demo_catalog import DEMO_PRODUCTS, DEMO_RECIPES, seed_catalog
from services.deduction import deduct

from conftest import sale


async def test_seed_is_idempotent(db, restaurant_id):
    first = await seed_catalog(db, restaurant_id, Decimal("24"))
    second = await seed_catalog(db, restaurant_id, Decimal("24"))
    assert first == second
    assert len(first) == len(DEMO_PRODUCTS) + len(DEMO_RECIPES)


async def test_demo_items_exercise_every_path(db, restaurant_id):
    await seed_catalog(db, restaurant_id, Decimal("24"))

    methods = set()
    for item in ("Moscow Mule", "Rice Bowl", "Tacos (3)", "Soda Can"):
        result = await deduct(db, sale(restaurant_id, item, 2))
        assert result.target_type is not None, item
        methods.update(d.conversion_method for d in result.ingredients_deducted)

    assert methods == {
        "1:1",
        "volume_to_volume",
        "weight_to_weight",
        "density_to_weight",
        "count_to_container",
        "fallback_1:1",
    }
