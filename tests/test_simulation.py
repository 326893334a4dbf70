"""Simulation must agree with a real deduction and must not write anything."""

from decimal import Decimal

import pytest

from core.exceptions import InvalidSaleError
from services.deduction import check_mapping, deduct, simulate

from conftest import claim_count, ledger_rows, make_product, make_recipe, sale, stock_of


def _comparable(result):
    return [
        (d.product_name, d.quantity_recipe_units, d.recipe_unit, d.quantity_purchase_units, d.purchase_unit,
         d.remaining_stock_purchase_units, d.conversion_method, d.cost, d.warning)
        for d in sorted(result.ingredients_deducted, key=lambda d: d.product_name)
    ]


@pytest.fixture
async def catalog(db, restaurant_id):
    vodka = await make_product(db, restaurant_id, "Vodka", uom_purchase="bottle", size_value=Decimal("750"),
                               size_unit="ml", cost_per_unit=Decimal("20.00"), current_stock=Decimal("3"))
    beer = await make_product(db, restaurant_id, "Ginger Beer", uom_purchase="can", size_value=Decimal("12"),
                              size_unit="oz", cost_per_unit=Decimal("1.25"), current_stock=Decimal("24"))
    rice = await make_product(db, restaurant_id, "Jasmine Rice", uom_purchase="bag", size_value=Decimal("20"),
                              size_unit="lb", cost_per_unit=Decimal("18"), current_stock=Decimal("2"))
    sauce = await make_product(db, restaurant_id, "House Hot Sauce", uom_purchase="each",
                               cost_per_unit=Decimal("4"), current_stock=Decimal("1"))
    soda = await make_product(db, restaurant_id, "Soda", pos_item_name="Soda Can", uom_purchase="can",
                              cost_per_unit=Decimal("2.50"), current_stock=Decimal("100"))
    await make_recipe(db, restaurant_id, "Moscow Mule", [(vodka, "1.5", "oz"), (beer, "4", "oz")],
                      pos_item_name="Moscow Mule")
    await make_recipe(db, restaurant_id, "Rice Bowl", [(rice, "1", "cup"), (sauce, "1", "tbsp")])
    return {"vodka": vodka, "beer": beer, "rice": rice, "sauce": sauce, "soda": soda}


class TestParity:

    @pytest.mark.parametrize(
        "item, qty",
        [
            ("Moscow Mule", 10),
            ("Moscow Mule", "0.5"),
            ("Rice Bowl", 3),
            ("Soda Can", 7),
        ],
    )
    async def test_simulation_matches_real_deduction(self, db, restaurant_id, catalog, item, qty):
        preview = await simulate(db, restaurant_id, item, Decimal(str(qty)))
        real = await deduct(db, sale(restaurant_id, item, qty))

        assert preview.target_name == real.target_name
        assert preview.target_type == real.target_type
        assert preview.total_cost == real.total_cost
        assert _comparable(preview) == _comparable(real)
        assert [w.message for w in preview.conversion_warnings] == [w.message for w in real.conversion_warnings]

    async def test_clamp_applies_to_preview_too(self, db, restaurant_id, catalog):
        preview = await simulate(db, restaurant_id, "Rice Bowl", Decimal("5"))
        sauce = next(d for d in preview.ingredients_deducted if d.product_name == "House Hot Sauce")
        assert sauce.quantity_purchase_units == Decimal("5")
        assert sauce.remaining_stock_purchase_units == Decimal("0")

    async def test_unknown_item_previews_empty(self, db, restaurant_id, catalog):
        preview = await simulate(db, restaurant_id, "Unknown Combo", 1)
        assert preview.target_name == ""
        assert preview.ingredients_deducted == []
        assert preview.total_cost == 0


class TestReadOnly:

    async def test_repeatable_and_writes_nothing(self, db, session_maker, restaurant_id, catalog):
        first = await simulate(db, restaurant_id, "Moscow Mule", Decimal("4"))
        second = await simulate(db, restaurant_id, "Moscow Mule", Decimal("4"))

        assert _comparable(first) == _comparable(second)
        assert float(await stock_of(session_maker, catalog["vodka"])) == pytest.approx(3)
        assert float(await stock_of(session_maker, catalog["beer"])) == pytest.approx(24)
        assert await ledger_rows(session_maker, restaurant_id) == []
        assert await claim_count(session_maker, restaurant_id) == 0

    async def test_ignores_idempotency(self, db, restaurant_id, catalog):
        await deduct(db, sale(restaurant_id, "Soda Can", 1, order_id="T-1"))
        preview = await simulate(db, restaurant_id, "Soda Can", 1)
        assert preview.already_processed is False
        assert preview.ingredients_deducted[0].remaining_stock_purchase_units == Decimal("98")

    async def test_rejects_bad_quantity(self, db, restaurant_id, catalog):
        with pytest.raises(InvalidSaleError):
            await simulate(db, restaurant_id, "Soda Can", 0)


class TestMapping:

    async def test_direct_product(self, db, restaurant_id, catalog):
        m = await check_mapping(db, restaurant_id, "soda can")
        assert m.exists is True
        assert m.target_type == "product"
        assert m.target_name == "Soda"

    async def test_recipe(self, db, restaurant_id, catalog):
        m = await check_mapping(db, restaurant_id, "Rice Bowl")
        assert m.exists is True
        assert m.target_type == "recipe"

    async def test_unmapped(self, db, restaurant_id, catalog):
        m = await check_mapping(db, restaurant_id, "Unknown Combo")
        assert m.exists is False
        assert m.target_id is None
