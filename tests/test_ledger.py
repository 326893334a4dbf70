"""Ledger rows written by deductions, read back through the service functions."""

from datetime import date, time
from decimal import Decimal

import pytest

from services.deduction import deduct
from services.ledger import has_usage, ledger_balance, list_transactions

from conftest import make_product, sale


@pytest.fixture
async def soda(db, restaurant_id):
    return await make_product(db, restaurant_id, "Soda", pos_item_name="Soda Can", uom_purchase="can",
                              cost_per_unit=Decimal("2.50"), current_stock=Decimal("5"))


async def test_has_usage_after_deduction(db, restaurant_id, soda):
    result = await deduct(db, sale(restaurant_id, "Soda Can", 1, order_id="T-1"))
    assert await has_usage(db, restaurant_id, result.reference_id) is True
    assert await has_usage(db, restaurant_id, "T-2_Soda Can_2025-01-15") is False


async def test_list_is_newest_first_and_filterable(db, restaurant_id, soda):
    await deduct(db, sale(restaurant_id, "Soda Can", 1, order_id="T-1", sale_date=date(2025, 1, 14)))
    await deduct(db, sale(restaurant_id, "Soda Can", 2, order_id="T-2", sale_date=date(2025, 1, 15)))

    rows = await list_transactions(db, restaurant_id)
    assert [r.reference_id for r in rows] == ["T-2_Soda Can_2025-01-15", "T-1_Soda Can_2025-01-14"]

    only = await list_transactions(db, restaurant_id, reference_id="T-1_Soda Can_2025-01-14")
    assert len(only) == 1
    assert float(only[0].quantity) == pytest.approx(-1)

    assert len(await list_transactions(db, restaurant_id, limit=1)) == 1


async def test_balance_keeps_what_the_clamp_hides(db, restaurant_id, soda):
    """5 in stock, 8 sold: visible stock stops at 0 while the ledger shows -8."""
    await deduct(db, sale(restaurant_id, "Soda Can", 3, order_id="T-1", sale_time=time(12, 0)))
    await deduct(db, sale(restaurant_id, "Soda Can", 5, order_id="T-2", sale_time=time(13, 0)))

    balance = await ledger_balance(db, soda.id)

    assert float(balance) == pytest.approx(-8)
    assert soda.current_stock == Decimal("0")


async def test_balance_of_untouched_product_is_zero(db, restaurant_id, soda):
    assert await ledger_balance(db, soda.id) == 0
