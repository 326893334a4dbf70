"""Ledger access. Rows are only ever inserted; callers own the transaction."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.idempotency import USAGE
from db.inventory.transaction import InventoryTransaction as InventoryTransactionModel


def append_usage(
    db: AsyncSession,
    *,
    restaurant_id: UUID,
    product_id: UUID,
    purchase_quantity: Decimal,
    unit_cost: Optional[Decimal],
    cost: Decimal,
    reason: str,
    reference_id: str,
    performed_by: Optional[UUID],
    created_at: datetime,
) -> InventoryTransactionModel:
    """Stage a consumption row. quantity and total_cost are stored negated."""
    row = InventoryTransactionModel(
        restaurant_id=restaurant_id,
        product_id=product_id,
        quantity=-purchase_quantity,
        unit_cost=unit_cost,
        total_cost=-cost,
        transaction_type=USAGE,
        reason=reason,
        reference_id=reference_id,
        performed_by=performed_by,
        created_at=created_at,
    )
    db.add(row)
    return row


async def has_usage(db: AsyncSession, restaurant_id: UUID, reference_id: str) -> bool:
    res = await db.execute(
        select(InventoryTransactionModel.id)
        .where(
            InventoryTransactionModel.restaurant_id == restaurant_id,
            InventoryTransactionModel.reference_id == reference_id,
            InventoryTransactionModel.transaction_type == USAGE,
        )
        .limit(1)
    )
    return res.first() is not None


async def list_transactions(
    db: AsyncSession,
    restaurant_id: UUID,
    product_id: Optional[UUID] = None,
    reference_id: Optional[str] = None,
    limit: int = 100,
) -> List[InventoryTransactionModel]:
    stmt = select(InventoryTransactionModel).where(InventoryTransactionModel.restaurant_id == restaurant_id)
    if product_id:
        stmt = stmt.where(InventoryTransactionModel.product_id == product_id)
    if reference_id:
        stmt = stmt.where(InventoryTransactionModel.reference_id == reference_id)
    stmt = stmt.order_by(InventoryTransactionModel.created_at.desc(), InventoryTransactionModel.id.desc()).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def ledger_balance(db: AsyncSession, product_id: UUID) -> Decimal:
    """Sum of signed quantities for a product across every transaction type."""
    res = await db.execute(
        select(func.coalesce(func.sum(InventoryTransactionModel.quantity), 0))
        .where(InventoryTransactionModel.product_id == product_id)
    )
    total = res.scalar_one()
    return total if isinstance(total, Decimal) else Decimal(str(total))
