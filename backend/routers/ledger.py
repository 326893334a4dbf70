from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session
from db.product import Product as ProductModel
from schemas.ledger import LedgerBalanceRead, LedgerEntryRead
from services.ledger import ledger_balance, list_transactions

router = APIRouter()


@router.get("", response_model=List[LedgerEntryRead])
async def get_ledger(
    restaurant_id: UUID,
    product_id: Optional[UUID] = None,
    reference_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
):
    """Ledger rows for a restaurant, newest first."""
    rows = await list_transactions(db, restaurant_id, product_id=product_id, reference_id=reference_id, limit=limit)
    return [
        LedgerEntryRead(
            id=r.id,
            restaurant_id=r.restaurant_id,
            product_id=r.product_id,
            quantity=float(r.quantity),
            unit_cost=float(r.unit_cost) if r.unit_cost is not None else None,
            total_cost=float(r.total_cost or 0),
            transaction_type=r.transaction_type,
            reason=r.reason,
            reference_id=r.reference_id,
            performed_by=r.performed_by,
            created_at=r.created_at,
        )
        for r in rows
    ]


@router.get("/products/{product_id}/balance", response_model=LedgerBalanceRead)
async def get_product_balance(
    product_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Ledger total next to the cached current_stock.

    The two differ by the product's opening stock plus any deduction the zero
    clamp hid; reconciliation works from this pair.
    """
    res = await db.execute(select(ProductModel).where(ProductModel.id == product_id))
    product = res.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    total = await ledger_balance(db, product_id)
    return LedgerBalanceRead(
        product_id=product.id,
        product_name=product.name,
        ledger_quantity=float(total),
        current_stock=float(product.current_stock or 0),
    )
