from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class LedgerEntryRead(BaseModel):
    id: UUID
    restaurant_id: UUID
    product_id: UUID
    quantity: float
    unit_cost: Optional[float] = None
    total_cost: float
    transaction_type: str
    reason: Optional[str] = None
    reference_id: Optional[str] = None
    performed_by: Optional[UUID] = None
    created_at: datetime


class LedgerBalanceRead(BaseModel):
    product_id: UUID
    product_name: str
    ledger_quantity: float
    current_stock: float
