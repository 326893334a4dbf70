import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, Text, Uuid
from sqlalchemy.sql import func

from ..database import Base


class InventoryTransaction(Base):
    """Ledger row. Never updated or deleted once written."""
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_reference", "restaurant_id", "reference_id", "transaction_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = Column(Numeric(18, 6), nullable=False)  # purchase units, signed
    unit_cost = Column(Numeric(12, 4), nullable=True)
    total_cost = Column(Numeric(18, 6), nullable=False, default=0)  # signed

    # 'usage' for POS deductions; receipts/waste/adjustments share the table
    transaction_type = Column(Text, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    reference_id = Column(Text, nullable=True)
    performed_by = Column(Uuid, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
