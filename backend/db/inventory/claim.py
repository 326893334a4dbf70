import uuid

from sqlalchemy import Column, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from ..database import Base


class DeductionClaim(Base):
    """
    Marks a reference key as taken.

    Inserted in the same transaction as the stock update and ledger rows, so of
    two concurrent runs with the same key exactly one can commit.
    """
    __tablename__ = "deduction_claims"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "reference_id", "transaction_type", name="ux_deduction_claims_key"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, nullable=False)
    reference_id = Column(Text, nullable=False)
    transaction_type = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
