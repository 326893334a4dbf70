import uuid
from sqlalchemy import Column, DateTime, Numeric, String, Uuid
from sqlalchemy.sql import func

from .database import Base


class Product(Base):
    """
    A stocked item, counted in its purchase unit (bottle, lb, case, ...).

    current_stock is a running total of the product's ledger rows, kept on the
    row for fast reads. It is only written under a row lock.
    """
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, nullable=False, index=True)

    name = Column(String, nullable=False)
    # Sold as-is on the POS under this name (1 sold = 1 purchase unit)
    pos_item_name = Column(String, nullable=True, index=True)

    current_stock = Column(Numeric(18, 6), nullable=False, default=0)
    cost_per_unit = Column(Numeric(12, 4), nullable=True)

    uom_purchase = Column(String, nullable=True)  # 'bottle', 'lb', 'case', ...
    uom_recipe = Column(String, nullable=True)
    conversion_factor = Column(Numeric(18, 6), nullable=False, default=1)  # recipe units per purchase unit

    # Physical package: e.g. 750 ml per bottle, 6 per package
    size_value = Column(Numeric(18, 6), nullable=True)
    size_unit = Column(String, nullable=True)
    package_qty = Column(Numeric(18, 6), nullable=True, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
