"""
Typed errors for the deduction engine.

Only data errors and genuine faults are exceptions. "No mapping", "already
processed" and fallback conversions are returned as data on the result.

    InventoryError (base, carries ``code``)
    |
    +-- InvalidSaleError      non-positive quantity, blank item name
    +-- MissingProductError   recipe ingredient points at a deleted product
"""

from typing import Optional
from uuid import UUID


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidSaleError(InventoryError):
    code = "INVALID_SALE"


class MissingProductError(InventoryError):
    code = "MISSING_PRODUCT"

    def __init__(self, product_id: UUID, recipe_name: Optional[str] = None):
        self.product_id = product_id
        self.recipe_name = recipe_name
        where = f" (recipe '{recipe_name}')" if recipe_name else ""
        super().__init__(f"Product {product_id} referenced by an ingredient no longer exists{where}")
