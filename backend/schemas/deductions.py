from datetime import date, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


TargetType = Literal["product", "recipe"]


class SimulationRequest(BaseModel):
    restaurant_id: UUID
    pos_item_name: str
    quantity_sold: float

    @field_validator("pos_item_name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("quantity_sold")
    @classmethod
    def _quantity_positive(cls, v: float) -> float:
        if v is None or v <= 0:
            raise ValueError("quantity_sold must be > 0")
        return v


class SaleLineRequest(SimulationRequest):
    sale_date: date
    external_order_id: Optional[str] = None
    sale_time: Optional[time] = None
    timezone: Optional[str] = None
    performed_by: Optional[UUID] = None

    @field_validator("external_order_id", "timezone")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class SaleBatchRequest(BaseModel):
    lines: List[SaleLineRequest] = Field(..., min_length=1)


class IngredientDeductionRead(BaseModel):
    product_id: UUID
    product_name: str
    quantity_recipe_units: float
    recipe_unit: str
    quantity_purchase_units: float
    purchase_unit: str
    remaining_stock_purchase_units: float
    conversion_method: Optional[str] = None
    unit_cost: Optional[float] = None
    cost: float
    warning: Optional[str] = None


class ConversionWarningRead(BaseModel):
    product_name: str
    recipe_quantity: float
    recipe_unit: str
    purchase_unit: str
    deduction_amount: float
    warning_type: str
    message: str


class DeductionResultRead(BaseModel):
    target_name: str
    target_type: Optional[TargetType] = None
    ingredients_deducted: List[IngredientDeductionRead]
    total_cost: float
    conversion_warnings: List[ConversionWarningRead] = []
    already_processed: bool = False
    reference_id: Optional[str] = None


class SaleBatchLineResult(BaseModel):
    index: int
    pos_item_name: str
    result: Optional[DeductionResultRead] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class SaleBatchResponse(BaseModel):
    processed: int
    already_processed: int
    unmapped: int
    failed: int
    total_cost: float
    lines: List[SaleBatchLineResult]


class MappingRead(BaseModel):
    exists: bool
    target_type: Optional[TargetType] = None
    target_id: Optional[UUID] = None
    target_name: Optional[str] = None
