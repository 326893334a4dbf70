import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidSaleError, InventoryError, MissingProductError
from db.database import get_async_session
from schemas.deductions import (
    ConversionWarningRead,
    DeductionResultRead,
    IngredientDeductionRead,
    MappingRead,
    SaleBatchLineResult,
    SaleBatchRequest,
    SaleBatchResponse,
    SaleLineRequest,
    SimulationRequest,
)
from services.deduction import DeductionResult, SaleLine, check_mapping, deduct, simulate

logger = logging.getLogger(__name__)

router = APIRouter()


def _f(x: Optional[Decimal]) -> Optional[float]:
    return float(x) if x is not None else None


def _serialize_result(r: DeductionResult) -> DeductionResultRead:
    return DeductionResultRead(
        target_name=r.target_name,
        target_type=r.target_type,
        ingredients_deducted=[
            IngredientDeductionRead(
                product_id=d.product_id,
                product_name=d.product_name,
                quantity_recipe_units=float(d.quantity_recipe_units),
                recipe_unit=d.recipe_unit,
                quantity_purchase_units=float(d.quantity_purchase_units),
                purchase_unit=d.purchase_unit,
                remaining_stock_purchase_units=float(d.remaining_stock_purchase_units),
                conversion_method=d.conversion_method,
                unit_cost=_f(d.unit_cost),
                cost=float(d.cost),
                warning=d.warning,
            )
            for d in r.ingredients_deducted
        ],
        total_cost=float(r.total_cost),
        conversion_warnings=[
            ConversionWarningRead(
                product_name=w.product_name,
                recipe_quantity=float(w.recipe_quantity),
                recipe_unit=w.recipe_unit,
                purchase_unit=w.purchase_unit,
                deduction_amount=float(w.deduction_amount),
                warning_type=w.warning_type,
                message=w.message,
            )
            for w in r.conversion_warnings
        ],
        already_processed=r.already_processed,
        reference_id=r.reference_id,
    )


def _to_sale_line(payload: SaleLineRequest) -> SaleLine:
    return SaleLine(
        restaurant_id=payload.restaurant_id,
        pos_item_name=payload.pos_item_name,
        quantity_sold=Decimal(str(payload.quantity_sold)),
        sale_date=payload.sale_date,
        external_order_id=payload.external_order_id,
        sale_time=payload.sale_time,
        timezone=payload.timezone,
        performed_by=payload.performed_by,
    )


def _http_error(e: InventoryError) -> HTTPException:
    if isinstance(e, MissingProductError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    if isinstance(e, InvalidSaleError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)


@router.post("", response_model=DeductionResultRead, status_code=status.HTTP_201_CREATED)
async def create_deduction(
    payload: SaleLineRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Deduct inventory for one POS sale line.

    - No product/recipe for the item: empty result (target_name=""), nothing written.
    - Same line sent again: already_processed=true, nothing written.
    """
    try:
        result = await deduct(db, _to_sale_line(payload))
    except InventoryError as e:
        raise _http_error(e)
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to deduct inventory: {e}")
    return _serialize_result(result)


@router.post("/batch", response_model=SaleBatchResponse)
async def create_deduction_batch(
    payload: SaleBatchRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Deduct a batch of sale lines (e.g. a day's POS sync replayed).

    Every line is its own unit of work: a bad line is reported and the rest go through.
    """
    out = []
    processed = already = unmapped = failed = 0
    total_cost = Decimal("0")
    for idx, line in enumerate(payload.lines):
        try:
            result = await deduct(db, _to_sale_line(line))
        except InventoryError as e:
            failed += 1
            out.append(SaleBatchLineResult(index=idx, pos_item_name=line.pos_item_name, error=e.message, error_code=e.code))
            continue
        except Exception as e:
            failed += 1
            out.append(SaleBatchLineResult(index=idx, pos_item_name=line.pos_item_name, error=str(e), error_code="INTERNAL"))
            continue

        if result.already_processed:
            already += 1
        elif not result.target_type:
            unmapped += 1
        else:
            processed += 1
            total_cost += result.total_cost
        out.append(SaleBatchLineResult(index=idx, pos_item_name=line.pos_item_name, result=_serialize_result(result)))

    logger.info(
        "batch deduction finished",
        extra={"lines": len(payload.lines), "processed": processed, "already_processed": already,
               "unmapped": unmapped, "failed": failed},
    )
    return SaleBatchResponse(
        processed=processed,
        already_processed=already,
        unmapped=unmapped,
        failed=failed,
        total_cost=float(total_cost),
        lines=out,
    )


@router.post("/simulate", response_model=DeductionResultRead)
async def simulate_deduction(
    payload: SimulationRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Preview what a sale would deduct. Read-only; stock and ledger are untouched."""
    try:
        result = await simulate(db, payload.restaurant_id, payload.pos_item_name, Decimal(str(payload.quantity_sold)))
    except InventoryError as e:
        raise _http_error(e)
    return _serialize_result(result)


@router.get("/mapping", response_model=MappingRead)
async def get_mapping(
    restaurant_id: UUID,
    item_name: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_async_session),
):
    """Which product or recipe a POS item name resolves to, if any."""
    try:
        m = await check_mapping(db, restaurant_id, item_name)
    except InventoryError as e:
        raise _http_error(e)
    return MappingRead(exists=m.exists, target_type=m.target_type, target_id=m.target_id, target_name=m.target_name)
