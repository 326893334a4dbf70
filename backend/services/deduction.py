"""
POS sale line -> stock deduction + ledger rows.

    RECEIVED -> DEDUP_CHECK -> ALREADY_PROCESSED
                            -> RESOLVE_TARGET -> NO_MAPPING
                                              -> DIRECT_PRODUCT -> COMMIT
                                              -> RECIPE -> per ingredient -> COMMIT

`deduct` and `simulate` share target resolution and `plan_deduction`, so a
preview and the real thing cannot disagree on a number. Only `deduct` locks,
claims the reference key, writes stock and appends to the ledger.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import settings
from core.conversion import ZERO, ConversionMethod, ConversionResult, as_decimal, resolve
from core.exceptions import InvalidSaleError, InventoryError, MissingProductError
from core.idempotency import USAGE, reference_key
from db.inventory.claim import DeductionClaim as DeductionClaimModel
from db.product import Product as ProductModel
from db.recipe import Recipe as RecipeModel
from services import ledger

logger = logging.getLogger(__name__)

TARGET_PRODUCT = "product"
TARGET_RECIPE = "recipe"

ALREADY_PROCESSED_NAME = "Already processed"

# Scale of the Numeric(18, 6) stock and ledger columns
QUANTITY_STEP = Decimal("0.000001")

_BADGES = {
    ConversionMethod.DIRECT: "1:1",
    ConversionMethod.COUNT_TO_CONTAINER: "COUNT",
    ConversionMethod.VOLUME: "VOL",
    ConversionMethod.WEIGHT: "WEIGHT",
    ConversionMethod.DENSITY: "DENSITY",
    ConversionMethod.CONVERSION_FACTOR: "FACTOR",
    ConversionMethod.FALLBACK: "FALLBACK",
}


@dataclass
class SaleLine:
    restaurant_id: UUID
    pos_item_name: str
    quantity_sold: Decimal
    sale_date: date
    external_order_id: Optional[str] = None
    sale_time: Optional[time] = None
    timezone: Optional[str] = None
    performed_by: Optional[UUID] = None


@dataclass
class IngredientDeduction:
    product_id: UUID
    product_name: str
    quantity_recipe_units: Decimal
    recipe_unit: str
    quantity_purchase_units: Decimal
    purchase_unit: str
    remaining_stock_purchase_units: Decimal
    conversion_method: str
    unit_cost: Decimal
    cost: Decimal
    warning: Optional[str] = None


@dataclass
class DeductionWarning:
    product_name: str
    recipe_quantity: Decimal
    recipe_unit: str
    purchase_unit: str
    deduction_amount: Decimal
    warning_type: str
    message: str


@dataclass
class DeductionResult:
    target_name: str = ""
    target_type: Optional[str] = None
    ingredients_deducted: List[IngredientDeduction] = field(default_factory=list)
    total_cost: Decimal = ZERO
    conversion_warnings: List[DeductionWarning] = field(default_factory=list)
    already_processed: bool = False
    reference_id: Optional[str] = None

    @classmethod
    def already_done(cls, reference_id: str) -> "DeductionResult":
        return cls(target_name=ALREADY_PROCESSED_NAME, already_processed=True, reference_id=reference_id)


@dataclass
class MappingResult:
    exists: bool
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    target_name: Optional[str] = None


@dataclass
class _Component:
    """One product consumed by the sale, in recipe units."""
    product_id: UUID
    quantity: Decimal  # per unit sold
    unit: Optional[str]


@dataclass
class _Target:
    kind: str
    id: UUID
    name: str
    components: List[_Component]


@dataclass
class PlannedLine:
    product: ProductModel
    needed: Decimal
    recipe_unit: str
    conversion: ConversionResult
    remaining_stock: Decimal


# -----------------------------------------------------------------------------
# Shared by deduct + simulate
# -----------------------------------------------------------------------------

def _validate(restaurant_id: Optional[UUID], item_name: Optional[str], quantity_sold) -> Decimal:
    if restaurant_id is None:
        raise InvalidSaleError("restaurant_id is required")
    if not (item_name or "").strip():
        raise InvalidSaleError("pos_item_name is required")
    try:
        quantity = as_decimal(quantity_sold, default=None)
    except ArithmeticError:
        raise InvalidSaleError(f"quantity_sold is not a number: {quantity_sold!r}")
    if quantity is None or not quantity.is_finite() or quantity <= 0:
        raise InvalidSaleError(f"quantity_sold must be > 0 (got {quantity_sold})")
    return quantity


def _name_key(column):
    return func.lower(func.trim(column))


async def _find_target(db: AsyncSession, restaurant_id: UUID, item_name: str) -> Optional[_Target]:
    key = item_name.strip().lower()

    # Direct-sale products win over recipes
    res = await db.execute(
        select(ProductModel)
        .where(ProductModel.restaurant_id == restaurant_id)
        .where(_name_key(ProductModel.pos_item_name) == key)
        .order_by(ProductModel.name.asc(), ProductModel.id.asc())
        .limit(1)
    )
    product = res.scalar_one_or_none()
    if product:
        return _Target(
            kind=TARGET_PRODUCT,
            id=product.id,
            name=product.name,
            components=[_Component(product_id=product.id, quantity=Decimal("1"), unit=product.uom_purchase)],
        )

    pos_match = _name_key(RecipeModel.pos_item_name) == key
    res = await db.execute(
        select(RecipeModel)
        .options(selectinload(RecipeModel.ingredients))
        .where(RecipeModel.restaurant_id == restaurant_id)
        .where(RecipeModel.is_active == True)  # noqa: E712
        .where(pos_match | (_name_key(RecipeModel.name) == key))
        .order_by(case((pos_match, 0), else_=1), RecipeModel.name.asc(), RecipeModel.id.asc())
        .limit(1)
    )
    recipe = res.scalar_one_or_none()
    if not recipe:
        return None
    return _Target(
        kind=TARGET_RECIPE,
        id=recipe.id,
        name=recipe.name,
        components=[
            _Component(product_id=ri.product_id, quantity=as_decimal(ri.quantity), unit=ri.unit)
            for ri in (recipe.ingredients or [])
        ],
    )


async def _load_products(db: AsyncSession, target: _Target, lock: bool) -> Dict[UUID, ProductModel]:
    ids = sorted({c.product_id for c in target.components}, key=str)
    # Lock in a fixed order so two sales sharing products cannot deadlock.
    # Rows already in the session are overwritten with what the lock read.
    stmt = (
        select(ProductModel)
        .where(ProductModel.id.in_(ids))
        .order_by(ProductModel.id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    products = {p.id: p for p in res.scalars().all()}
    for pid in ids:
        if pid not in products:
            raise MissingProductError(pid, recipe_name=target.name)
    return products


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def plan_deduction(target: _Target, quantity_sold: Decimal, products: Dict[UUID, ProductModel]) -> List[PlannedLine]:
    """Pure: what each component costs and leaves in stock. Stock never goes below zero."""
    stock: Dict[UUID, Decimal] = {pid: as_decimal(p.current_stock) for pid, p in products.items()}
    lines: List[PlannedLine] = []
    for component in target.components:
        product = products[component.product_id]
        needed = component.quantity * quantity_sold
        if target.kind == TARGET_PRODUCT:
            conversion = ConversionResult(
                purchase_quantity=needed,
                cost=needed * as_decimal(product.cost_per_unit),
                method=ConversionMethod.DIRECT,
            )
        else:
            conversion = resolve(needed, component.unit, product)
        # Result, stock column and ledger row all carry the same stored value;
        # cost follows the rounded quantity
        purchase_quantity = _quantize(conversion.purchase_quantity)
        conversion = replace(
            conversion,
            purchase_quantity=purchase_quantity,
            cost=_quantize(purchase_quantity * as_decimal(product.cost_per_unit)),
        )
        remaining = max(ZERO, stock[product.id] - conversion.purchase_quantity)
        stock[product.id] = remaining
        lines.append(
            PlannedLine(
                product=product,
                needed=needed,
                recipe_unit=component.unit or product.uom_purchase or "unit",
                conversion=conversion,
                remaining_stock=remaining,
            )
        )
    return lines


def _build_result(target: _Target, lines: Sequence[PlannedLine], reference_id: Optional[str] = None) -> DeductionResult:
    result = DeductionResult(target_name=target.name, target_type=target.kind, reference_id=reference_id)
    for line in lines:
        p = line.product
        conv = line.conversion
        purchase_unit = p.uom_purchase or "unit"
        result.ingredients_deducted.append(
            IngredientDeduction(
                product_id=p.id,
                product_name=p.name,
                quantity_recipe_units=line.needed,
                recipe_unit=line.recipe_unit,
                quantity_purchase_units=conv.purchase_quantity,
                purchase_unit=purchase_unit,
                remaining_stock_purchase_units=line.remaining_stock,
                conversion_method=conv.method.value,
                unit_cost=as_decimal(p.cost_per_unit),
                cost=conv.cost,
                warning=conv.warning.message if conv.warning else None,
            )
        )
        result.total_cost += conv.cost
        if conv.warning:
            result.conversion_warnings.append(
                DeductionWarning(
                    product_name=p.name,
                    recipe_quantity=line.needed,
                    recipe_unit=line.recipe_unit,
                    purchase_unit=purchase_unit,
                    deduction_amount=conv.purchase_quantity,
                    warning_type=conv.warning.warning_type,
                    message=conv.warning.message,
                )
            )
    return result


# -----------------------------------------------------------------------------
# Real deduction
# -----------------------------------------------------------------------------

def transaction_timestamp(sale_date: date, sale_time: Optional[time], tz_name: Optional[str]) -> datetime:
    """Restaurant-local sale date/time -> aware UTC datetime (midnight when no time)."""
    tz = ZoneInfo(tz_name or settings.restaurant_timezone)
    local = datetime.combine(sale_date, sale_time or time(0, 0)).replace(tzinfo=tz)
    return local.astimezone(timezone.utc)


def _reason(item_name: str, target: _Target, line: PlannedLine) -> str:
    source = f"Recipe: {target.name}" if target.kind == TARGET_RECIPE else f"Direct sale: {target.name}"
    badge = _BADGES[line.conversion.method]
    return (
        f"POS sale: {item_name} ({source}) "
        f"[{badge}: {line.needed:.2f} {line.recipe_unit} -> "
        f"{line.conversion.purchase_quantity:.3f} {line.product.uom_purchase or 'unit'}]"
    )


async def deduct(db: AsyncSession, sale: SaleLine) -> DeductionResult:
    """
    Apply one POS sale line. Commits on success, rolls back and re-raises on error.

    Replays of an already-applied line (same reference key) return
    `already_processed=True` and change nothing, including when the replay races
    the first run and loses on the claim's unique constraint.
    """
    quantity = _validate(sale.restaurant_id, sale.pos_item_name, sale.quantity_sold)
    item_name = sale.pos_item_name.strip()
    try:
        ZoneInfo(sale.timezone or settings.restaurant_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidSaleError(f"Unknown timezone: {sale.timezone}")

    ref = reference_key(sale.external_order_id, item_name, sale.sale_date)
    log_ctx = {"restaurant_id": sale.restaurant_id, "reference_id": ref, "pos_item_name": item_name}

    try:
        if await ledger.has_usage(db, sale.restaurant_id, ref):
            await db.rollback()
            logger.info("sale line already processed", extra=log_ctx)
            return DeductionResult.already_done(ref)

        target = await _find_target(db, sale.restaurant_id, item_name)
        if target is None or not target.components:
            await db.rollback()
            logger.info("no product or recipe mapped to POS item", extra=log_ctx)
            return DeductionResult(reference_id=ref)

        db.add(DeductionClaimModel(restaurant_id=sale.restaurant_id, reference_id=ref, transaction_type=USAGE))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning("lost idempotency race; treating as already processed", extra=log_ctx)
            return DeductionResult.already_done(ref)

        products = await _load_products(db, target, lock=True)
        lines = plan_deduction(target, quantity, products)
        created_at = transaction_timestamp(sale.sale_date, sale.sale_time, sale.timezone)

        for line in lines:
            line.product.current_stock = line.remaining_stock
            ledger.append_usage(
                db,
                restaurant_id=sale.restaurant_id,
                product_id=line.product.id,
                purchase_quantity=line.conversion.purchase_quantity,
                unit_cost=line.product.cost_per_unit,
                cost=line.conversion.cost,
                reason=_reason(item_name, target, line),
                reference_id=ref,
                performed_by=sale.performed_by,
                created_at=created_at,
            )

        result = _build_result(target, lines, reference_id=ref)
        await db.commit()
    except InventoryError as e:
        await db.rollback()
        logger.warning("deduction rejected: %s", e.message, extra={**log_ctx, "code": e.code})
        raise
    except Exception:
        await db.rollback()
        logger.exception("deduction failed", extra=log_ctx)
        raise

    logger.info(
        "deduction committed",
        extra={**log_ctx, "target_type": result.target_type, "lines": len(result.ingredients_deducted),
               "total_cost": result.total_cost, "warnings": len(result.conversion_warnings)},
    )
    return result


# -----------------------------------------------------------------------------
# Read-only
# -----------------------------------------------------------------------------

async def simulate(db: AsyncSession, restaurant_id: UUID, item_name: str, quantity_sold) -> DeductionResult:
    """Preview of `deduct` for the same input. Writes nothing and can be repeated freely."""
    quantity = _validate(restaurant_id, item_name, quantity_sold)
    target = await _find_target(db, restaurant_id, item_name.strip())
    if target is None or not target.components:
        return DeductionResult()
    products = await _load_products(db, target, lock=False)
    return _build_result(target, plan_deduction(target, quantity, products))


async def check_mapping(db: AsyncSession, restaurant_id: UUID, item_name: str) -> MappingResult:
    if not (item_name or "").strip():
        raise InvalidSaleError("item_name is required")
    target = await _find_target(db, restaurant_id, item_name)
    if target is None:
        return MappingResult(exists=False)
    return MappingResult(exists=True, target_type=target.kind, target_id=target.id, target_name=target.name)
