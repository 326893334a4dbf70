"""
Recipe-unit -> purchase-unit conversion.

`resolve` turns "1.5 oz of vodka" into "0.059 bottles at $x" for one product.
Tiers, first match wins:

1. recipe unit == purchase unit                          -> 1:1
2. purchase unit is a container (bottle, bag, case, ...)  -> package math on
   size_value/size_unit, else 1:1 fallback with a warning
3. purchase unit is itself a weight/volume unit           -> package math on
   size_value * package_qty, else the legacy conversion_factor
4. anything else                                          -> legacy factor, else
   1:1 fallback with a warning

The fallback is what keeps a POS sale from ever being blocked by bad catalog
data: the deduction is still made, and the warning travels with the result.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple

from core.units import (
    CUP_ML,
    UnitFamily,
    density_g_per_cup,
    normalize_unit,
    ounce_family,
    to_grams,
    to_ml,
    unit_family,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")


class ConversionMethod(str, Enum):
    DIRECT = "1:1"
    COUNT_TO_CONTAINER = "count_to_container"
    VOLUME = "volume_to_volume"
    WEIGHT = "weight_to_weight"
    DENSITY = "density_to_weight"
    CONVERSION_FACTOR = "conversion_factor"
    FALLBACK = "fallback_1:1"


FALLBACK_WARNING = "fallback_1:1"


@dataclass(frozen=True)
class ConversionWarning:
    warning_type: str
    message: str


@dataclass(frozen=True)
class ConversionResult:
    purchase_quantity: Decimal
    cost: Decimal
    method: ConversionMethod
    warning: Optional[ConversionWarning] = None

    @property
    def is_fallback(self) -> bool:
        return self.method == ConversionMethod.FALLBACK


def as_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _positive(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    d = as_decimal(value)
    return d if d > 0 else None


def _package_quantity(
    quantity: Decimal,
    recipe_unit: str,
    package_amount: Decimal,
    size_unit: str,
    product_name: Optional[str],
) -> Tuple[Optional[Decimal], Optional[ConversionMethod]]:
    """How many packages of `package_amount` `size_unit` does `quantity` `recipe_unit` use up."""
    if unit_family(recipe_unit) == UnitFamily.COUNT and unit_family(size_unit) == UnitFamily.COUNT:
        return quantity / package_amount, ConversionMethod.COUNT_TO_CONTAINER

    recipe_unit = ounce_family(recipe_unit, size_unit)
    recipe_family = unit_family(recipe_unit)
    size_family = unit_family(size_unit)

    if recipe_family == UnitFamily.VOLUME and size_family == UnitFamily.VOLUME:
        return to_ml(quantity, recipe_unit) / to_ml(package_amount, size_unit), ConversionMethod.VOLUME

    if recipe_family == UnitFamily.WEIGHT and size_family == UnitFamily.WEIGHT:
        return to_grams(quantity, recipe_unit) / to_grams(package_amount, size_unit), ConversionMethod.WEIGHT

    if recipe_family == UnitFamily.VOLUME and size_family == UnitFamily.WEIGHT:
        grams_per_cup = density_g_per_cup(product_name)
        if grams_per_cup is not None:
            grams = to_ml(quantity, recipe_unit) / CUP_ML * grams_per_cup
            return grams / to_grams(package_amount, size_unit), ConversionMethod.DENSITY
        # A package sized in "oz" next to a volume recipe (a 12 oz beer bottle)
        size_unit = ounce_family(size_unit, recipe_unit)
        if unit_family(size_unit) == UnitFamily.VOLUME:
            return to_ml(quantity, recipe_unit) / to_ml(package_amount, size_unit), ConversionMethod.VOLUME

    return None, None


def _result(purchase_quantity: Decimal, cost_per_unit: Decimal, method: ConversionMethod,
            warning: Optional[ConversionWarning] = None) -> ConversionResult:
    return ConversionResult(
        purchase_quantity=purchase_quantity,
        cost=purchase_quantity * cost_per_unit,
        method=method,
        warning=warning,
    )


def _fallback(quantity: Decimal, recipe_unit: str, purchase_unit: str, size_unit: str,
              product: Any, cost_per_unit: Decimal) -> ConversionResult:
    package = f" (package unit: {size_unit})" if size_unit else ""
    message = (
        f"Could not convert {quantity} {recipe_unit or '?'} to {purchase_unit or '?'}{package}. "
        f"Using 1:1 ratio which may over-deduct inventory."
    )
    logger.warning(
        "conversion fell back to 1:1",
        extra={"product_name": getattr(product, "name", None), "recipe_unit": recipe_unit,
               "purchase_unit": purchase_unit},
    )
    return _result(quantity, cost_per_unit, ConversionMethod.FALLBACK,
                   ConversionWarning(warning_type=FALLBACK_WARNING, message=message))


def _legacy_or_fallback(quantity: Decimal, recipe_unit: str, purchase_unit: str, size_unit: str,
                        product: Any, cost_per_unit: Decimal) -> ConversionResult:
    # conversion_factor = recipe units per purchase unit; the default of 1 carries no information
    factor = _positive(getattr(product, "conversion_factor", None))
    if factor is not None and factor != ONE:
        return _result(quantity / factor, cost_per_unit, ConversionMethod.CONVERSION_FACTOR)
    return _fallback(quantity, recipe_unit, purchase_unit, size_unit, product, cost_per_unit)


def resolve(recipe_quantity: Any, recipe_unit: Optional[str], product: Any) -> ConversionResult:
    """
    Convert `recipe_quantity` `recipe_unit` of `product` into purchase units and cost.

    `product` only needs the catalog attributes (name, uom_purchase, cost_per_unit,
    size_value, size_unit, package_qty, conversion_factor). Never raises for bad or
    missing unit data.
    """
    quantity = as_decimal(recipe_quantity)
    cost_per_unit = as_decimal(getattr(product, "cost_per_unit", None))
    name = getattr(product, "name", None)

    r_unit = normalize_unit(recipe_unit)
    p_unit = normalize_unit(getattr(product, "uom_purchase", None))
    s_unit = normalize_unit(getattr(product, "size_unit", None))
    size_value = _positive(getattr(product, "size_value", None))

    if r_unit and r_unit == p_unit:
        return _result(quantity, cost_per_unit, ConversionMethod.DIRECT)

    p_family = unit_family(p_unit)

    if p_family == UnitFamily.CONTAINER:
        # Contents of a container are only known from its size data
        if size_value is not None and s_unit:
            purchase_quantity, method = _package_quantity(quantity, r_unit, size_value, s_unit, name)
            if purchase_quantity is not None:
                return _result(purchase_quantity, cost_per_unit, method)
        return _fallback(quantity, r_unit, p_unit, s_unit, product, cost_per_unit)

    if p_family in (UnitFamily.VOLUME, UnitFamily.WEIGHT) and size_value is not None and s_unit:
        package_qty = _positive(getattr(product, "package_qty", None)) or ONE
        purchase_quantity, method = _package_quantity(quantity, r_unit, size_value * package_qty, s_unit, name)
        if purchase_quantity is not None:
            return _result(purchase_quantity, cost_per_unit, method)

    return _legacy_or_fallback(quantity, r_unit, p_unit, s_unit, product, cost_per_unit)
