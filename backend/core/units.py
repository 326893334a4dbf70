"""
Unit families and fixed conversion constants.

Every unit symbol a recipe or product carries is folded onto a canonical
symbol and classified into exactly one `UnitFamily`. The constants are
physical values kept as Decimal so that costs computed today match costs
already sitting in the ledger.

"oz" is the one ambiguous symbol: on its own it is a weight ounce, but next
to a volume unit it is a fluid ounce (see `ounce_family`).
"""

from decimal import Decimal
from enum import Enum
from typing import Optional


class UnitFamily(str, Enum):
    VOLUME = "volume"
    WEIGHT = "weight"
    COUNT = "count"
    CONTAINER = "container"
    UNKNOWN = "unknown"


# ml per unit
VOLUME_TO_ML = {
    "ml": Decimal("1"),
    "l": Decimal("1000"),
    "fl oz": Decimal("29.5735"),
    "cup": Decimal("236.588"),
    "tbsp": Decimal("14.7868"),
    "tsp": Decimal("4.92892"),
    "gal": Decimal("3785.41"),
    "qt": Decimal("946.353"),
    "pint": Decimal("473.176"),
}

# grams per unit
WEIGHT_TO_G = {
    "g": Decimal("1"),
    "kg": Decimal("1000"),
    "lb": Decimal("453.592"),
    "oz": Decimal("28.3495"),
}

COUNT_UNITS = frozenset({"each", "piece", "unit"})

CONTAINER_UNITS = frozenset({"bottle", "jar", "can", "bag", "box", "case", "package", "container"})

CUP_ML = VOLUME_TO_ML["cup"]
FLUID_OUNCE = "fl oz"
OUNCE = "oz"

_ALIASES = {
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    "floz": "fl oz",
    "fl_oz": "fl oz",
    "fl. oz": "fl oz",
    "fluid ounce": "fl oz",
    "fluid ounces": "fl oz",
    "cups": "cup",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "gallon": "gal",
    "gallons": "gal",
    "quart": "qt",
    "quarts": "qt",
    "pt": "pint",
    "pints": "pint",
    "gram": "g",
    "grams": "g",
    "kilogram": "kg",
    "kilograms": "kg",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
    "ounce": "oz",
    "ounces": "oz",
    "ea": "each",
    "pc": "piece",
    "pcs": "piece",
    "pieces": "piece",
    "units": "unit",
    "bottles": "bottle",
    "jars": "jar",
    "cans": "can",
    "bags": "bag",
    "boxes": "box",
    "cases": "case",
    "packages": "package",
    "pkg": "package",
    "containers": "container",
}


# Grams per cup for ingredients bought by weight but measured by volume in
# recipes. Matched by case-insensitive substring of the product name, first
# entry wins.
DENSITY_G_PER_CUP = (
    ("rice", Decimal("185")),
    ("flour", Decimal("120")),
    ("sugar", Decimal("200")),
    ("butter", Decimal("227")),
)


def normalize_unit(unit: Optional[str]) -> str:
    u = " ".join((unit or "").strip().lower().split())
    return _ALIASES.get(u, u)


def unit_family(unit: Optional[str]) -> UnitFamily:
    u = normalize_unit(unit)
    if u in VOLUME_TO_ML:
        return UnitFamily.VOLUME
    if u in WEIGHT_TO_G:
        return UnitFamily.WEIGHT
    if u in COUNT_UNITS:
        return UnitFamily.COUNT
    if u in CONTAINER_UNITS:
        return UnitFamily.CONTAINER
    return UnitFamily.UNKNOWN


def ounce_family(unit: str, counterpart: str) -> str:
    """Return `unit`, read as a fluid ounce when it is "oz" facing a volume unit."""
    u = normalize_unit(unit)
    if u == OUNCE and unit_family(counterpart) == UnitFamily.VOLUME:
        return FLUID_OUNCE
    return u


def to_ml(quantity: Decimal, unit: str) -> Optional[Decimal]:
    factor = VOLUME_TO_ML.get(normalize_unit(unit))
    if factor is None:
        return None
    return quantity * factor


def to_grams(quantity: Decimal, unit: str) -> Optional[Decimal]:
    factor = WEIGHT_TO_G.get(normalize_unit(unit))
    if factor is None:
        return None
    return quantity * factor


def density_g_per_cup(product_name: Optional[str]) -> Optional[Decimal]:
    name = (product_name or "").lower()
    for needle, grams in DENSITY_G_PER_CUP:
        if needle in name:
            return grams
    return None
