from datetime import date
from typing import Optional, Union

USAGE = "usage"


def reference_key(order_id: Optional[str], item_name: str, sale_date: Union[date, str]) -> str:
    """
    Deterministic reference_id for one POS sale line.

    With an external order id the key is unique per order line. Without one it is
    only unique per item per day, so two separate walk-in sales of the same item
    on the same day collapse into one. The POS-sync layer should send order ids.
    """
    day = sale_date.isoformat() if isinstance(sale_date, date) else str(sale_date).strip()
    item = (item_name or "").strip()
    order = (order_id or "").strip()
    if order:
        return f"{order}_{item}_{day}"
    return f"{item}_{day}"
