"""
pos_sync_client.py

HTTP client the POS-sync job uses to push sale lines into this backend.

What it provides:
- A tiny API client (optional bearer token)
- Helpers for:
  - Deducting one sale line: POST /deductions
  - Deducting a batch of lines: POST /deductions/batch
  - Previewing a sale: POST /deductions/simulate
  - Checking whether a POS item is mapped: GET /deductions/mapping

Environment variables expected:
- INVENTORY_API_URL: e.g. "https://your-domain.com/api"

Optional:
- INVENTORY_API_TOKEN: sent as "Authorization: Bearer <token>" (auth is handled by the gateway)

Dependencies:
- requests (pip install requests)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, List, Optional

import requests


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class InventoryApiClient:
    base_url: str
    token: Optional[str] = None
    timeout: float = 60

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, *, json: Any = None, params: Dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        resp = requests.request(
            method,
            url,
            json=json,
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )

        if resp.status_code >= 400:
            raise ApiError(f"{method} {path} failed ({resp.status_code}): {resp.text}", status_code=resp.status_code)

        if resp.status_code == 204:
            return None
        return resp.json()

    # ----------------------------
    # Sale lines
    # ----------------------------

    @staticmethod
    def sale_line(
        *,
        restaurant_id: str,
        pos_item_name: str,
        quantity_sold: float,
        sale_date: date | str,
        external_order_id: Optional[str] = None,
        sale_time: time | str | None = None,
        timezone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the JSON body for one sale line."""
        payload: Dict[str, Any] = {
            "restaurant_id": str(restaurant_id),
            "pos_item_name": pos_item_name,
            "quantity_sold": quantity_sold,
            "sale_date": sale_date.isoformat() if isinstance(sale_date, date) else sale_date,
        }
        if external_order_id:
            payload["external_order_id"] = external_order_id
        if sale_time is not None:
            payload["sale_time"] = sale_time.isoformat() if isinstance(sale_time, time) else sale_time
        if timezone:
            payload["timezone"] = timezone
        return payload

    def deduct(self, **line: Any) -> Any:
        """
        Calls: POST /deductions

        Safe to retry: a replay of the same (order id, item, date) comes back with
        already_processed=true.
        """
        return self._request("POST", "/deductions", json=self.sale_line(**line))

    def deduct_batch(self, lines: List[Dict[str, Any]]) -> Any:
        """Calls: POST /deductions/batch. `lines` are dicts built with sale_line()."""
        return self._request("POST", "/deductions/batch", json={"lines": lines})

    def simulate(self, *, restaurant_id: str, pos_item_name: str, quantity_sold: float) -> Any:
        """Calls: POST /deductions/simulate (read-only)."""
        payload = {
            "restaurant_id": str(restaurant_id),
            "pos_item_name": pos_item_name,
            "quantity_sold": quantity_sold,
        }
        return self._request("POST", "/deductions/simulate", json=payload)

    def is_mapped(self, *, restaurant_id: str, item_name: str) -> bool:
        """Calls: GET /deductions/mapping"""
        data = self._request(
            "GET",
            "/deductions/mapping",
            params={"restaurant_id": str(restaurant_id), "item_name": item_name},
        )
        return bool(data.get("exists"))


def make_client_from_env() -> InventoryApiClient:
    base_url = os.getenv("INVENTORY_API_URL", "").strip()
    token = os.getenv("INVENTORY_API_TOKEN", "").strip() or None

    if not base_url:
        raise RuntimeError("Missing INVENTORY_API_URL")

    return InventoryApiClient(base_url=base_url, token=token)


if __name__ == "__main__":
    client = make_client_from_env()

    # Example: preview a sale
    # print(client.simulate(restaurant_id="00000000-0000-0000-0000-000000000000",
    #                       pos_item_name="Moscow Mule", quantity_sold=2))

    print("OK: client configured. Uncomment examples to run.")
