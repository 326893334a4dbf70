"""
Inventory ledger.

Models:
- InventoryTransaction (append-only signed stock movements; quantity < 0 = consumption)
- DeductionClaim (one row per processed sale line, unique per reference key)
"""
