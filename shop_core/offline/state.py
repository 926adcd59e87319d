# =============================================================================
# shop_core/offline/state.py
# In-memory record collections of a mounted dashboard
# =============================================================================

from __future__ import annotations
import copy
from typing import Dict, List, Optional

from shop_core.data.models import Collection, Operator, Record, new_local_id, utc_now_iso


class ShopState:
    """
    Working copy of every record collection, keyed by Collection.

    Records are plain dicts shaped like the remote rows. Readers get copies;
    only the sync engine and commands mutate through the methods below.
    """

    def __init__(self):
        self._collections: Dict[Collection, List[Record]] = {c: [] for c in Collection}

    def records(self, collection: Collection) -> List[Record]:
        return copy.deepcopy(self._collections[collection])

    def replace(self, collection: Collection, records: List[Record]) -> None:
        self._collections[collection] = [dict(r) for r in records]

    def find(self, collection: Collection, record_id: Optional[str]) -> Optional[Record]:
        if record_id is None:
            return None
        for record in self._collections[collection]:
            if record.get("id") == record_id:
                return dict(record)
        return None

    def append(self, collection: Collection, record: Record) -> None:
        self._collections[collection].append(dict(record))

    def update_record(self, collection: Collection, record_id: str, changes: Record) -> bool:
        for record in self._collections[collection]:
            if record.get("id") == record_id:
                record.update(changes)
                return True
        return False

    def remove(self, collection: Collection, record_id: str) -> bool:
        before = len(self._collections[collection])
        self._collections[collection] = [
            r for r in self._collections[collection] if r.get("id") != record_id
        ]
        return len(self._collections[collection]) != before

    # =========================================================================
    # BALANCES
    # =========================================================================

    def balance_for(self, operator: Operator) -> Optional[Record]:
        for record in self._collections[Collection.BALANCES]:
            if record.get("operator") == operator.value:
                return dict(record)
        return None

    def upsert_balance(self, operator: Operator, changes: Record) -> Record:
        """Update the balance record of operator, creating it if absent."""
        for record in self._collections[Collection.BALANCES]:
            if record.get("operator") == operator.value:
                record.update(changes)
                return dict(record)

        record = {
            "id": new_local_id(),
            "created_at": utc_now_iso(),
            "operator": operator.value,
            "deposit_balance": 0,
            "withdrawal_balance": 0,
            **changes,
        }
        self._collections[Collection.BALANCES].append(record)
        return dict(record)

    def snapshot(self) -> Dict[str, List[Record]]:
        return {c.value: copy.deepcopy(records) for c, records in self._collections.items()}
