# =============================================================================
# shop_core/data/remote_store.py
# Remote Store collaborator interface and an in-process implementation
# =============================================================================
"""
RemoteStore - collection-level CRUD against the hosted database.

The sync engine only talks to this interface. Two implementations exist:

- SupabaseRemoteStore (shop_core.data.supabase_client): the hosted backend
- MockRemoteStore (this module): in-process tables for demos and tests

Every failed call raises RemoteStoreError; nothing returns a bare False.
"""

from __future__ import annotations
import copy
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from shop_core.data.models import Record, utc_now_iso
from shop_core.errors import RemoteStoreError


class RemoteStore(ABC):
    """Abstract base class for the hosted data store."""

    @abstractmethod
    def select_all(self, table: str) -> List[Record]:
        """Return every row of a table."""

    @abstractmethod
    def select_where(self, table: str, field: str, value: Any) -> List[Record]:
        """Return rows where field == value."""

    @abstractmethod
    def insert(self, table: str, records: List[Record]) -> List[Record]:
        """Insert rows and return them as stored (with server ids)."""

    @abstractmethod
    def update(self, table: str, record_id: str, partial: Record) -> List[Record]:
        """Patch the row with this id; returns the updated rows (possibly none)."""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        """Delete the row with this id; deleting a missing row is not an error."""

    @abstractmethod
    def upsert(self, table: str, records: List[Record], on_conflict: str) -> List[Record]:
        """Insert-or-update keyed by on_conflict rather than by id."""

    @abstractmethod
    def increment(
        self,
        table: str,
        key_field: str,
        key_value: Any,
        field: str,
        amount: float,
    ) -> Record:
        """Add amount to field of the row identified by key_field == key_value."""


class MockRemoteStore(RemoteStore):
    """
    In-process remote store with server-generated ids.

    Useful for demos, local-only mode and tests. Failures can be injected
    per table/operation to exercise the offline queue.

    Usage:
        store = MockRemoteStore({"products": [{"id": "p1", "stock": 3}]})
        store.fail_next("sales", "insert")
    """

    def __init__(self, tables: Optional[Dict[str, Iterable[Record]]] = None):
        self._tables: Dict[str, List[Record]] = defaultdict(list)
        self._failures: List[Tuple[Optional[str], Optional[str], int]] = []
        self._predicates: List[Callable[[str, str, Any], bool]] = []
        self.calls: List[Tuple[str, str, Any]] = []
        self.reachable = True
        for table, rows in (tables or {}).items():
            for row in rows:
                stored = dict(row)
                stored.setdefault("id", self._new_id())
                stored.setdefault("created_at", utc_now_iso())
                self._tables[table].append(stored)

    # =========================================================================
    # FAILURE INJECTION
    # =========================================================================

    def fail_next(self, table: Optional[str] = None, operation: Optional[str] = None, times: int = 1) -> None:
        """Make the next `times` matching calls raise RemoteStoreError."""
        self._failures.append((table, operation, times))

    def fail_when(self, predicate: Callable[[str, str, Any], bool]) -> None:
        """Raise on every call for which predicate(table, operation, payload) is true."""
        self._predicates.append(predicate)

    def clear_failures(self) -> None:
        self._failures.clear()
        self._predicates.clear()

    def _check(self, table: str, operation: str, payload: Any = None) -> None:
        self.calls.append((table, operation, copy.deepcopy(payload)))

        if not self.reachable:
            raise RemoteStoreError("Network unreachable", table=table, operation=operation)

        for predicate in self._predicates:
            if predicate(table, operation, payload):
                raise RemoteStoreError("Injected failure", table=table, operation=operation)

        for index, (f_table, f_operation, times) in enumerate(self._failures):
            if f_table not in (None, table) or f_operation not in (None, operation):
                continue
            if times <= 1:
                del self._failures[index]
            else:
                self._failures[index] = (f_table, f_operation, times - 1)
            raise RemoteStoreError("Injected failure", table=table, operation=operation)

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def rows(self, table: str) -> List[Record]:
        """Direct (unlogged) view of a table, for assertions."""
        return copy.deepcopy(self._tables[table])

    # =========================================================================
    # REMOTE STORE OPERATIONS
    # =========================================================================

    def select_all(self, table: str) -> List[Record]:
        self._check(table, "select")
        return copy.deepcopy(self._tables[table])

    def select_where(self, table: str, field: str, value: Any) -> List[Record]:
        self._check(table, "select", {field: value})
        return [copy.deepcopy(r) for r in self._tables[table] if r.get(field) == value]

    def insert(self, table: str, records: List[Record]) -> List[Record]:
        self._check(table, "insert", records)
        created = []
        for record in records:
            row = dict(record)
            # Profiles reuse the auth user id; every other table gets a server id
            row["id"] = row.get("id") or self._new_id()
            row.setdefault("created_at", utc_now_iso())
            self._tables[table].append(row)
            created.append(copy.deepcopy(row))
        return created

    def update(self, table: str, record_id: str, partial: Record) -> List[Record]:
        self._check(table, "update", {"id": record_id, **partial})
        updated = []
        for row in self._tables[table]:
            if row.get("id") == record_id:
                row.update({k: v for k, v in partial.items() if k != "id"})
                updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, record_id: str) -> None:
        self._check(table, "delete", {"id": record_id})
        self._tables[table] = [r for r in self._tables[table] if r.get("id") != record_id]

    def upsert(self, table: str, records: List[Record], on_conflict: str) -> List[Record]:
        self._check(table, "upsert", records)
        result = []
        for record in records:
            existing = next(
                (r for r in self._tables[table] if r.get(on_conflict) == record.get(on_conflict)),
                None,
            )
            if existing is None:
                existing = dict(record)
                existing["id"] = self._new_id()
                existing.setdefault("created_at", utc_now_iso())
                self._tables[table].append(existing)
            else:
                existing.update({k: v for k, v in record.items() if k != "id"})
            result.append(copy.deepcopy(existing))
        return result

    def increment(
        self,
        table: str,
        key_field: str,
        key_value: Any,
        field: str,
        amount: float,
    ) -> Record:
        self._check(table, "increment", {key_field: key_value, field: amount})
        row = next((r for r in self._tables[table] if r.get(key_field) == key_value), None)
        if row is None:
            if key_field == "id":
                raise RemoteStoreError(f"No row {key_value} to increment", table=table, operation="increment")
            row = {"id": self._new_id(), key_field: key_value, "created_at": utc_now_iso()}
            self._tables[table].append(row)
        row[field] = (row.get(field) or 0) + amount
        return copy.deepcopy(row)
