# =============================================================================
# shop_core/data/models.py
# Domain vocabulary shared by the cache, the remote store and the engine
# =============================================================================

from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

Record = Dict[str, Any]

LOCAL_ID_PREFIX = "local-"

PHONE_PLAN_CATEGORY = "Forfaits téléphoniques"


class Operator(Enum):
    """Mobile-money operators; exactly one balance record exists per operator."""
    MTN = "MTN"
    MOOV = "Moov"
    CELTIS = "Celtis"

    @classmethod
    def parse(cls, value: Any) -> Operator:
        if isinstance(value, Operator):
            return value
        for operator in cls:
            if operator.value == value:
                return operator
        raise ValueError(f"Unknown operator: {value!r}")


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def balance_field(self) -> str:
        """Balance column moved by this kind of transaction."""
        if self is TransactionType.DEPOSIT:
            return "deposit_balance"
        return "withdrawal_balance"


class Role(Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Collection(Enum):
    """Record collections; the value is both the cache key and the remote table."""
    PRODUCTS = "products"
    CATEGORIES = "categories"
    SALES = "sales"
    BALANCES = "mobile_money_balances"
    TRANSACTIONS = "mobile_money_transactions"

    @property
    def table(self) -> str:
        return self.value


USERS_TABLE = "users"


def new_local_id() -> str:
    """Identifier for a record created before the server has seen it."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(record_id: Optional[str]) -> bool:
    return isinstance(record_id, str) and record_id.startswith(LOCAL_ID_PREFIX)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class DashboardScope:
    """
    Which slice of the store a mounted dashboard works on.

    Admins see every collection in full. Employees never load categories and
    only see their own sales and mobile-money transactions.
    """
    role: Role
    employee_id: Optional[str] = None

    @property
    def collections(self) -> Tuple[Collection, ...]:
        if self.role is Role.ADMIN:
            return tuple(Collection)
        return (
            Collection.PRODUCTS,
            Collection.SALES,
            Collection.BALANCES,
            Collection.TRANSACTIONS,
        )

    def filter_for(self, collection: Collection) -> Optional[Tuple[str, Any]]:
        """(field, value) filter for a scoped read, or None for a full read."""
        if self.role is Role.EMPLOYEE and collection in (Collection.SALES, Collection.TRANSACTIONS):
            return ("employee_id", self.employee_id)
        return None

    @classmethod
    def admin(cls) -> DashboardScope:
        return cls(Role.ADMIN)

    @classmethod
    def employee(cls, employee_id: str) -> DashboardScope:
        return cls(Role.EMPLOYEE, employee_id)
