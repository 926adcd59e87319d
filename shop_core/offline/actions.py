# =============================================================================
# shop_core/offline/actions.py
# Pending actions: one typed variant per remote mutation
# =============================================================================
"""
Pending actions are the unit of the offline queue.

Each variant is a frozen dataclass with a wire `kind`, a typed payload, and
`apply(store)` which performs the remote mutation. Variants that create
records carry the `local_id` given to the optimistic copy so that later
actions referring to it can be rewritten with the server id (`remap_ids`).

Queue wire format (one element of the cached `offline_queue` list):

    {"action": "add-sale", "data": {...payload...}, "attempts": 0, ...}
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from shop_core.data.models import Collection, Operator, Record, TransactionType, is_local_id
from shop_core.data.remote_store import RemoteStore
from shop_core.errors import QueueError, RemoteStoreError

IdMap = Mapping[str, str]


def _remap(record_id: Optional[str], mapping: IdMap) -> Optional[str]:
    if record_id is None:
        return None
    return mapping.get(record_id, record_id)


def _require_server_id(record_id: str, table: str, operation: str) -> None:
    # A local id here means the record's own add-* entry has not replayed yet
    if is_local_id(record_id):
        raise RemoteStoreError(
            f"Record {record_id} has not been created remotely yet",
            table=table,
            operation=operation,
        )


# =============================================================================
# PAYLOAD SHAPES
# =============================================================================

@dataclass(frozen=True)
class ProductFields:
    """Editable columns of a product row."""
    name: str
    price: float
    stock: int
    description: Optional[str] = None
    category_id: Optional[str] = None
    operator: Optional[Operator] = None

    def to_row(self) -> Record:
        return {
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "description": self.description,
            "category_id": self.category_id,
            "operator": self.operator.value if self.operator else None,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ProductFields:
        operator = row.get("operator")
        return cls(
            name=row["name"],
            price=row["price"],
            stock=row["stock"],
            description=row.get("description"),
            category_id=row.get("category_id"),
            operator=Operator.parse(operator) if operator else None,
        )


@dataclass(frozen=True)
class CategoryFields:
    """Editable columns of a category row."""
    name: str
    description: Optional[str] = None

    def to_row(self) -> Record:
        return {"name": self.name, "description": self.description}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> CategoryFields:
        return cls(name=row["name"], description=row.get("description"))


@dataclass(frozen=True)
class BalanceValues:
    """Absolute balances of one operator, as set by an administrator."""
    operator: Operator
    deposit_balance: float
    withdrawal_balance: float

    def to_row(self) -> Record:
        return {
            "operator": self.operator.value,
            "deposit_balance": self.deposit_balance,
            "withdrawal_balance": self.withdrawal_balance,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> BalanceValues:
        return cls(
            operator=Operator.parse(row["operator"]),
            deposit_balance=row["deposit_balance"],
            withdrawal_balance=row["withdrawal_balance"],
        )


# =============================================================================
# ACTION VARIANTS
# =============================================================================

@dataclass(frozen=True)
class PendingAction:
    """Base of the closed set of queueable mutations."""
    kind: ClassVar[str] = ""

    def to_payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> PendingAction:
        raise NotImplementedError

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        """
        Perform the remote mutation.

        Returns:
            Mapping of local ids to the server ids created by this action
        """
        raise NotImplementedError

    def remap_ids(self, mapping: IdMap) -> PendingAction:
        """Copy of this action with local ids replaced by server ids."""
        return self


@dataclass(frozen=True)
class AddSale(PendingAction):
    kind: ClassVar[str] = "add-sale"

    local_id: str
    product_id: str
    quantity: int
    total_amount: float
    employee_id: str
    sold_amount: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "local_id": self.local_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "total_amount": self.total_amount,
            "sold_amount": self.sold_amount,
            "employee_id": self.employee_id,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> AddSale:
        return cls(
            local_id=data["local_id"],
            product_id=data["product_id"],
            quantity=int(data["quantity"]),
            total_amount=data["total_amount"],
            employee_id=data["employee_id"],
            sold_amount=data.get("sold_amount"),
        )

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        _require_server_id(self.product_id, Collection.PRODUCTS.table, "update")
        rows = store.insert(Collection.SALES.table, [{
            "product_id": self.product_id,
            "quantity": self.quantity,
            "total_amount": self.total_amount,
            "sold_amount": self.sold_amount,
            "employee_id": self.employee_id,
        }])
        # Stock moves by delta so two tills selling offline both count
        store.increment(Collection.PRODUCTS.table, "id", self.product_id, "stock", -self.quantity)
        return {self.local_id: rows[0]["id"]} if rows else {}

    def remap_ids(self, mapping: IdMap) -> AddSale:
        return replace(self, product_id=_remap(self.product_id, mapping))


@dataclass(frozen=True)
class AddTransaction(PendingAction):
    kind: ClassVar[str] = "add-transaction"

    local_id: str
    type: TransactionType
    operator: Operator
    phone_number: str
    amount: float
    employee_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "local_id": self.local_id,
            "type": self.type.value,
            "operator": self.operator.value,
            "phone_number": self.phone_number,
            "amount": self.amount,
            "employee_id": self.employee_id,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> AddTransaction:
        return cls(
            local_id=data["local_id"],
            type=TransactionType(data["type"]),
            operator=Operator.parse(data["operator"]),
            phone_number=data["phone_number"],
            amount=data["amount"],
            employee_id=data["employee_id"],
        )

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        rows = store.insert(Collection.TRANSACTIONS.table, [{
            "type": self.type.value,
            "operator": self.operator.value,
            "phone_number": self.phone_number,
            "amount": self.amount,
            "employee_id": self.employee_id,
        }])
        store.increment(
            Collection.BALANCES.table,
            "operator",
            self.operator.value,
            self.type.balance_field,
            self.amount,
        )
        return {self.local_id: rows[0]["id"]} if rows else {}


@dataclass(frozen=True)
class UpdateBalance(PendingAction):
    kind: ClassVar[str] = "update-balance"

    balances: Tuple[BalanceValues, ...] = field(default_factory=tuple)

    def to_payload(self) -> Dict[str, Any]:
        return {"balances": [b.to_row() for b in self.balances]}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> UpdateBalance:
        return cls(balances=tuple(BalanceValues.from_row(row) for row in data["balances"]))

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        store.upsert(
            Collection.BALANCES.table,
            [b.to_row() for b in self.balances],
            on_conflict="operator",
        )
        return {}


@dataclass(frozen=True)
class AddProduct(PendingAction):
    kind: ClassVar[str] = "add-product"

    local_id: str
    fields: ProductFields

    def to_payload(self) -> Dict[str, Any]:
        return {"local_id": self.local_id, **self.fields.to_row()}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> AddProduct:
        return cls(local_id=data["local_id"], fields=ProductFields.from_row(data))

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        category_id = self.fields.category_id
        if category_id:
            _require_server_id(category_id, Collection.CATEGORIES.table, "insert")
        rows = store.insert(Collection.PRODUCTS.table, [self.fields.to_row()])
        return {self.local_id: rows[0]["id"]} if rows else {}

    def remap_ids(self, mapping: IdMap) -> AddProduct:
        fields = replace(self.fields, category_id=_remap(self.fields.category_id, mapping))
        return replace(self, fields=fields)


@dataclass(frozen=True)
class UpdateProduct(PendingAction):
    kind: ClassVar[str] = "update-product"

    product_id: str
    fields: ProductFields

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.product_id, **self.fields.to_row()}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> UpdateProduct:
        return cls(product_id=data["id"], fields=ProductFields.from_row(data))

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        _require_server_id(self.product_id, Collection.PRODUCTS.table, "update")
        store.update(Collection.PRODUCTS.table, self.product_id, self.fields.to_row())
        return {}

    def remap_ids(self, mapping: IdMap) -> UpdateProduct:
        fields = replace(self.fields, category_id=_remap(self.fields.category_id, mapping))
        return replace(self, product_id=_remap(self.product_id, mapping), fields=fields)


@dataclass(frozen=True)
class DeleteProduct(PendingAction):
    kind: ClassVar[str] = "delete-product"

    product_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.product_id}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> DeleteProduct:
        return cls(product_id=data["id"])

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        _require_server_id(self.product_id, Collection.PRODUCTS.table, "delete")
        store.delete(Collection.PRODUCTS.table, self.product_id)
        return {}

    def remap_ids(self, mapping: IdMap) -> DeleteProduct:
        return replace(self, product_id=_remap(self.product_id, mapping))


@dataclass(frozen=True)
class AddCategory(PendingAction):
    kind: ClassVar[str] = "add-category"

    local_id: str
    fields: CategoryFields

    def to_payload(self) -> Dict[str, Any]:
        return {"local_id": self.local_id, **self.fields.to_row()}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> AddCategory:
        return cls(local_id=data["local_id"], fields=CategoryFields.from_row(data))

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        rows = store.insert(Collection.CATEGORIES.table, [self.fields.to_row()])
        return {self.local_id: rows[0]["id"]} if rows else {}


@dataclass(frozen=True)
class UpdateCategory(PendingAction):
    kind: ClassVar[str] = "update-category"

    category_id: str
    fields: CategoryFields

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.category_id, **self.fields.to_row()}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> UpdateCategory:
        return cls(category_id=data["id"], fields=CategoryFields.from_row(data))

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        _require_server_id(self.category_id, Collection.CATEGORIES.table, "update")
        store.update(Collection.CATEGORIES.table, self.category_id, self.fields.to_row())
        return {}

    def remap_ids(self, mapping: IdMap) -> UpdateCategory:
        return replace(self, category_id=_remap(self.category_id, mapping))


@dataclass(frozen=True)
class DeleteCategory(PendingAction):
    kind: ClassVar[str] = "delete-category"

    category_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.category_id}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> DeleteCategory:
        return cls(category_id=data["id"])

    def apply(self, store: RemoteStore) -> Dict[str, str]:
        _require_server_id(self.category_id, Collection.CATEGORIES.table, "delete")
        store.delete(Collection.CATEGORIES.table, self.category_id)
        return {}

    def remap_ids(self, mapping: IdMap) -> DeleteCategory:
        return replace(self, category_id=_remap(self.category_id, mapping))


# =============================================================================
# WIRE FORMAT
# =============================================================================

ACTION_TYPES: Dict[str, Type[PendingAction]] = {
    cls.kind: cls
    for cls in (
        AddSale,
        AddTransaction,
        UpdateBalance,
        AddProduct,
        UpdateProduct,
        DeleteProduct,
        AddCategory,
        UpdateCategory,
        DeleteCategory,
    )
}


def action_to_dict(action: PendingAction) -> Dict[str, Any]:
    return {"action": action.kind, "data": action.to_payload()}


def action_from_dict(entry: Mapping[str, Any]) -> PendingAction:
    """
    Decode one queue element.

    Raises:
        QueueError: unknown kind or a payload missing required fields
    """
    kind = entry.get("action") if isinstance(entry, Mapping) else None
    action_cls = ACTION_TYPES.get(kind)
    if action_cls is None:
        raise QueueError(f"Unknown pending action kind: {kind!r}", kind=str(kind))

    try:
        return action_cls.from_payload(entry.get("data") or {})
    except (KeyError, TypeError, ValueError) as e:
        raise QueueError(f"Malformed payload for {kind}: {e}", kind=kind) from e
