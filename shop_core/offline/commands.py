# =============================================================================
# shop_core/offline/commands.py
# User intents submitted to the sync engine
# =============================================================================
"""
Commands describe what a user asked for. The sync engine runs them as:

    command.validate(state)          # ValidationError, nothing touched
    action = command.apply(state)    # optimistic in-memory transition
    ... action.apply(remote) or queue.enqueue(action)
    engine.refresh(command.affected)

`apply` assumes `validate` passed on the same state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

from shop_core.data.models import (
    Collection,
    Operator,
    PHONE_PLAN_CATEGORY,
    TransactionType,
    new_local_id,
    utc_now_iso,
)
from shop_core.errors import ValidationError
from shop_core.offline.actions import (
    AddCategory,
    AddProduct,
    AddSale,
    AddTransaction,
    BalanceValues,
    CategoryFields,
    DeleteCategory,
    DeleteProduct,
    PendingAction,
    ProductFields,
    UpdateBalance,
    UpdateCategory,
    UpdateProduct,
)
from shop_core.offline.state import ShopState


class Command:
    """Base class for user intents."""

    affected: Tuple[Collection, ...] = ()

    def validate(self, state: ShopState) -> None:
        raise NotImplementedError

    def apply(self, state: ShopState) -> PendingAction:
        raise NotImplementedError


def _parse_operator(value, field_name: str = "operator") -> Operator:
    try:
        return Operator.parse(value)
    except ValueError:
        raise ValidationError(f"Invalid operator: {value!r}", field=field_name, value=value)


def _require_record(state: ShopState, collection: Collection, record_id: str, label: str) -> dict:
    record = state.find(collection, record_id)
    if record is None:
        raise ValidationError(f"{label} not found", field="id", value=record_id)
    return record


def _check_product_fields(fields: ProductFields, state: ShopState) -> None:
    if not fields.name or not fields.name.strip():
        raise ValidationError("Product name is required", field="name", value=fields.name)
    if fields.price is None or fields.price < 0:
        raise ValidationError("Price must be zero or more", field="price", value=fields.price)
    if fields.stock is None or int(fields.stock) != fields.stock or fields.stock < 0:
        raise ValidationError("Stock must be a whole number, zero or more", field="stock", value=fields.stock)
    if fields.category_id:
        category = state.find(Collection.CATEGORIES, fields.category_id)
        # Phone plans are counted per operator in the reports
        if category and category.get("name") == PHONE_PLAN_CATEGORY and fields.operator is None:
            raise ValidationError("Phone plans need an operator", field="operator")


def _check_category_fields(fields: CategoryFields) -> None:
    if not fields.name or not fields.name.strip():
        raise ValidationError("Category name is required", field="name", value=fields.name)


# =============================================================================
# SALES AND MOBILE MONEY
# =============================================================================

@dataclass(frozen=True)
class RecordSale(Command):
    """Sell `quantity` units of a product; `sold_amount` overrides the list price."""
    product_id: str
    quantity: int
    employee_id: str
    sold_amount: Optional[float] = None

    affected = (Collection.PRODUCTS, Collection.SALES)

    def validate(self, state: ShopState) -> None:
        product = _require_record(state, Collection.PRODUCTS, self.product_id, "Product")
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("Quantity must be positive", field="quantity", value=self.quantity)
        if self.quantity > (product.get("stock") or 0):
            raise ValidationError(
                f"Insufficient stock for {product.get('name')}: "
                f"{product.get('stock') or 0} left, {self.quantity} requested",
                field="quantity",
                value=self.quantity,
            )
        if self.sold_amount is not None and self.sold_amount < 0:
            raise ValidationError("Sold amount cannot be negative", field="sold_amount", value=self.sold_amount)

    def apply(self, state: ShopState) -> AddSale:
        product = state.find(Collection.PRODUCTS, self.product_id)
        total = self.sold_amount or product["price"] * self.quantity
        local_id = new_local_id()

        state.append(Collection.SALES, {
            "id": local_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "total_amount": total,
            "sold_amount": self.sold_amount,
            "employee_id": self.employee_id,
            "created_at": utc_now_iso(),
        })
        state.update_record(Collection.PRODUCTS, self.product_id, {"stock": product["stock"] - self.quantity})

        return AddSale(
            local_id=local_id,
            product_id=self.product_id,
            quantity=self.quantity,
            total_amount=total,
            employee_id=self.employee_id,
            sold_amount=self.sold_amount,
        )


@dataclass(frozen=True)
class RecordTransaction(Command):
    """Record a deposit or withdrawal and move the operator's balance."""
    type: TransactionType
    operator: Operator
    phone_number: str
    amount: float
    employee_id: str

    affected = (Collection.BALANCES, Collection.TRANSACTIONS)

    def validate(self, state: ShopState) -> None:
        if not isinstance(self.type, TransactionType):
            raise ValidationError(f"Invalid transaction type: {self.type!r}", field="type", value=self.type)
        _parse_operator(self.operator)
        if not self.phone_number or not str(self.phone_number).strip():
            raise ValidationError("Phone number is required", field="phone_number", value=self.phone_number)
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Amount must be positive", field="amount", value=self.amount)

    def apply(self, state: ShopState) -> AddTransaction:
        operator = Operator.parse(self.operator)
        local_id = new_local_id()
        balance_field = self.type.balance_field

        state.append(Collection.TRANSACTIONS, {
            "id": local_id,
            "type": self.type.value,
            "operator": operator.value,
            "phone_number": self.phone_number.strip(),
            "amount": self.amount,
            "employee_id": self.employee_id,
            "created_at": utc_now_iso(),
        })
        current = state.balance_for(operator) or {}
        state.upsert_balance(operator, {balance_field: (current.get(balance_field) or 0) + self.amount})

        return AddTransaction(
            local_id=local_id,
            type=self.type,
            operator=operator,
            phone_number=self.phone_number.strip(),
            amount=self.amount,
            employee_id=self.employee_id,
        )


@dataclass(frozen=True)
class SetBalances(Command):
    """Administrator sets absolute balances, one entry per operator."""
    balances: Tuple[BalanceValues, ...] = field(default_factory=tuple)

    affected = (Collection.BALANCES,)

    def validate(self, state: ShopState) -> None:
        if not self.balances:
            raise ValidationError("No balances given", field="balances")
        seen = set()
        for values in self.balances:
            operator = _parse_operator(values.operator)
            if operator in seen:
                raise ValidationError(f"Duplicate balance for {operator.value}", field="operator", value=operator.value)
            seen.add(operator)
            if values.deposit_balance < 0 or values.withdrawal_balance < 0:
                raise ValidationError(
                    f"Balances for {operator.value} cannot be negative",
                    field="balances",
                    value=(values.deposit_balance, values.withdrawal_balance),
                )

    def apply(self, state: ShopState) -> UpdateBalance:
        balances = tuple(
            BalanceValues(Operator.parse(v.operator), v.deposit_balance, v.withdrawal_balance)
            for v in self.balances
        )
        for values in balances:
            state.upsert_balance(values.operator, {
                "deposit_balance": values.deposit_balance,
                "withdrawal_balance": values.withdrawal_balance,
            })
        return UpdateBalance(balances=balances)


# =============================================================================
# CATALOGUE
# =============================================================================

@dataclass(frozen=True)
class CreateProduct(Command):
    fields: ProductFields

    affected = (Collection.PRODUCTS,)

    def validate(self, state: ShopState) -> None:
        _check_product_fields(self.fields, state)

    def apply(self, state: ShopState) -> AddProduct:
        local_id = new_local_id()
        state.append(Collection.PRODUCTS, {"id": local_id, "created_at": utc_now_iso(), **self.fields.to_row()})
        return AddProduct(local_id=local_id, fields=self.fields)


@dataclass(frozen=True)
class EditProduct(Command):
    product_id: str
    fields: ProductFields

    affected = (Collection.PRODUCTS,)

    def validate(self, state: ShopState) -> None:
        _require_record(state, Collection.PRODUCTS, self.product_id, "Product")
        _check_product_fields(self.fields, state)

    def apply(self, state: ShopState) -> UpdateProduct:
        state.update_record(Collection.PRODUCTS, self.product_id, self.fields.to_row())
        return UpdateProduct(product_id=self.product_id, fields=self.fields)


@dataclass(frozen=True)
class RemoveProduct(Command):
    product_id: str

    affected = (Collection.PRODUCTS,)

    def validate(self, state: ShopState) -> None:
        _require_record(state, Collection.PRODUCTS, self.product_id, "Product")

    def apply(self, state: ShopState) -> DeleteProduct:
        state.remove(Collection.PRODUCTS, self.product_id)
        return DeleteProduct(product_id=self.product_id)


@dataclass(frozen=True)
class CreateCategory(Command):
    fields: CategoryFields

    affected = (Collection.CATEGORIES,)

    def validate(self, state: ShopState) -> None:
        _check_category_fields(self.fields)

    def apply(self, state: ShopState) -> AddCategory:
        local_id = new_local_id()
        state.append(Collection.CATEGORIES, {"id": local_id, "created_at": utc_now_iso(), **self.fields.to_row()})
        return AddCategory(local_id=local_id, fields=self.fields)


@dataclass(frozen=True)
class EditCategory(Command):
    category_id: str
    fields: CategoryFields

    affected = (Collection.CATEGORIES,)

    def validate(self, state: ShopState) -> None:
        _require_record(state, Collection.CATEGORIES, self.category_id, "Category")
        _check_category_fields(self.fields)

    def apply(self, state: ShopState) -> UpdateCategory:
        state.update_record(Collection.CATEGORIES, self.category_id, self.fields.to_row())
        return UpdateCategory(category_id=self.category_id, fields=self.fields)


@dataclass(frozen=True)
class RemoveCategory(Command):
    category_id: str

    affected = (Collection.CATEGORIES,)

    def validate(self, state: ShopState) -> None:
        _require_record(state, Collection.CATEGORIES, self.category_id, "Category")

    def apply(self, state: ShopState) -> DeleteCategory:
        state.remove(Collection.CATEGORIES, self.category_id)
        return DeleteCategory(category_id=self.category_id)
