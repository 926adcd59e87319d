# =============================================================================
# shop_core/services/report_service.py
# Dashboard statistics computed from the in-memory collections
# =============================================================================
"""
ReportService - the figures shown on the admin and employee dashboards.

All statistics are computed with pandas from the engine's ShopState, so they
reflect optimistic (not yet synchronized) changes too.
"""

from __future__ import annotations
from datetime import date, datetime
from typing import List, Optional

import pandas as pd

from shop_core.data.models import PHONE_PLAN_CATEGORY, Collection, Operator
from shop_core.offline.state import ShopState
from shop_core.services.base_service import BaseService, ServiceResult

SALE_COLUMNS = ["id", "product_id", "quantity", "total_amount", "sold_amount", "employee_id", "created_at"]
PRODUCT_COLUMNS = ["id", "name", "price", "stock", "description", "category_id", "operator"]
TRANSACTION_COLUMNS = ["id", "type", "operator", "phone_number", "amount", "employee_id", "created_at"]
BALANCE_COLUMNS = ["id", "operator", "deposit_balance", "withdrawal_balance"]
CATEGORY_COLUMNS = ["id", "name", "description"]

OPERATORS = [operator.value for operator in Operator]


class ReportService(BaseService):
    """
    Usage:
        reports = ReportService(engine.state, low_stock_threshold=config.low_stock_threshold)
        result = reports.today_sales()
        if result:
            st.metric("Ventes du jour", result.data["count"])
    """

    def __init__(self, state: ShopState, low_stock_threshold: int = 2):
        super().__init__()
        self.state = state
        self.low_stock_threshold = low_stock_threshold

    def _frame(self, collection: Collection, columns: List[str]) -> pd.DataFrame:
        df = pd.DataFrame(self.state.records(collection))
        for column in columns:
            if column not in df.columns:
                df[column] = None
        return df

    # =========================================================================
    # SALES
    # =========================================================================

    def today_sales(self, day: Optional[date] = None) -> ServiceResult:
        """Sales created on `day` (local time, default today) and their revenue."""
        day = day or date.today()

        def compute():
            sales = self._frame(Collection.SALES, SALE_COLUMNS)
            if sales.empty:
                return {"sales": sales, "count": 0, "revenue": 0.0}

            local_tz = datetime.now().astimezone().tzinfo
            # Local rows carry microseconds, server rows may not
            created = pd.to_datetime(
                sales["created_at"], utc=True, errors="coerce", format="ISO8601"
            ).dt.tz_convert(local_tz)
            todays = sales[created.dt.date == day].reset_index(drop=True)
            revenue = float(pd.to_numeric(todays["total_amount"], errors="coerce").fillna(0).sum())
            return {"sales": todays, "count": len(todays), "revenue": revenue}

        return self.safe_execute("Computing today's sales", compute)

    def low_stock_products(self, threshold: Optional[int] = None) -> ServiceResult:
        limit = self.low_stock_threshold if threshold is None else threshold

        def compute():
            products = self._frame(Collection.PRODUCTS, PRODUCT_COLUMNS)
            stock = pd.to_numeric(products["stock"], errors="coerce").fillna(0)
            return products[stock <= limit].sort_values("stock").reset_index(drop=True)

        return self.safe_execute("Listing low stock products", compute)

    def employee_sales_stats(self) -> ServiceResult:
        """Quantity and amount sold per employee and product."""

        def compute():
            sales = self._frame(Collection.SALES, SALE_COLUMNS)
            products = self._frame(Collection.PRODUCTS, PRODUCT_COLUMNS)
            columns = ["employee_id", "product_id", "product_name", "operator", "quantity", "total_amount"]
            if sales.empty or products.empty:
                return pd.DataFrame(columns=columns)

            merged = sales.merge(
                products[["id", "name", "operator"]].rename(columns={"id": "product_id", "name": "product_name"}),
                on="product_id",
                how="inner",
            )
            if merged.empty:
                return pd.DataFrame(columns=columns)

            stats = (
                merged.groupby(["employee_id", "product_id", "product_name"], dropna=False)
                .agg(
                    operator=("operator", "first"),
                    quantity=("quantity", "sum"),
                    total_amount=("total_amount", "sum"),
                )
                .reset_index()
            )
            return stats[columns]

        return self.safe_execute("Computing employee sales", compute)

    def phone_plan_stats(self) -> ServiceResult:
        """Phone-plan sales per operator; empty when the category does not exist."""

        def compute():
            categories = self._frame(Collection.CATEGORIES, CATEGORY_COLUMNS)
            plan_ids = categories.loc[categories["name"] == PHONE_PLAN_CATEGORY, "id"]
            if plan_ids.empty:
                return pd.DataFrame(columns=["total_sales", "total_amount"])

            stats = pd.DataFrame(0.0, index=pd.Index(OPERATORS, name="operator"), columns=["total_sales", "total_amount"])
            products = self._frame(Collection.PRODUCTS, PRODUCT_COLUMNS)
            plans = products[products["category_id"] == plan_ids.iloc[0]]
            sales = self._frame(Collection.SALES, SALE_COLUMNS)
            merged = sales.merge(
                plans[["id", "operator"]].rename(columns={"id": "product_id"}),
                on="product_id",
                how="inner",
            )
            merged = merged[merged["operator"].isin(OPERATORS)]
            if not merged.empty:
                grouped = merged.groupby("operator").agg(
                    total_sales=("quantity", "sum"),
                    total_amount=("total_amount", "sum"),
                )
                stats.update(grouped)
            return stats

        return self.safe_execute("Computing phone plan sales", compute)

    # =========================================================================
    # MOBILE MONEY
    # =========================================================================

    def mobile_money_stats(self) -> ServiceResult:
        """Transaction totals and current balances, one row per operator."""

        def compute():
            stats = pd.DataFrame(
                0.0,
                index=pd.Index(OPERATORS, name="operator"),
                columns=["deposits", "withdrawals", "deposit_balance", "withdrawal_balance"],
            )

            transactions = self._frame(Collection.TRANSACTIONS, TRANSACTION_COLUMNS)
            transactions = transactions[transactions["operator"].isin(OPERATORS)]
            if not transactions.empty:
                totals = transactions.pivot_table(
                    index="operator",
                    columns="type",
                    values="amount",
                    aggfunc="sum",
                    fill_value=0,
                )
                if "deposit" in totals.columns:
                    stats["deposits"] = totals["deposit"].reindex(OPERATORS, fill_value=0).astype(float)
                if "withdrawal" in totals.columns:
                    stats["withdrawals"] = totals["withdrawal"].reindex(OPERATORS, fill_value=0).astype(float)

            balances = self._frame(Collection.BALANCES, BALANCE_COLUMNS)
            balances = balances[balances["operator"].isin(OPERATORS)]
            if not balances.empty:
                latest = balances.drop_duplicates("operator", keep="last").set_index("operator")
                stats.update(latest[["deposit_balance", "withdrawal_balance"]].astype(float))
            return stats

        return self.safe_execute("Computing mobile money statistics", compute)
