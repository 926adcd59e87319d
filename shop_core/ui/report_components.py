# =============================================================================
# shop_core/ui/report_components.py
# Dashboard report blocks (metrics, tables, charts)
# =============================================================================

from __future__ import annotations
from typing import Optional

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from shop_core.errors.handlers import handle_error
from shop_core.services.base_service import ServiceResult
from shop_core.services.report_service import ReportService

COLORS = {
    "deposit": "#3b82f6",
    "withdrawal": "#f97316",
    "text_dim": "#94a3b8",
}


def _data(result: ServiceResult) -> Optional[object]:
    if not result:
        handle_error(RuntimeError(result.error), log_error=False, user_message=result.error)
        return None
    return result.data


def render_sales_summary(reports: ReportService) -> None:
    today = _data(reports.today_sales())
    low_stock = _data(reports.low_stock_products())

    col1, col2, col3 = st.columns(3)
    if today is not None:
        col1.metric("Ventes du jour", today["count"])
        col2.metric("Recette du jour", f"{today['revenue']:,.0f} FCFA")
    if low_stock is not None:
        col3.metric("Stock faible", len(low_stock))
        if not low_stock.empty:
            st.dataframe(low_stock[["name", "stock", "price"]], hide_index=True, use_container_width=True)


def render_mobile_money_chart(stats: pd.DataFrame, height: int = 280, chart_key: str = "mobile_money") -> None:
    """
    Grouped bar chart of deposit and withdrawal balances per operator.

    Args:
        stats: Frame indexed by operator, as returned by ReportService.mobile_money_stats
    """
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Solde dépôt",
        x=stats.index,
        y=stats["deposit_balance"],
        marker_color=COLORS["deposit"],
    ))
    fig.add_trace(go.Bar(
        name="Solde retrait",
        x=stats.index,
        y=stats["withdrawal_balance"],
        marker_color=COLORS["withdrawal"],
    ))
    fig.update_layout(
        barmode="group",
        height=height,
        margin=dict(l=40, r=20, t=20, b=40),
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(color=COLORS["text_dim"], size=11),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )
    st.plotly_chart(fig, use_container_width=True, key=chart_key)


def render_mobile_money(reports: ReportService) -> None:
    stats = _data(reports.mobile_money_stats())
    if stats is None:
        return
    render_mobile_money_chart(stats)
    st.dataframe(stats, use_container_width=True)


def render_admin_reports(reports: ReportService) -> None:
    render_sales_summary(reports)

    st.subheader("Mobile Money")
    render_mobile_money(reports)

    plans = _data(reports.phone_plan_stats())
    if plans is not None and not plans.empty:
        st.subheader("Forfaits téléphoniques")
        st.dataframe(plans, use_container_width=True)

    employees = _data(reports.employee_sales_stats())
    if employees is not None and not employees.empty:
        st.subheader("Ventes par employé")
        st.dataframe(employees, hide_index=True, use_container_width=True)
