"""
Boutique dashboards - Streamlit entry point.

Run with:
    streamlit run app.py

Set [shop] use_mock_backend = true in .streamlit/secrets.toml (or
SHOP_USE_MOCK_BACKEND=1) to try the dashboards without a Supabase project.
"""

from __future__ import annotations
import streamlit as st

from shop_core.context import AppContext, build_context
from shop_core.config import load_config
from shop_core.data.models import Collection, Operator, Role, TransactionType
from shop_core.errors import ConfigurationError, ShopError
from shop_core.errors.handlers import handle_error, safe_execute
from shop_core.logging import setup_logging
from shop_core.offline import (
    BalanceValues,
    CategoryFields,
    CreateCategory,
    CreateProduct,
    ProductFields,
    RecordSale,
    RecordTransaction,
    RemoveProduct,
    SetBalances,
    SubmitOutcome,
    SyncEngine,
)
from shop_core.ui.report_components import render_admin_reports, render_mobile_money, render_sales_summary
from shop_core.ui.status_panel import render_status_panel

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Boutique - Gestion",
    page_icon="🛒",
    layout="wide",
)


def get_context() -> AppContext:
    """Build the runtime context once per browser session."""
    if "ctx" not in st.session_state:
        if not st.session_state.get("logging_ready"):
            setup_logging()
            st.session_state.logging_ready = True
        try:
            ctx = build_context(load_config())
        except ConfigurationError as e:
            handle_error(e)
            st.stop()
        ctx.session.restore()
        st.session_state.ctx = ctx
    return st.session_state.ctx


def submit(engine: SyncEngine, command, success_message: str) -> None:
    result = engine.submit(command)
    if result.data is SubmitOutcome.APPLIED:
        st.success(success_message)
    elif result.data is SubmitOutcome.QUEUED_OFFLINE:
        st.info(result.error)
    elif result.data is SubmitOutcome.QUEUED_AFTER_ERROR:
        st.warning(result.error)
    else:
        st.error(result.error)


# ============================================================================
# AUTHENTICATION
# ============================================================================

def render_login(ctx: AppContext) -> None:
    st.title("🛒 Boutique")
    login_tab, register_tab = st.tabs(["Connexion", "Créer un compte employé"])

    with login_tab:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Mot de passe", type="password")
            if st.form_submit_button("Se connecter"):
                if safe_execute(ctx.session.sign_in, email, password, error_message="Identifiants invalides"):
                    st.rerun()

    with register_tab:
        with st.form("register"):
            email = st.text_input("Email", key="register_email")
            username = st.text_input("Nom d'utilisateur")
            password = st.text_input("Mot de passe", type="password", key="register_password")
            if st.form_submit_button("Créer le compte"):
                if safe_execute(ctx.session.register_employee, email, username, password):
                    st.rerun()


def render_username_form(ctx: AppContext) -> None:
    st.subheader("Choisissez votre nom d'utilisateur")
    with st.form("username"):
        username = st.text_input("Nom d'utilisateur (3 à 20 caractères)")
        if st.form_submit_button("Enregistrer"):
            if safe_execute(ctx.session.choose_username, username):
                st.rerun()


# ============================================================================
# DASHBOARDS
# ============================================================================

def render_sale_form(engine: SyncEngine, employee_id: str) -> None:
    products = [p for p in engine.state.records(Collection.PRODUCTS) if (p.get("stock") or 0) > 0]
    with st.form("sale", clear_on_submit=True):
        st.markdown("**Nouvelle vente**")
        product = st.selectbox(
            "Produit",
            products,
            format_func=lambda p: f"{p['name']} ({p['stock']} en stock)",
        )
        quantity = st.number_input("Quantité", min_value=1, step=1, value=1)
        sold_amount = st.number_input("Montant vendu (optionnel)", min_value=0.0, step=100.0, value=0.0)
        if st.form_submit_button("Enregistrer la vente") and product:
            submit(
                engine,
                RecordSale(product["id"], int(quantity), employee_id, sold_amount=sold_amount or None),
                "Vente enregistrée",
            )


def render_transaction_form(engine: SyncEngine, employee_id: str) -> None:
    with st.form("transaction", clear_on_submit=True):
        st.markdown("**Transaction Mobile Money**")
        kind = st.radio("Type", list(TransactionType), format_func=lambda t: "Dépôt" if t is TransactionType.DEPOSIT else "Retrait", horizontal=True)
        operator = st.selectbox("Opérateur", list(Operator), format_func=lambda o: o.value)
        phone = st.text_input("Numéro de téléphone")
        amount = st.number_input("Montant", min_value=0.0, step=500.0)
        if st.form_submit_button("Enregistrer la transaction"):
            submit(engine, RecordTransaction(kind, operator, phone, amount, employee_id), "Transaction enregistrée")


def render_catalogue(engine: SyncEngine) -> None:
    categories = engine.state.records(Collection.CATEGORIES)

    with st.expander("Nouvelle catégorie"):
        with st.form("category", clear_on_submit=True):
            name = st.text_input("Nom")
            description = st.text_input("Description")
            if st.form_submit_button("Ajouter"):
                submit(engine, CreateCategory(CategoryFields(name, description or None)), "Catégorie ajoutée")

    with st.expander("Nouveau produit"):
        with st.form("product", clear_on_submit=True):
            name = st.text_input("Nom du produit")
            price = st.number_input("Prix", min_value=0.0, step=100.0)
            stock = st.number_input("Stock", min_value=0, step=1)
            category = st.selectbox("Catégorie", [None] + categories, format_func=lambda c: c["name"] if c else "Aucune")
            operator = st.selectbox("Opérateur (forfaits)", [None] + list(Operator), format_func=lambda o: o.value if o else "Aucun")
            if st.form_submit_button("Ajouter"):
                fields = ProductFields(
                    name=name,
                    price=price,
                    stock=int(stock),
                    category_id=category["id"] if category else None,
                    operator=operator,
                )
                submit(engine, CreateProduct(fields), "Produit ajouté")

    for product in engine.state.records(Collection.PRODUCTS):
        col1, col2, col3 = st.columns([4, 1, 1])
        col1.write(product["name"])
        col2.write(f"{product.get('stock', 0)} en stock")
        if col3.button("Supprimer", key=f"delete_{product['id']}"):
            submit(engine, RemoveProduct(product["id"]), "Produit supprimé")
            st.rerun()


def render_balances_form(engine: SyncEngine) -> None:
    with st.form("balances"):
        st.markdown("**Soldes Mobile Money**")
        values = []
        for operator in Operator:
            current = engine.state.balance_for(operator) or {}
            col1, col2 = st.columns(2)
            deposit = col1.number_input(f"{operator.value} dépôt", min_value=0.0, value=float(current.get("deposit_balance") or 0))
            withdrawal = col2.number_input(f"{operator.value} retrait", min_value=0.0, value=float(current.get("withdrawal_balance") or 0))
            values.append(BalanceValues(operator, deposit, withdrawal))
        if st.form_submit_button("Mettre à jour les soldes"):
            submit(engine, SetBalances(tuple(values)), "Soldes mis à jour")


def render_admin_dashboard(ctx: AppContext, engine: SyncEngine) -> None:
    st.title("Tableau de bord administrateur")
    reports_tab, catalogue_tab, balances_tab = st.tabs(["Rapports", "Produits", "Mobile Money"])
    with reports_tab:
        render_admin_reports(ctx.reports())
    with catalogue_tab:
        render_catalogue(engine)
    with balances_tab:
        render_balances_form(engine)


def render_employee_dashboard(ctx: AppContext, engine: SyncEngine, employee_id: str) -> None:
    st.title("Espace employé")
    render_sales_summary(ctx.reports())
    col1, col2 = st.columns(2)
    with col1:
        render_sale_form(engine, employee_id)
    with col2:
        render_transaction_form(engine, employee_id)
    st.subheader("Mobile Money")
    render_mobile_money(ctx.reports())


# ============================================================================
# MAIN
# ============================================================================

def main() -> None:
    ctx = get_context()
    user = ctx.session.user

    with st.sidebar:
        render_status_panel(ctx.engine, ctx.monitor)
        if user is not None and st.button("Se déconnecter", use_container_width=True):
            ctx.unmount_dashboard()
            ctx.session.sign_out()
            st.rerun()

    if user is None:
        ctx.unmount_dashboard()
        render_login(ctx)
        return
    if user.needs_username:
        render_username_form(ctx)
        return

    if ctx.engine is None or ctx.engine.scope != user.scope:
        try:
            ctx.mount_dashboard(user)
        except ShopError as e:
            handle_error(e)
            return
        st.rerun()

    if user.role is Role.ADMIN:
        render_admin_dashboard(ctx, ctx.engine)
    else:
        render_employee_dashboard(ctx, ctx.engine, user.id)


main()
