# =============================================================================
# shop_core/ui/status_panel.py
# Connectivity and synchronization status for the dashboards
# =============================================================================

from __future__ import annotations
from typing import Optional

import streamlit as st

from shop_core.errors.handlers import ErrorContext, show_sync_message
from shop_core.offline import ConnectivityMonitor, SyncEngine, SyncState

STATE_LABELS = {
    SyncState.LOADING: ("⏳", "Chargement"),
    SyncState.SYNCED: ("✓", "Synchronisé"),
    SyncState.OFFLINE_QUEUED: ("📴", "Hors ligne, en attente"),
    SyncState.SYNCING: ("🔄", "Synchronisation"),
    SyncState.ERROR: ("⚠️", "Erreur de synchronisation"),
}


def render_connection_badge(monitor: ConnectivityMonitor) -> None:
    """Small online/offline badge for the sidebar."""
    if monitor.is_online:
        st.success("🟢 En ligne")
    else:
        st.warning("🔴 Hors ligne")


def render_status_panel(engine: Optional[SyncEngine], monitor: ConnectivityMonitor) -> None:
    """
    Render the sync status block: state, pending and abandoned actions, last
    error, plus controls to simulate connectivity and force a sync.

    Args:
        engine: Mounted sync engine, None before sign-in
        monitor: Connectivity monitor shared by the context
    """
    render_connection_badge(monitor)

    if engine is None:
        return

    status = engine.get_status_display()
    icon, label = STATE_LABELS[engine.sync_state]
    st.markdown(f"**{icon} {label}**")

    col1, col2 = st.columns(2)
    col1.metric("En attente", status["pending_count"])
    col2.metric("Abandonnées", status["failed_count"])

    if status["last_success"]:
        st.caption(f"Dernière synchronisation : {status['last_success'][:19].replace('T', ' ')}")

    show_sync_message(status["last_error"])

    toggle_label = "Passer hors ligne" if monitor.is_online else "Repasser en ligne"
    if st.button(toggle_label, key="toggle_connectivity", use_container_width=True):
        with ErrorContext("Changing connectivity"):
            monitor.set_online(not monitor.is_online)
        st.rerun()

    if st.button("Synchroniser maintenant", key="sync_now", disabled=monitor.is_offline, use_container_width=True):
        with ErrorContext("Synchronizing offline actions"):
            engine.sync_now()
        st.rerun()

    if status["failed_count"]:
        with st.expander("Actions abandonnées", expanded=False):
            st.json(engine.queue.failed)
            if st.button("Effacer", key="clear_failed"):
                engine.queue.clear_failed()
                st.rerun()
