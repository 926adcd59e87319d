# =============================================================================
# shop_core/offline/__init__.py
# Offline-First Architecture for the Boutique dashboards
# =============================================================================
"""
Offline-First Architecture Module

Dashboards keep working when the connection drops: every change is applied
locally first and replayed against Supabase once the connection returns.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    OFFLINE-FIRST ARCHITECTURE                    │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                      SyncEngine                           │  │
│   │   submit(command) -> optimistic apply -> remote / queue   │  │
│   └──────────────────────────────────────────────────────────┘  │
│         │                  │                     │              │
│         ▼                  ▼                     ▼              │
│ ┌──────────────┐  ┌──────────────────┐  ┌──────────────────┐   │
│ │ Connectivity │  │ PendingAction    │  │   RemoteStore    │   │
│ │   Monitor    │  │     Queue        │  │   (Supabase)     │   │
│ └──────────────┘  └──────────────────┘  └──────────────────┘   │
│                            │                                     │
│                            ▼                                     │
│                  ┌──────────────────┐                            │
│                  │ LocalCache       │                            │
│                  │ (SQLite blobs)   │                            │
│                  └──────────────────┘                            │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from shop_core.offline import SyncEngine, RecordSale

result = engine.submit(RecordSale(product_id, quantity=2, employee_id=user_id))
print(engine.sync_state)      # SyncState.SYNCED / OFFLINE_QUEUED / ...
print(engine.pending_count)   # Number of queued actions
"""

from shop_core.offline.connection_manager import (
    ConnectionState,
    ConnectionStatus,
    ConnectivityMonitor,
    check_environment,
)
from shop_core.offline.local_cache import LocalCache
from shop_core.offline.actions import (
    ACTION_TYPES,
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
    action_from_dict,
    action_to_dict,
)
from shop_core.offline.action_queue import DrainReport, PendingActionQueue, QueueEntry
from shop_core.offline.state import ShopState
from shop_core.offline.commands import (
    Command,
    CreateCategory,
    CreateProduct,
    EditCategory,
    EditProduct,
    RecordSale,
    RecordTransaction,
    RemoveCategory,
    RemoveProduct,
    SetBalances,
)
from shop_core.offline.sync_engine import SubmitOutcome, SyncEngine, SyncEvent, SyncState

__all__ = [
    # Connectivity
    "ConnectionState",
    "ConnectionStatus",
    "ConnectivityMonitor",
    "check_environment",
    # Cache
    "LocalCache",
    # Actions
    "ACTION_TYPES",
    "AddCategory",
    "AddProduct",
    "AddSale",
    "AddTransaction",
    "BalanceValues",
    "CategoryFields",
    "DeleteCategory",
    "DeleteProduct",
    "PendingAction",
    "ProductFields",
    "UpdateBalance",
    "UpdateCategory",
    "UpdateProduct",
    "action_from_dict",
    "action_to_dict",
    # Queue
    "DrainReport",
    "PendingActionQueue",
    "QueueEntry",
    # State and commands
    "ShopState",
    "Command",
    "CreateCategory",
    "CreateProduct",
    "EditCategory",
    "EditProduct",
    "RecordSale",
    "RecordTransaction",
    "RemoveCategory",
    "RemoveProduct",
    "SetBalances",
    # Engine
    "SubmitOutcome",
    "SyncEngine",
    "SyncEvent",
    "SyncState",
]
