# =============================================================================
# shop_core/data/__init__.py
# Records, collections and the remote store collaborator
# =============================================================================

from shop_core.data.models import (
    Collection,
    DashboardScope,
    Operator,
    Record,
    Role,
    TransactionType,
    is_local_id,
    new_local_id,
)
from shop_core.data.remote_store import MockRemoteStore, RemoteStore

__all__ = [
    "Collection",
    "DashboardScope",
    "Operator",
    "Record",
    "Role",
    "TransactionType",
    "is_local_id",
    "new_local_id",
    "MockRemoteStore",
    "RemoteStore",
]
