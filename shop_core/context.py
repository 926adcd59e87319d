# =============================================================================
# shop_core/context.py
# Runtime context: every collaborator built once and passed explicitly
# =============================================================================
"""
AppContext replaces module-level singletons. `build_context` wires the cache,
connectivity monitor, remote store, auth provider, session and queue; the
sync engine is created per mounted dashboard because its scope depends on the
signed-in user.

Usage:
    ctx = build_context(load_config())
    user = ctx.session.sign_in(email, password)
    engine = ctx.mount_dashboard(user)
    ...
    ctx.close()
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shop_core.auth import AuthProvider, MockAuthProvider, SessionManager, SessionUser, SupabaseAuthProvider
from shop_core.config import ShopConfig
from shop_core.data.models import USERS_TABLE, Collection, Operator, Record, Role
from shop_core.data.remote_store import MockRemoteStore, RemoteStore
from shop_core.logging import get_logger
from shop_core.offline import (
    ConnectivityMonitor,
    LocalCache,
    PendingActionQueue,
    ShopState,
    SyncEngine,
)
from shop_core.services.report_service import ReportService

logger = get_logger(__name__)

DEMO_PASSWORD = "admin1234"
DEMO_ADMIN_ID = "demo-admin"
DEMO_EMPLOYEE_ID = "demo-employee"


def demo_tables() -> Dict[str, List[Record]]:
    """Starting data of the mock backend: one row per operator, a default category and product."""
    return {
        Collection.BALANCES.table: [
            {"operator": op.value, "deposit_balance": 0, "withdrawal_balance": 0} for op in Operator
        ],
        Collection.CATEGORIES.table: [
            {"id": "cat-general", "name": "Général", "description": "Catégorie par défaut pour les produits"},
        ],
        Collection.PRODUCTS.table: [
            {
                "name": "Produit par défaut",
                "price": 1000,
                "stock": 100,
                "description": "Produit de test",
                "category_id": "cat-general",
                "operator": None,
            },
        ],
        USERS_TABLE: [
            {"id": DEMO_ADMIN_ID, "email": "admin@boutique.local", "username": "admin", "role": Role.ADMIN.value},
            {"id": DEMO_EMPLOYEE_ID, "email": "vendeur@boutique.local", "username": "vendeur", "role": Role.EMPLOYEE.value},
        ],
    }


def demo_auth() -> MockAuthProvider:
    auth = MockAuthProvider()
    auth.add_account("admin@boutique.local", DEMO_PASSWORD, user_id=DEMO_ADMIN_ID)
    auth.add_account("vendeur@boutique.local", DEMO_PASSWORD, user_id=DEMO_EMPLOYEE_ID)
    return auth


@dataclass
class AppContext:
    config: ShopConfig
    cache: LocalCache
    monitor: ConnectivityMonitor
    remote: RemoteStore
    auth: AuthProvider
    session: SessionManager
    queue: PendingActionQueue
    engine: Optional[SyncEngine] = None
    client: Optional[Any] = field(default=None, repr=False)

    def mount_dashboard(self, user: SessionUser) -> SyncEngine:
        """Create and mount the sync engine for the user's scope."""
        self.unmount_dashboard()
        self.engine = SyncEngine(
            state=ShopState(),
            cache=self.cache,
            queue=self.queue,
            remote=self.remote,
            monitor=self.monitor,
            scope=user.scope,
        )
        self.engine.mount()
        return self.engine

    def unmount_dashboard(self) -> None:
        if self.engine is not None:
            self.engine.detach()
            self.engine = None

    def reports(self) -> ReportService:
        if self.engine is None:
            raise RuntimeError("No dashboard mounted")
        return ReportService(self.engine.state, low_stock_threshold=self.config.low_stock_threshold)

    def close(self) -> None:
        """Stop listeners and release the cache and HTTP session."""
        self.unmount_dashboard()
        self.session.detach()
        if self.client is not None:
            from shop_core.data.supabase_client import close_supabase_client
            close_supabase_client(self.client)
        self.cache.close()
        logger.info("Runtime context closed")


def build_context(
    config: ShopConfig,
    remote: Optional[RemoteStore] = None,
    auth: Optional[AuthProvider] = None,
    monitor: Optional[ConnectivityMonitor] = None,
) -> AppContext:
    """
    Construct every collaborator once.

    Without an explicit remote store, the mock backend is used when
    `use_mock_backend` is set and Supabase otherwise.
    """
    client = None
    if remote is None and config.use_mock_backend:
        remote = MockRemoteStore(demo_tables())
        auth = auth or demo_auth()
    elif remote is None:
        from shop_core.data.supabase_client import SupabaseRemoteStore, create_supabase_client
        client = create_supabase_client(config)
        remote = SupabaseRemoteStore(client, increment_function=config.increment_function)
        auth = auth or SupabaseAuthProvider(client)
    auth = auth or MockAuthProvider()

    if monitor is None:
        if config.use_mock_backend:
            monitor = ConnectivityMonitor(initial_online=True)
        else:
            monitor = ConnectivityMonitor.from_environment(config.reachability_hosts, config.reachability_timeout)

    cache = LocalCache(config.cache_path)
    queue = PendingActionQueue(cache, max_attempts=config.max_replay_attempts)
    session = SessionManager(auth, remote, cache, monitor)
    session.attach()

    logger.info(
        f"Runtime context ready ({'mock' if config.use_mock_backend else 'supabase'} backend, "
        f"cache at {config.cache_path})"
    )
    return AppContext(
        config=config,
        cache=cache,
        monitor=monitor,
        remote=remote,
        auth=auth,
        session=session,
        queue=queue,
        client=client,
    )
