# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import pytest
from datetime import datetime, timezone
from typing import Dict, List

from shop_core.data.models import USERS_TABLE, Collection, DashboardScope
from shop_core.data.remote_store import MockRemoteStore
from shop_core.offline import (
    ConnectivityMonitor,
    LocalCache,
    PendingActionQueue,
    ShopState,
    SyncEngine,
)

ADMIN_ID = "admin-1"
EMPLOYEE_ID = "employee-1"
OTHER_EMPLOYEE_ID = "employee-2"


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def sample_tables() -> Dict[str, List[dict]]:
    """Remote rows: two categories, three products, balances for every operator"""
    now = datetime.now(timezone.utc).isoformat()
    return {
        Collection.CATEGORIES.table: [
            {"id": "cat-general", "name": "Général", "description": None, "created_at": now},
            {"id": "cat-plans", "name": "Forfaits téléphoniques", "description": None, "created_at": now},
        ],
        Collection.PRODUCTS.table: [
            {"id": "p-coca", "name": "Coca", "price": 500, "stock": 10, "description": None,
             "category_id": "cat-general", "operator": None, "created_at": now},
            {"id": "p-savon", "name": "Savon", "price": 300, "stock": 2, "description": None,
             "category_id": "cat-general", "operator": None, "created_at": now},
            {"id": "p-mtn-1go", "name": "MTN 1Go", "price": 1000, "stock": 50, "description": None,
             "category_id": "cat-plans", "operator": "MTN", "created_at": now},
        ],
        Collection.BALANCES.table: [
            {"id": "b-mtn", "operator": "MTN", "deposit_balance": 1000, "withdrawal_balance": 0, "created_at": now},
            {"id": "b-moov", "operator": "Moov", "deposit_balance": 0, "withdrawal_balance": 0, "created_at": now},
            {"id": "b-celtis", "operator": "Celtis", "deposit_balance": 0, "withdrawal_balance": 0, "created_at": now},
        ],
        Collection.SALES.table: [
            {"id": "s-old", "product_id": "p-coca", "quantity": 1, "total_amount": 500, "sold_amount": None,
             "employee_id": OTHER_EMPLOYEE_ID, "created_at": "2024-01-01T10:00:00+00:00"},
        ],
        Collection.TRANSACTIONS.table: [],
        USERS_TABLE: [
            {"id": ADMIN_ID, "email": "admin@boutique.bj", "username": "patronne", "role": "admin"},
            {"id": EMPLOYEE_ID, "email": "awa@boutique.bj", "username": "awa", "role": "employee"},
            {"id": "intruder", "email": "x@boutique.bj", "username": "x", "role": "guest"},
        ],
    }


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def remote(sample_tables):
    """Mock remote store seeded with the sample tables"""
    return MockRemoteStore(sample_tables)


@pytest.fixture
def cache():
    """In-memory local cache"""
    cache = LocalCache()
    yield cache
    cache.close()


@pytest.fixture
def monitor():
    """Connectivity monitor starting online"""
    return ConnectivityMonitor(initial_online=True)


@pytest.fixture
def queue(cache):
    return PendingActionQueue(cache, max_attempts=5)


@pytest.fixture
def make_engine(cache, queue, remote, monitor):
    """Factory building a mounted engine for a scope (admin by default)"""

    def factory(scope: DashboardScope = None, mount: bool = True) -> SyncEngine:
        engine = SyncEngine(
            state=ShopState(),
            cache=cache,
            queue=queue,
            remote=remote,
            monitor=monitor,
            scope=scope or DashboardScope.admin(),
        )
        if mount:
            engine.mount()
        return engine

    return factory


@pytest.fixture
def engine(make_engine):
    """Mounted admin engine, online"""
    return make_engine()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def find_row(rows: List[dict], **criteria) -> dict:
    """Return the single row matching every criterion"""
    matches = [r for r in rows if all(r.get(k) == v for k, v in criteria.items())]
    assert len(matches) == 1, f"expected one row for {criteria}, got {len(matches)}"
    return matches[0]
