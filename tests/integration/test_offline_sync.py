# =============================================================================
# tests/integration/test_offline_sync.py
# Integration Tests: offline work, reconnection and replay end to end
# =============================================================================
"""
These tests drive a real SyncEngine over the mock remote store and an
SQLite cache, switching connectivity the way the status panel does.
"""

import pytest

from shop_core.data.models import Collection, DashboardScope, Operator, TransactionType
from shop_core.offline import (
    BalanceValues,
    ConnectivityMonitor,
    LocalCache,
    PendingActionQueue,
    RecordSale,
    RecordTransaction,
    SetBalances,
    ShopState,
    SubmitOutcome,
    SyncEngine,
    SyncState,
)
from shop_core.data.remote_store import MockRemoteStore

from conftest import EMPLOYEE_ID, find_row


def _deposit(amount, operator=Operator.MTN):
    return RecordTransaction(TransactionType.DEPOSIT, operator, "97000000", amount, EMPLOYEE_ID)


# =============================================================================
# ORDERING AND CONSISTENCY
# =============================================================================

class TestOfflineReplay:

    def test_actions_replay_in_submission_order(self, engine, monitor, remote):
        monitor.set_online(False)
        engine.submit(RecordSale("p-coca", 1, EMPLOYEE_ID))
        engine.submit(_deposit(200))
        engine.submit(RecordSale("p-savon", 1, EMPLOYEE_ID))
        writes_before = len(remote.calls)

        monitor.set_online(True)

        writes = [(table, op) for table, op, _ in remote.calls[writes_before:] if op != "select"]
        assert writes == [
            ("sales", "insert"),
            ("products", "increment"),
            ("mobile_money_transactions", "insert"),
            ("mobile_money_balances", "increment"),
            ("sales", "insert"),
            ("products", "increment"),
        ]

    def test_optimistic_state_matches_server_after_sync(self, engine, monitor, remote):
        monitor.set_online(False)
        engine.submit(RecordSale("p-coca", 3, EMPLOYEE_ID))
        optimistic_stock = engine.state.find(Collection.PRODUCTS, "p-coca")["stock"]

        monitor.set_online(True)

        assert optimistic_stock == 7
        assert find_row(remote.rows("products"), id="p-coca")["stock"] == 7
        assert engine.state.find(Collection.PRODUCTS, "p-coca")["stock"] == 7

    def test_balance_round_trip(self, engine, monitor, remote):
        """MTN deposit balance 1000, offline deposit of 500, reconnect: 1500 everywhere"""
        monitor.set_online(False)
        engine.submit(_deposit(500))

        assert engine.state.balance_for(Operator.MTN)["deposit_balance"] == 1500

        monitor.set_online(True)

        assert find_row(remote.rows("mobile_money_balances"), operator="MTN")["deposit_balance"] == 1500
        assert engine.state.balance_for(Operator.MTN)["deposit_balance"] == 1500
        assert engine.sync_state is SyncState.SYNCED

    def test_refetch_is_idempotent(self, engine, cache, remote):
        engine.refresh()
        first = engine.state.snapshot()

        engine.refresh()

        assert engine.state.snapshot() == first
        assert cache.load("products") == remote.rows("products")

    def test_stock_guard_holds_offline(self, engine, monitor, queue):
        monitor.set_online(False)
        engine.submit(RecordSale("p-savon", 2, EMPLOYEE_ID))

        result = engine.submit(RecordSale("p-savon", 1, EMPLOYEE_ID))

        assert result.data is SubmitOutcome.REJECTED
        assert engine.state.find(Collection.PRODUCTS, "p-savon")["stock"] == 0
        assert len(queue) == 1

    def test_set_balances_upserts_by_operator(self, engine, remote):
        result = engine.submit(SetBalances((BalanceValues(Operator.MTN, 5000, 250),)))

        assert result.success
        rows = remote.rows("mobile_money_balances")
        assert len(rows) == 3
        mtn = find_row(rows, operator="MTN")
        assert mtn["id"] == "b-mtn"
        assert (mtn["deposit_balance"], mtn["withdrawal_balance"]) == (5000, 250)

    def test_transactions_keep_one_balance_row_per_operator(self, engine, remote):
        engine.submit(_deposit(100))
        engine.submit(RecordTransaction(TransactionType.WITHDRAWAL, Operator.MTN, "97000000", 40, EMPLOYEE_ID))

        mtn_rows = [r for r in remote.rows("mobile_money_balances") if r["operator"] == "MTN"]
        assert len(mtn_rows) == 1
        assert (mtn_rows[0]["deposit_balance"], mtn_rows[0]["withdrawal_balance"]) == (1100, 40)
        assert len([b for b in engine.state.records(Collection.BALANCES) if b["operator"] == "MTN"]) == 1

    def test_missing_operator_row_created_once(self, make_engine, remote):
        remote.delete("mobile_money_balances", "b-celtis")
        engine = make_engine()

        engine.submit(_deposit(300, Operator.CELTIS))
        engine.submit(_deposit(200, Operator.CELTIS))

        celtis = find_row(remote.rows("mobile_money_balances"), operator="Celtis")
        assert celtis["deposit_balance"] == 500
        assert find_row(engine.state.records(Collection.BALANCES), operator="Celtis")["id"] == celtis["id"]


# =============================================================================
# PARTIAL FAILURE
# =============================================================================

class TestPartialReplay:

    def test_failing_middle_action_is_retained(self, engine, monitor, remote, queue):
        monitor.set_online(False)
        engine.submit(RecordSale("p-coca", 1, EMPLOYEE_ID))
        engine.submit(RecordSale("p-savon", 1, EMPLOYEE_ID))
        engine.submit(_deposit(100))
        remote.fail_when(
            lambda table, op, payload: table == "sales" and op == "insert" and payload[0]["product_id"] == "p-savon"
        )

        monitor.set_online(True)

        assert [e.action.kind for e in queue.entries] == ["add-sale"]
        assert queue.entries[0].action.product_id == "p-savon"
        assert queue.entries[0].attempts == 1
        assert find_row(remote.rows("products"), id="p-coca")["stock"] == 9
        assert find_row(remote.rows("mobile_money_balances"), operator="MTN")["deposit_balance"] == 1100
        assert engine.sync_state is SyncState.ERROR
        assert engine.get_status_display()["pending_count"] == 1

    def test_retained_action_goes_through_on_next_sync(self, engine, monitor, remote, queue):
        monitor.set_online(False)
        engine.submit(RecordSale("p-savon", 1, EMPLOYEE_ID))
        remote.fail_next("sales", "insert")
        monitor.set_online(True)
        assert engine.sync_state is SyncState.ERROR

        report = engine.sync_now()

        assert report.clean
        assert len(queue) == 0
        assert engine.sync_state is SyncState.SYNCED
        assert find_row(remote.rows("products"), id="p-savon")["stock"] == 1

    def test_action_abandoned_after_max_attempts(self, cache, remote, sample_tables):
        monitor = ConnectivityMonitor(initial_online=False)
        queue = PendingActionQueue(cache, max_attempts=2)
        engine = SyncEngine(ShopState(), cache, queue, remote, monitor, DashboardScope.admin())
        engine.mount()
        engine.state.replace(Collection.PRODUCTS, sample_tables["products"])
        engine.submit(RecordSale("p-coca", 1, EMPLOYEE_ID))
        remote.fail_when(lambda table, op, payload: table == "sales" and op == "insert")

        monitor.set_online(True)
        engine.sync_now()

        assert len(queue) == 0
        assert len(queue.failed) == 1
        assert engine.sync_state is SyncState.ERROR
        assert "abandoned" in engine.last_error


# =============================================================================
# RESTART
# =============================================================================

class TestRestart:

    def test_queue_and_optimistic_state_survive_restart(self, tmp_path, sample_tables):
        db_path = tmp_path / "boutique.db"
        remote = MockRemoteStore(sample_tables)

        cache = LocalCache(db_path)
        monitor = ConnectivityMonitor(initial_online=True)
        engine = SyncEngine(ShopState(), cache, PendingActionQueue(cache), remote, monitor, DashboardScope.admin())
        engine.mount()
        monitor.set_online(False)
        engine.submit(RecordSale("p-coca", 2, EMPLOYEE_ID))
        engine.detach()
        cache.close()

        cache = LocalCache(db_path)
        monitor = ConnectivityMonitor(initial_online=False)
        queue = PendingActionQueue(cache)
        engine = SyncEngine(ShopState(), cache, queue, remote, monitor, DashboardScope.admin())
        engine.mount()

        assert engine.sync_state is SyncState.OFFLINE_QUEUED
        assert len(queue) == 1
        assert engine.state.find(Collection.PRODUCTS, "p-coca")["stock"] == 8

        monitor.set_online(True)

        assert len(queue) == 0
        assert find_row(remote.rows("products"), id="p-coca")["stock"] == 8
        cache.close()

    def test_employee_dashboard_only_sees_own_history(self, make_engine, remote):
        engine = make_engine(DashboardScope.employee(EMPLOYEE_ID))

        engine.submit(RecordSale("p-coca", 1, EMPLOYEE_ID))

        assert [s["employee_id"] for s in engine.state.records(Collection.SALES)] == [EMPLOYEE_ID]
        assert len(remote.rows("sales")) == 2
