# =============================================================================
# tests/unit/test_remote_store.py
# Unit Tests for the remote store implementations
# =============================================================================

import pytest
from unittest.mock import MagicMock

from shop_core.data.remote_store import MockRemoteStore
from shop_core.data.supabase_client import SupabaseRemoteStore
from shop_core.errors import RemoteStoreError


# =============================================================================
# MOCK REMOTE STORE
# =============================================================================

class TestMockRemoteStore:

    def test_insert_assigns_server_ids(self):
        store = MockRemoteStore()

        created = store.insert("sales", [{"quantity": 1}, {"quantity": 2}])

        assert all(row["id"] for row in created)
        assert created[0]["id"] != created[1]["id"]
        assert "created_at" in created[0]

    def test_upsert_keyed_by_conflict_column(self):
        store = MockRemoteStore({"mobile_money_balances": [{"id": "b1", "operator": "MTN", "deposit_balance": 5}]})

        store.upsert("mobile_money_balances", [{"operator": "MTN", "deposit_balance": 9}], on_conflict="operator")
        store.upsert("mobile_money_balances", [{"operator": "Moov", "deposit_balance": 1}], on_conflict="operator")

        rows = store.rows("mobile_money_balances")
        assert len(rows) == 2
        assert rows[0] == {**rows[0], "id": "b1", "deposit_balance": 9}

    def test_increment_creates_missing_keyed_row(self):
        store = MockRemoteStore()

        store.increment("mobile_money_balances", "operator", "Celtis", "withdrawal_balance", 300)

        assert store.rows("mobile_money_balances")[0]["withdrawal_balance"] == 300

    def test_increment_missing_id_raises(self):
        store = MockRemoteStore()

        with pytest.raises(RemoteStoreError):
            store.increment("products", "id", "nope", "stock", -1)

    def test_fail_next_is_consumed(self):
        store = MockRemoteStore()
        store.fail_next("sales", "insert", times=2)

        for _ in range(2):
            with pytest.raises(RemoteStoreError):
                store.insert("sales", [{}])
        store.insert("sales", [{}])

        assert len(store.rows("sales")) == 1

    def test_fail_next_matches_table(self):
        store = MockRemoteStore()
        store.fail_next("sales")

        store.insert("products", [{}])
        with pytest.raises(RemoteStoreError):
            store.select_all("sales")

    def test_unreachable(self):
        store = MockRemoteStore()
        store.reachable = False

        with pytest.raises(RemoteStoreError):
            store.select_all("products")

    def test_fail_when_predicate(self):
        store = MockRemoteStore()
        store.fail_when(lambda table, op, payload: op == "delete")

        store.insert("products", [{"id": "p1"}])
        with pytest.raises(RemoteStoreError):
            store.delete("products", "p1")

        store.clear_failures()
        store.delete("products", "p1")
        assert store.rows("products") == []


# =============================================================================
# SUPABASE REMOTE STORE
# =============================================================================

@pytest.fixture
def client():
    return MagicMock()


def _response(rows):
    response = MagicMock()
    response.data = rows
    return response


class TestSupabaseRemoteStore:

    def test_select_all_paginates(self, client):
        query = client.table.return_value.select.return_value.range.return_value
        query.execute.side_effect = [
            _response([{"id": str(i)} for i in range(SupabaseRemoteStore.BATCH_SIZE)]),
            _response([{"id": "last"}]),
        ]
        store = SupabaseRemoteStore(client)

        rows = store.select_all("sales")

        assert len(rows) == SupabaseRemoteStore.BATCH_SIZE + 1
        client.table.return_value.select.return_value.range.assert_any_call(1000, 1999)

    def test_select_where_filters(self, client):
        query = client.table.return_value.select.return_value.eq.return_value.range.return_value
        query.execute.return_value = _response([{"id": "s1", "employee_id": "e1"}])
        store = SupabaseRemoteStore(client)

        rows = store.select_where("sales", "employee_id", "e1")

        assert rows == [{"id": "s1", "employee_id": "e1"}]
        client.table.return_value.select.return_value.eq.assert_called_with("employee_id", "e1")

    def test_execute_error_becomes_remote_store_error(self, client):
        client.table.return_value.insert.return_value.execute.side_effect = Exception("503")
        store = SupabaseRemoteStore(client)

        with pytest.raises(RemoteStoreError) as exc_info:
            store.insert("sales", [{"quantity": 1}])

        assert exc_info.value.details["table"] == "sales"

    def test_upsert_passes_conflict_column(self, client):
        client.table.return_value.upsert.return_value.execute.return_value = _response([{"operator": "MTN"}])
        store = SupabaseRemoteStore(client)

        store.upsert("mobile_money_balances", [{"operator": "MTN"}], on_conflict="operator")

        client.table.return_value.upsert.assert_called_with([{"operator": "MTN"}], on_conflict="operator")

    def test_increment_uses_rpc_when_configured(self, client):
        client.rpc.return_value.execute.return_value = _response([{"id": "p1", "stock": 7}])
        store = SupabaseRemoteStore(client, increment_function="increment_field")

        row = store.increment("products", "id", "p1", "stock", -3)

        assert row["stock"] == 7
        name, params = client.rpc.call_args[0]
        assert name == "increment_field"
        assert params["p_amount"] == -3

    def test_increment_read_modify_write(self, client):
        select = client.table.return_value.select.return_value.eq.return_value.range.return_value
        select.execute.return_value = _response([{"id": "p1", "stock": 10}])
        client.table.return_value.update.return_value.eq.return_value.execute.return_value = _response(
            [{"id": "p1", "stock": 7}]
        )
        store = SupabaseRemoteStore(client)

        row = store.increment("products", "id", "p1", "stock", -3)

        client.table.return_value.update.assert_called_with({"stock": 7})
        assert row["stock"] == 7

    def test_increment_missing_product_raises(self, client):
        select = client.table.return_value.select.return_value.eq.return_value.range.return_value
        select.execute.return_value = _response([])
        store = SupabaseRemoteStore(client)

        with pytest.raises(RemoteStoreError):
            store.increment("products", "id", "gone", "stock", -1)
