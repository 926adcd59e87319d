# =============================================================================
# tests/unit/test_action_queue.py
# Unit Tests for PendingActionQueue
# =============================================================================

import pytest

from shop_core.errors import CacheError, RemoteStoreError
from shop_core.offline import DeleteProduct, PendingActionQueue
from shop_core.offline.action_queue import FAILED_KEY, QUEUE_KEY


def _delete(product_id):
    return DeleteProduct(product_id)


class TestQueuePersistence:
    """Enqueue writes through to the cache"""

    def test_enqueue_persists_immediately(self, cache, queue):
        queue.enqueue(_delete("p1"))

        stored = cache.load(QUEUE_KEY)
        assert len(stored) == 1
        assert stored[0]["action"] == "delete-product"
        assert stored[0]["attempts"] == 0

    def test_load_restores_order(self, cache, queue):
        """A fresh queue on the same cache sees the same entries in order"""
        for product_id in ("p1", "p2", "p3"):
            queue.enqueue(_delete(product_id))

        reloaded = PendingActionQueue(cache)
        reloaded.load()

        assert [e.action.product_id for e in reloaded.entries] == ["p1", "p2", "p3"]

    def test_unreadable_entry_moved_to_failed(self, cache):
        cache.save(QUEUE_KEY, [
            {"action": "delete-product", "data": {"id": "p1"}},
            {"action": "teleport", "data": {}},
        ])
        queue = PendingActionQueue(cache)

        queue.load()

        assert len(queue) == 1
        assert len(queue.failed) == 1
        assert len(cache.load(QUEUE_KEY)) == 1
        assert len(cache.load(FAILED_KEY)) == 1

    def test_bad_attempt_count_moved_to_failed(self, cache):
        cache.save(QUEUE_KEY, [
            {"action": "delete-category", "data": {"id": "cat-general"}, "attempts": "x"},
            {"action": "delete-product", "data": {"id": "p1"}, "attempts": 2},
        ])
        queue = PendingActionQueue(cache)

        queue.load()

        assert [e.action.product_id for e in queue.entries] == ["p1"]
        assert queue.entries[0].attempts == 2
        assert queue.failed[0]["entry"]["attempts"] == "x"
        assert len(cache.load(FAILED_KEY)) == 1

    def test_enqueue_leaves_queue_unchanged_when_cache_write_fails(self, cache, queue, monkeypatch):
        queue.enqueue(_delete("p1"))

        def refuse(key, records):
            raise CacheError("disk full", key=key)

        monkeypatch.setattr(cache, "save", refuse)

        with pytest.raises(CacheError):
            queue.enqueue(_delete("p2"))

        assert [e.action.product_id for e in queue.entries] == ["p1"]
        monkeypatch.undo()
        assert len(cache.load(QUEUE_KEY)) == 1


class TestDrain:
    """Replay policy"""

    def test_drain_applies_in_insertion_order(self, queue):
        for product_id in ("p1", "p2", "p3"):
            queue.enqueue(_delete(product_id))
        seen = []

        report = queue.drain_in_order(lambda action: seen.append(action.product_id))

        assert seen == ["p1", "p2", "p3"]
        assert len(report.applied) == 3
        assert report.clean
        assert len(queue) == 0

    def test_failed_entry_is_retained_and_later_ones_still_run(self, cache, queue):
        for product_id in ("p1", "p2", "p3"):
            queue.enqueue(_delete(product_id))
        seen = []

        def apply(action):
            if action.product_id == "p2":
                raise RemoteStoreError("server said no")
            seen.append(action.product_id)

        report = queue.drain_in_order(apply)

        assert seen == ["p1", "p3"]
        assert [e.action.product_id for e in queue.entries] == ["p2"]
        assert queue.entries[0].attempts == 1
        assert queue.entries[0].last_error == "server said no"
        assert len(report.failed) == 1
        assert cache.load(QUEUE_KEY)[0]["attempts"] == 1

    def test_entry_dropped_after_max_attempts(self, cache):
        queue = PendingActionQueue(cache, max_attempts=2)
        queue.enqueue(_delete("p1"))

        def fail(action):
            raise RemoteStoreError("still down")

        first = queue.drain_in_order(fail)
        second = queue.drain_in_order(fail)

        assert len(first.failed) == 1
        assert len(second.dropped) == 1
        assert len(queue) == 0
        assert queue.failed[0]["data"] == {"id": "p1"}
        assert queue.failed[0]["attempts"] == 2
        assert cache.load(FAILED_KEY) == queue.failed

    def test_clear_failed(self, cache):
        queue = PendingActionQueue(cache, max_attempts=1)
        queue.enqueue(_delete("p1"))

        def fail(action):
            raise RemoteStoreError("down")

        queue.drain_in_order(fail)
        queue.clear_failed()

        assert queue.failed == []
        assert cache.load(FAILED_KEY) == []

    def test_rewrite_persists_transformed_actions(self, cache, queue):
        queue.enqueue(_delete("local-1"))

        queue.rewrite(lambda action: action.remap_ids({"local-1": "server-1"}))

        assert queue.entries[0].action.product_id == "server-1"
        assert cache.load(QUEUE_KEY)[0]["data"]["id"] == "server-1"
