# =============================================================================
# shop_core/offline/action_queue.py
# Persisted FIFO of pending remote mutations
# =============================================================================
"""
PendingActionQueue - ordered mutations awaiting remote application.

Drain policy:
- Entries are replayed strictly in insertion order, one at a time.
- Every entry is attempted, even after an earlier one failed.
- A successful entry is removed and the queue is persisted at once.
- A failed entry stays in place with `attempts` and `last_error` updated.
- An entry that has failed `max_attempts` times is moved to the persisted
  `failed_actions` list and logged at ERROR level.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from shop_core.errors import QueueError, RemoteStoreError
from shop_core.logging import get_logger
from shop_core.offline.actions import PendingAction, action_from_dict, action_to_dict
from shop_core.offline.local_cache import LocalCache

logger = get_logger(__name__)

QUEUE_KEY = "offline_queue"
FAILED_KEY = "failed_actions"


@dataclass
class QueueEntry:
    """One queued action plus its replay bookkeeping."""
    action: PendingAction
    attempts: int = 0
    last_error: Optional[str] = None
    enqueued_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            **action_to_dict(self.action),
            "attempts": self.attempts,
            "last_error": self.last_error,
            "enqueued_at": self.enqueued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> QueueEntry:
        """Raises QueueError for any entry that cannot be read back."""
        action = action_from_dict(data)
        try:
            attempts = int(data.get("attempts") or 0)
        except (TypeError, ValueError) as e:
            raise QueueError(f"Bad attempt count {data.get('attempts')!r}: {e}", kind=action.kind) from e
        return cls(
            action=action,
            attempts=attempts,
            last_error=data.get("last_error"),
            enqueued_at=data.get("enqueued_at") or datetime.now().isoformat(),
        )


@dataclass
class DrainReport:
    """Outcome of one drain pass."""
    applied: List[QueueEntry] = field(default_factory=list)
    failed: List[QueueEntry] = field(default_factory=list)
    dropped: List[QueueEntry] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.applied) + len(self.failed) + len(self.dropped)

    @property
    def clean(self) -> bool:
        return not self.failed and not self.dropped


class PendingActionQueue:
    """
    FIFO of PendingAction persisted in the local cache.

    Usage:
        queue = PendingActionQueue(cache)
        queue.load()
        queue.enqueue(AddSale(...))
        report = queue.drain_in_order(lambda action: action.apply(store))
    """

    def __init__(self, cache: LocalCache, max_attempts: int = 5):
        self.cache = cache
        self.max_attempts = max_attempts
        self._entries: List[QueueEntry] = []
        self._failed: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[QueueEntry]:
        return list(self._entries)

    @property
    def failed(self) -> List[Dict[str, Any]]:
        """Entries dropped after exhausting their attempts, newest last."""
        return list(self._failed)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def load(self) -> None:
        """Replace the in-memory queue with the cached one."""
        entries = []
        unreadable = []
        for raw in self.cache.load(QUEUE_KEY):
            try:
                entries.append(QueueEntry.from_dict(raw))
            except QueueError as e:
                logger.error(f"Unreadable queue entry moved to {FAILED_KEY}: {e.message}")
                unreadable.append({"entry": raw, "last_error": e.message})
        self._entries = entries
        self._failed = self.cache.load(FAILED_KEY) + unreadable
        if unreadable:
            self._persist_failed()
            self._persist()
        logger.debug(f"Loaded {len(self._entries)} pending action(s)")

    def _persist(self) -> None:
        self.cache.save(QUEUE_KEY, [entry.to_dict() for entry in self._entries])

    def _persist_failed(self) -> None:
        self.cache.save(FAILED_KEY, self._failed)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def enqueue(self, action: PendingAction) -> QueueEntry:
        """
        Append action to the queue.

        The cache is written before memory; on CacheError the queue is left
        unchanged in both places.
        """
        entry = QueueEntry(action=action)
        entries = self._entries + [entry]
        self.cache.save(QUEUE_KEY, [e.to_dict() for e in entries])
        self._entries = entries
        logger.info(f"Queued {action.kind} ({len(self._entries)} pending)")
        return entry

    def rewrite(self, transform: Callable[[PendingAction], PendingAction]) -> None:
        """Apply transform to every queued action and persist the result."""
        self._entries = [replace(entry, action=transform(entry.action)) for entry in self._entries]
        self._persist()

    def clear_failed(self) -> None:
        self._failed = []
        self._persist_failed()

    def drain_in_order(self, apply_fn: Callable[[PendingAction], Any]) -> DrainReport:
        """
        Replay every queued action through apply_fn.

        apply_fn signals failure by raising RemoteStoreError; any other
        exception propagates after the queue has been persisted.
        """
        report = DrainReport()

        for entry in list(self._entries):
            try:
                apply_fn(entry.action)
            except RemoteStoreError as e:
                entry.attempts += 1
                entry.last_error = e.message
                if entry.attempts >= self.max_attempts:
                    self._drop(entry)
                    report.dropped.append(entry)
                else:
                    logger.warning(
                        f"Replay of {entry.action.kind} failed "
                        f"(attempt {entry.attempts}/{self.max_attempts}): {e.message}"
                    )
                    report.failed.append(entry)
                self._persist()
                continue
            except Exception:
                self._persist()
                raise

            self._entries.remove(entry)
            self._persist()
            report.applied.append(entry)

        logger.info(
            f"Drain complete: {len(report.applied)} applied, "
            f"{len(report.failed)} retained, {len(report.dropped)} dropped"
        )
        return report

    def _drop(self, entry: QueueEntry) -> None:
        self._entries.remove(entry)
        self._failed.append(entry.to_dict())
        self._persist_failed()
        logger.error(
            f"Dropped {entry.action.kind} after {entry.attempts} attempts: "
            f"{entry.last_error} (kept in {FAILED_KEY})"
        )
