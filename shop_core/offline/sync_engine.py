# =============================================================================
# shop_core/offline/sync_engine.py
# Optimistic mutation, offline queueing and reconciliation
# =============================================================================
"""
SyncEngine - owns the in-memory collections of a mounted dashboard and keeps
them consistent with the local cache and the remote store.

Pipeline for every user command:

    submit(command)
      -> validate           (rejected: nothing changes, nothing is queued)
      -> optimistic apply   (memory + cache, before any remote call)
      -> offline?           queue the action               -> OFFLINE_QUEUED
      -> remote apply ok    refetch the affected collections -> SYNCED
      -> remote apply fails queue the action, keep local state -> ERROR
      -> queue not writable undo the optimistic change          -> ERROR (NOT_SAVED)

State machine:

    LOADING -> SYNCED | OFFLINE_QUEUED | ERROR            (mount)
    SYNCED -> OFFLINE_QUEUED                               (offline mutation)
    SYNCED | OFFLINE_QUEUED | ERROR -> SYNCING             (back online, queue non-empty)
    SYNCING -> SYNCED                                      (queue drained, refetch ok)
    any -> ERROR                                           (unexpected remote failure)

All work is synchronous and runs on the caller's thread.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from shop_core.data.models import Collection, DashboardScope, Record
from shop_core.data.remote_store import RemoteStore
from shop_core.errors import CacheError, RemoteStoreError, ValidationError
from shop_core.logging import LogContext, get_logger
from shop_core.offline.action_queue import DrainReport, PendingActionQueue
from shop_core.offline.actions import PendingAction
from shop_core.offline.commands import Command
from shop_core.offline.connection_manager import ConnectivityMonitor
from shop_core.offline.local_cache import LocalCache
from shop_core.offline.state import ShopState
from shop_core.services.base_service import ServiceResult

logger = get_logger(__name__)


class SyncState(Enum):
    """Sync engine states."""
    LOADING = "loading"
    SYNCED = "synced"
    OFFLINE_QUEUED = "offline_queued"
    SYNCING = "syncing"
    ERROR = "error"


class SubmitOutcome(Enum):
    APPLIED = "applied"
    QUEUED_OFFLINE = "queued_offline"
    QUEUED_AFTER_ERROR = "queued_after_error"
    REJECTED = "rejected"
    NOT_SAVED = "not_saved"


@dataclass
class SyncEvent:
    """
    Notification emitted by the engine.

    Kinds: optimistic, applied, queued, reconciled, drained, error, state
    """
    kind: str
    detail: Dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=datetime.now)


class SyncEngine:
    """
    Command pipeline and reconciliation for one mounted dashboard.

    Usage:
        engine = SyncEngine(ShopState(), cache, queue, remote, monitor, DashboardScope.admin())
        engine.mount()
        result = engine.submit(RecordSale(product_id, 2, employee_id))
    """

    def __init__(
        self,
        state: ShopState,
        cache: LocalCache,
        queue: PendingActionQueue,
        remote: RemoteStore,
        monitor: ConnectivityMonitor,
        scope: DashboardScope,
    ):
        self.state = state
        self.cache = cache
        self.queue = queue
        self.remote = remote
        self.monitor = monitor
        self.scope = scope

        self._sync_state = SyncState.LOADING
        self._is_syncing = False
        self._id_map: Dict[str, str] = {}
        self._listeners: List[Callable[[SyncEvent], None]] = []

        self.last_error: Optional[str] = None
        self.last_sync: Optional[datetime] = None
        self.last_sync_success: Optional[datetime] = None

        self.monitor.register_callback(self._on_connection_change)

    @property
    def sync_state(self) -> SyncState:
        return self._sync_state

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def pending_count(self) -> int:
        return len(self.queue)

    def detach(self) -> None:
        """Stop listening to connectivity changes (dashboard unmounted)."""
        self.monitor.unregister_callback(self._on_connection_change)
        self._listeners.clear()

    # =========================================================================
    # EVENTS
    # =========================================================================

    def subscribe(self, callback: Callable[[SyncEvent], None]) -> Callable[[], None]:
        """Register an event listener; returns a function that removes it."""
        if callback not in self._listeners:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, kind: str, **detail: Any) -> None:
        event = SyncEvent(kind=kind, detail=detail)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in sync listener: {e}", exc_info=True)

    def _set_state(self, new_state: SyncState) -> None:
        if new_state is self._sync_state:
            return
        old_state = self._sync_state
        self._sync_state = new_state
        logger.info(f"Sync state: {old_state.value} -> {new_state.value}")
        self._emit("state", old=old_state, new=new_state)

    def _report_error(self, message: str) -> None:
        self.last_error = message
        logger.error(message)
        self._set_state(SyncState.ERROR)
        self._emit("error", message=message)

    def _settle(self) -> None:
        """Pick the resting state after a successful step."""
        if not len(self.queue):
            self.last_error = None
            self._set_state(SyncState.SYNCED)
        elif self.monitor.is_offline:
            self._set_state(SyncState.OFFLINE_QUEUED)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def mount(self) -> None:
        """Load cached collections and queue, then reconcile if online."""
        self._set_state(SyncState.LOADING)
        for collection in self.scope.collections:
            self.state.replace(collection, self.cache.load(collection.value))
        self.queue.load()
        logger.info(
            f"Mounted {self.scope.role.value} dashboard from cache "
            f"({len(self.queue)} pending action(s))"
        )

        if self.monitor.is_offline:
            self._set_state(SyncState.OFFLINE_QUEUED if len(self.queue) else SyncState.SYNCED)
            return

        if len(self.queue):
            self.sync_now()
        elif self.refresh():
            self._settle()

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def _fetch(self, collection: Collection) -> List[Record]:
        scoped = self.scope.filter_for(collection)
        if scoped is None:
            return self.remote.select_all(collection.table)
        field_name, value = scoped
        return self.remote.select_where(collection.table, field_name, value)

    def refresh(self, collections: Optional[Iterable[Collection]] = None) -> bool:
        """
        Refetch collections from the remote store and overwrite memory and cache.

        All-or-nothing: when any read fails nothing is overwritten and the
        engine enters ERROR with the local data kept.

        Returns:
            True if every collection was refreshed
        """
        wanted = self.scope.collections if collections is None else tuple(collections)
        targets = [c for c in self.scope.collections if c in wanted]
        if not targets:
            return True

        fetched: Dict[Collection, List[Record]] = {}
        try:
            with LogContext(logger, f"Refreshing {', '.join(c.value for c in targets)}"):
                for collection in targets:
                    fetched[collection] = self._fetch(collection)
        except RemoteStoreError as e:
            self._report_error(f"Could not refresh data from the server: {e.message}")
            return False

        for collection, records in fetched.items():
            self.state.replace(collection, records)
            self._save_collection(collection)

        self.last_sync = datetime.now()
        self._emit("reconciled", collections=[c.value for c in targets])
        return True

    def _save_collection(self, collection: Collection) -> None:
        try:
            self.cache.save(collection.value, self.state.records(collection))
        except CacheError as e:
            # Memory still holds the data; only persistence across reloads is lost
            logger.error(f"Could not persist {collection.value}: {e.message}")

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def submit(self, command: Command) -> ServiceResult:
        """
        Run a command through validate, optimistic apply and remote application.

        Returns:
            ServiceResult whose data is the SubmitOutcome. Only APPLIED is a
            success; queued outcomes still keep the optimistic state.
        """
        name = type(command).__name__
        try:
            command.validate(self.state)
        except ValidationError as e:
            logger.info(f"{name} rejected: {e.message}")
            return ServiceResult.from_exception(e, data=SubmitOutcome.REJECTED)

        before = {collection: self.state.records(collection) for collection in command.affected}
        action = command.apply(self.state)
        for collection in command.affected:
            self._save_collection(collection)
        self._emit("optimistic", command=name, action=action.kind)

        if self.monitor.is_offline:
            if not self._queue(action, before, reason="offline"):
                return self._not_saved(name)
            self._set_state(SyncState.OFFLINE_QUEUED)
            return ServiceResult.fail(
                "Offline: the change is saved locally and will be sent when the connection returns",
                error_code="OFFLINE_QUEUED",
                data=SubmitOutcome.QUEUED_OFFLINE,
                metadata={"pending": len(self.queue)},
            )

        try:
            self._apply_remote(action)
        except RemoteStoreError as e:
            if not self._queue(action, before, reason="error"):
                return self._not_saved(name)
            self._report_error(f"{name} could not be sent, it will be retried: {e.message}")
            return ServiceResult.fail(
                self.last_error,
                error_code=e.code,
                data=SubmitOutcome.QUEUED_AFTER_ERROR,
                metadata={"pending": len(self.queue)},
            )

        self._emit("applied", action=action.kind)
        if self.refresh(command.affected):
            if not len(self.queue):
                self._id_map.clear()
            self._settle()
        return ServiceResult.ok(SubmitOutcome.APPLIED)

    def _queue(self, action: PendingAction, before: Dict[Collection, List[Record]], reason: str) -> bool:
        """
        Enqueue action; when the queue cannot be persisted, undo the
        optimistic change in memory and cache and report the error.
        """
        try:
            self.queue.enqueue(action)
        except CacheError as e:
            for collection, records in before.items():
                self.state.replace(collection, records)
                self._save_collection(collection)
            self._report_error(f"The change was not saved, the offline queue could not be written: {e.message}")
            return False
        self._emit("queued", action=action.kind, reason=reason)
        return True

    def _not_saved(self, name: str) -> ServiceResult:
        logger.warning(f"{name} rolled back")
        return ServiceResult.fail(
            self.last_error,
            error_code="CACHE_001",
            data=SubmitOutcome.NOT_SAVED,
            metadata={"pending": len(self.queue)},
        )

    @property
    def id_mappings(self) -> Dict[str, str]:
        """Local ids already created remotely, still needed to rewrite later actions."""
        return dict(self._id_map)

    def _apply_remote(self, action: PendingAction) -> None:
        created = action.remap_ids(self._id_map).apply(self.remote)
        if created:
            self._id_map.update(created)

    # =========================================================================
    # QUEUE DRAIN
    # =========================================================================

    def _on_connection_change(self, online: bool) -> None:
        if online:
            logger.info("Connection restored, triggering sync")
            self.sync_now()
        elif len(self.queue):
            self._set_state(SyncState.OFFLINE_QUEUED)

    def sync_now(self) -> Optional[DrainReport]:
        """
        Replay queued actions in order, then refetch every scoped collection.

        Returns:
            DrainReport, or None if offline or a sync is already running
        """
        if self.monitor.is_offline:
            logger.debug("Cannot sync: offline")
            return None
        if self._is_syncing:
            return None

        self._is_syncing = True
        report = DrainReport()
        try:
            if len(self.queue):
                self._set_state(SyncState.SYNCING)
                with LogContext(logger, f"Replaying {len(self.queue)} offline action(s)") as ctx:
                    report = self.queue.drain_in_order(self._apply_remote)
                    ctx.summary = f"{len(report.applied)} applied, {len(self.queue)} still pending"
                if self._id_map:
                    self.queue.rewrite(lambda action: action.remap_ids(self._id_map))
                self._emit(
                    "drained",
                    applied=len(report.applied),
                    retained=len(report.failed),
                    dropped=len(report.dropped),
                )

            refreshed = self.refresh()
            if refreshed:
                # Queue rewritten, memory holds server ids
                self._id_map.clear()
        except CacheError as e:
            self._report_error(f"The offline queue could not be saved during sync: {e.message}")
            return report
        finally:
            self._is_syncing = False

        if report.dropped:
            kinds = ", ".join(entry.action.kind for entry in report.dropped)
            self._report_error(
                f"{len(report.dropped)} offline action(s) were abandoned after "
                f"{self.queue.max_attempts} attempts: {kinds}"
            )
        elif report.failed:
            self._report_error(
                f"{len(report.failed)} offline action(s) could not be synchronized "
                f"and will be retried: {report.failed[0].last_error}"
            )
        elif refreshed:
            self.last_sync_success = datetime.now()
            self._settle()

        return report

    # =========================================================================
    # DISPLAY
    # =========================================================================

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "state": self._sync_state.value,
            "is_online": self.monitor.is_online,
            "is_syncing": self._is_syncing,
            "pending_count": len(self.queue),
            "failed_count": len(self.queue.failed),
            "last_error": self.last_error,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "last_success": self.last_sync_success.isoformat() if self.last_sync_success else None,
        }
