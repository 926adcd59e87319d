# =============================================================================
# shop_core/offline/connection_manager.py
# Connectivity State and Transition Events
# =============================================================================
"""
ConnectivityMonitor - holds the process-wide online/offline flag.

Features:
- Event-driven: the environment reports `online` / `offline` transitions
- Listeners are notified only when the flag actually changes
- One-shot socket check to seed the initial value at startup

There is no polling and no check that the remote store is really reachable:
a false "online" report simply makes the sync engine's remote calls fail.
"""

from __future__ import annotations
import socket
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from shop_core.logging import get_logger

logger = get_logger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.OFFLINE
    last_change: Optional[datetime] = None
    last_online: Optional[datetime] = None
    transitions: int = 0


def check_environment(hosts: Iterable[Tuple[str, int]], timeout: float = 5.0) -> bool:
    """
    Check internet reachability by connecting to well-known hosts.

    Returns:
        True as soon as one host accepts a TCP connection
    """
    for host, port in hosts:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            continue
    return False


class ConnectivityMonitor:
    """
    Boolean connectivity flag plus transition callbacks.

    Usage:
        monitor = ConnectivityMonitor(initial_online=True)
        monitor.register_callback(lambda online: print(online))
        monitor.on_offline()   # prints False
        monitor.on_offline()   # no transition, nothing printed
    """

    def __init__(self, initial_online: bool = False):
        self._state = ConnectionState(
            status=ConnectionStatus.ONLINE if initial_online else ConnectionStatus.OFFLINE,
            last_change=datetime.now(),
            last_online=datetime.now() if initial_online else None,
        )
        self._callbacks: List[Callable[[bool], None]] = []

    @classmethod
    def from_environment(cls, hosts: Iterable[Tuple[str, int]], timeout: float = 5.0) -> ConnectivityMonitor:
        """Build a monitor whose initial value comes from a single check."""
        online = check_environment(hosts, timeout)
        logger.info(f"Initial connectivity: {'online' if online else 'offline'}")
        return cls(initial_online=online)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status is ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return not self.is_online

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def on_online(self) -> None:
        """Environment reported the `online` event."""
        self.set_online(True)

    def on_offline(self) -> None:
        """Environment reported the `offline` event."""
        self.set_online(False)

    def set_online(self, online: bool) -> bool:
        """
        Update the flag.

        Returns:
            True if this was a transition (and listeners were notified)
        """
        new_status = ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE
        old_status = self._state.status
        if new_status is old_status:
            return False

        now = datetime.now()
        self._state.status = new_status
        self._state.last_change = now
        self._state.transitions += 1
        if online:
            self._state.last_online = now

        logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
        self._notify_callbacks()
        return True

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[bool], None]) -> None:
        """Register a callback receiving the new online flag on each transition."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[bool], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        online = self.is_online
        for callback in list(self._callbacks):
            try:
                callback(online)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}", exc_info=True)

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "last_change": self._state.last_change.isoformat() if self._state.last_change else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "transitions": self._state.transitions,
        }
