# =============================================================================
# shop_core/auth/session.py
# Signed-in user, role lookup and account registration
# =============================================================================
"""
SessionManager - turns an auth identity into a shop user with a role.

The role and username live in the `users` table, not in the auth provider.
Only `admin` and `employee` are accepted; any other value (or a missing
profile) ends the session.

The last signed-in user is kept in the local cache so a dashboard can be
restored while offline.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from shop_core.auth.providers import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthProvider,
    AuthUser,
)
from shop_core.data.models import USERS_TABLE, DashboardScope, Role
from shop_core.data.remote_store import RemoteStore
from shop_core.errors import AuthorizationError, RemoteStoreError, ValidationError
from shop_core.logging import get_logger
from shop_core.offline.connection_manager import ConnectivityMonitor
from shop_core.offline.local_cache import LocalCache

logger = get_logger(__name__)

CURRENT_USER_KEY = "current_user"

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20


@dataclass(frozen=True)
class SessionUser:
    id: str
    role: Role
    email: Optional[str] = None
    username: Optional[str] = None

    @property
    def scope(self) -> DashboardScope:
        if self.role is Role.ADMIN:
            return DashboardScope.admin()
        return DashboardScope.employee(self.id)

    @property
    def needs_username(self) -> bool:
        return not self.username

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role.value, "email": self.email, "username": self.username}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SessionUser:
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            email=data.get("email"),
            username=data.get("username"),
        )


def _clean_username(username: Optional[str]) -> str:
    name = (username or "").strip()
    if not name:
        raise ValidationError("Username is required", field="username", value=username)
    if not USERNAME_MIN_LENGTH <= len(name) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be {USERNAME_MIN_LENGTH} to {USERNAME_MAX_LENGTH} characters",
            field="username",
            value=name,
        )
    return name


class SessionManager:
    """
    Sign-in, registration and session restore for the dashboards.

    Usage:
        session = SessionManager(auth, remote, cache, monitor)
        session.attach()
        user = session.sign_in("vendeur@boutique.bj", "secret")
        if user.needs_username:
            user = session.choose_username("awa")
    """

    def __init__(
        self,
        auth: AuthProvider,
        remote: RemoteStore,
        cache: LocalCache,
        monitor: ConnectivityMonitor,
    ):
        self.auth = auth
        self.remote = remote
        self.cache = cache
        self.monitor = monitor
        self.user: Optional[SessionUser] = None
        self._listeners: List[Callable[[Optional[SessionUser]], None]] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._busy = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def attach(self) -> None:
        """Start following auth provider events."""
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.subscribe(self._on_auth_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_change(self, callback: Callable[[Optional[SessionUser]], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def _set_user(self, user: Optional[SessionUser]) -> None:
        self.user = user
        if user is None:
            self.cache.delete(CURRENT_USER_KEY)
        else:
            self.cache.save_value(CURRENT_USER_KEY, user.to_dict())
        for callback in list(self._listeners):
            try:
                callback(user)
            except Exception as e:
                logger.error(f"Error in session listener: {e}", exc_info=True)

    def _on_auth_event(self, event: str, auth_user: Optional[AuthUser]) -> None:
        logger.info(f"Auth event: {event}")
        if self._busy:
            return
        if event in (SIGNED_IN, TOKEN_REFRESHED) and auth_user is not None:
            try:
                self._set_user(self._load_profile(auth_user))
            except AuthorizationError as e:
                logger.warning(f"Session ended on {event}: {e.message}")
        elif event == SIGNED_OUT:
            self._set_user(None)

    # =========================================================================
    # PROFILE
    # =========================================================================

    def _end_session(self) -> None:
        self._busy = True
        try:
            self.auth.sign_out()
        finally:
            self._busy = False
        self._set_user(None)

    def _load_profile(self, auth_user: AuthUser) -> SessionUser:
        """Read role and username; any failure signs the user out."""
        try:
            rows = self.remote.select_where(USERS_TABLE, "id", auth_user.id)
        except RemoteStoreError as e:
            self._end_session()
            raise AuthorizationError(f"Could not load user profile: {e.message}", user_id=auth_user.id) from e

        profile = rows[0] if rows else None
        role = profile.get("role") if profile else None
        if role not in (Role.ADMIN.value, Role.EMPLOYEE.value):
            self._end_session()
            raise AuthorizationError("Account has no valid role", user_id=auth_user.id, role=role)

        return SessionUser(
            id=auth_user.id,
            role=Role(role),
            email=auth_user.email or profile.get("email"),
            username=profile.get("username"),
        )

    def _username_taken(self, username: str, user_id: Optional[str] = None) -> bool:
        rows = self.remote.select_where(USERS_TABLE, "username", username)
        return any(row.get("id") != user_id for row in rows)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def sign_in(self, email: str, password: str) -> SessionUser:
        """
        Authenticate and load the role.

        Raises:
            AuthorizationError: bad credentials or no valid role
        """
        self._busy = True
        try:
            auth_user = self.auth.sign_in(email, password)
        finally:
            self._busy = False

        user = self._load_profile(auth_user)
        self._set_user(user)
        logger.info(f"Signed in {user.id} as {user.role.value}")
        return user

    def choose_username(self, username: str) -> SessionUser:
        """Set the username of the signed-in user (first sign-in)."""
        if self.user is None:
            raise AuthorizationError("Not signed in")
        name = _clean_username(username)

        try:
            if self._username_taken(name, self.user.id):
                raise ValidationError("Username is already taken", field="username", value=name)
            self.remote.update(USERS_TABLE, self.user.id, {"username": name})
        except RemoteStoreError as e:
            raise ValidationError(f"Could not save username: {e.message}", field="username", value=name) from e

        user = SessionUser(id=self.user.id, role=self.user.role, email=self.user.email, username=name)
        self._set_user(user)
        return user

    def register_employee(self, email: str, username: str, password: str) -> SessionUser:
        """
        Create an employee account and sign it in.

        Raises:
            ValidationError: bad or taken username
            AuthorizationError: sign-up refused or the profile could not be created
        """
        name = _clean_username(username)
        try:
            taken = self._username_taken(name)
        except RemoteStoreError as e:
            raise ValidationError(f"Could not check username: {e.message}", field="username", value=name) from e
        if taken:
            raise ValidationError("Username is already taken", field="username", value=name)

        self._busy = True
        try:
            auth_user = self.auth.sign_up(email, password)
            if self.auth.current_user() is None:
                auth_user = self.auth.sign_in(email, password)
        finally:
            self._busy = False

        try:
            self.remote.insert(USERS_TABLE, [{
                "id": auth_user.id,
                "email": auth_user.email or email,
                "username": name,
                "role": Role.EMPLOYEE.value,
            }])
        except RemoteStoreError as e:
            self._end_session()
            raise AuthorizationError(
                f"Account created but the profile could not be saved: {e.message}",
                user_id=auth_user.id,
            ) from e

        user = SessionUser(id=auth_user.id, role=Role.EMPLOYEE, email=auth_user.email or email, username=name)
        self._set_user(user)
        logger.info(f"Registered employee {name}")
        return user

    def sign_out(self) -> None:
        self._end_session()
        logger.info("Signed out")

    def restore(self) -> Optional[SessionUser]:
        """
        Resume the previous session.

        Online: the provider's current user, role checked again.
        Offline: the last cached session user, unchecked.
        """
        cached = self._cached_user()

        if self.monitor.is_offline:
            self.user = cached
            return cached

        auth_user = self.auth.current_user()
        if auth_user is None:
            self._set_user(None)
            return None

        try:
            user = self._load_profile(auth_user)
        except AuthorizationError as e:
            logger.warning(f"Session not restored: {e.message}")
            return None

        self._set_user(user)
        return user

    def _cached_user(self) -> Optional[SessionUser]:
        data = self.cache.load_value(CURRENT_USER_KEY)
        if not data:
            return None
        try:
            return SessionUser.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring cached session user: {e}")
            return None
