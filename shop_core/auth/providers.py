# =============================================================================
# shop_core/auth/providers.py
# Authentication collaborators: Supabase Auth and an in-process stand-in
# =============================================================================

from __future__ import annotations
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from shop_core.errors import AuthorizationError
from shop_core.logging import get_logger

logger = get_logger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, Optional["AuthUser"]], None]


@dataclass(frozen=True)
class AuthUser:
    """Identity returned by the auth provider (no role; that lives in `users`)."""
    id: str
    email: Optional[str] = None


class AuthProvider(ABC):
    """Abstract authentication collaborator."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthUser:
        """Authenticate; raises AuthorizationError on bad credentials."""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> AuthUser:
        """Create an account; raises AuthorizationError when refused."""

    @abstractmethod
    def sign_out(self) -> None:
        ...

    @abstractmethod
    def current_user(self) -> Optional[AuthUser]:
        ...

    @abstractmethod
    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Call listener(event, user) on auth events; returns an unsubscribe function."""


class SupabaseAuthProvider(AuthProvider):
    """AuthProvider over `client.auth` of a supabase Client."""

    def __init__(self, client):
        self.auth = client.auth

    @staticmethod
    def _to_user(user: Any) -> Optional[AuthUser]:
        if user is None:
            return None
        return AuthUser(id=str(user.id), email=getattr(user, "email", None))

    def sign_in(self, email: str, password: str) -> AuthUser:
        try:
            response = self.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            raise AuthorizationError(f"Sign-in failed: {e}") from e
        user = self._to_user(getattr(response, "user", None))
        if user is None:
            raise AuthorizationError("Sign-in failed: no user returned")
        return user

    def sign_up(self, email: str, password: str) -> AuthUser:
        try:
            response = self.auth.sign_up({"email": email, "password": password})
        except Exception as e:
            raise AuthorizationError(f"Account creation failed: {e}") from e
        user = self._to_user(getattr(response, "user", None))
        if user is None:
            raise AuthorizationError("Account creation failed: no user returned")
        return user

    def sign_out(self) -> None:
        try:
            self.auth.sign_out()
        except Exception as e:
            logger.warning(f"Supabase sign-out failed: {e}")

    def current_user(self) -> Optional[AuthUser]:
        try:
            response = self.auth.get_user()
        except Exception as e:
            logger.debug(f"No current Supabase user: {e}")
            return None
        return self._to_user(getattr(response, "user", None)) if response else None

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        def on_change(event, session) -> None:
            user = getattr(session, "user", None) if session else None
            listener(str(getattr(event, "value", event)), self._to_user(user))

        subscription = self.auth.on_auth_state_change(on_change)
        return subscription.unsubscribe


class MockAuthProvider(AuthProvider):
    """
    In-process accounts for tests and local-only mode.

    Usage:
        auth = MockAuthProvider({"admin@shop.bj": "secret"})
        auth.sign_in("admin@shop.bj", "secret")
    """

    def __init__(self, accounts: Optional[Dict[str, str]] = None):
        self._accounts: Dict[str, Dict[str, str]] = {}
        self._current: Optional[AuthUser] = None
        self._listeners: List[AuthListener] = []
        for email, password in (accounts or {}).items():
            self.add_account(email, password)

    def add_account(self, email: str, password: str, user_id: Optional[str] = None) -> AuthUser:
        user_id = user_id or str(uuid.uuid4())
        self._accounts[email] = {"id": user_id, "password": password}
        return AuthUser(id=user_id, email=email)

    def user_id(self, email: str) -> str:
        return self._accounts[email]["id"]

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self._current)

    def sign_in(self, email: str, password: str) -> AuthUser:
        account = self._accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthorizationError("Invalid login credentials")
        self._current = AuthUser(id=account["id"], email=email)
        self._emit(SIGNED_IN)
        return self._current

    def sign_up(self, email: str, password: str) -> AuthUser:
        if email in self._accounts:
            raise AuthorizationError("User already registered")
        self._current = self.add_account(email, password)
        self._emit(SIGNED_IN)
        return self._current

    def sign_out(self) -> None:
        self._current = None
        self._emit(SIGNED_OUT)

    def refresh_token(self) -> None:
        if self._current is not None:
            self._emit(TOKEN_REFRESHED)

    def current_user(self) -> Optional[AuthUser]:
        return self._current

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
