# =============================================================================
# shop_core/auth/__init__.py
# Authentication and session handling
# =============================================================================

from shop_core.auth.providers import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthProvider,
    AuthUser,
    MockAuthProvider,
    SupabaseAuthProvider,
)
from shop_core.auth.session import SessionManager, SessionUser

__all__ = [
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "AuthProvider",
    "AuthUser",
    "MockAuthProvider",
    "SupabaseAuthProvider",
    "SessionManager",
    "SessionUser",
]
