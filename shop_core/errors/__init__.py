# =============================================================================
# shop_core/errors/__init__.py
# Centralized Error Handling for the Boutique sync core
# =============================================================================

from .exceptions import (
    ShopError,
    ValidationError,
    RemoteStoreError,
    CacheError,
    QueueError,
    AuthorizationError,
    ConfigurationError,
)

__all__ = [
    "ShopError",
    "ValidationError",
    "RemoteStoreError",
    "CacheError",
    "QueueError",
    "AuthorizationError",
    "ConfigurationError",
]
