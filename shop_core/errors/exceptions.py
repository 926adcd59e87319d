# =============================================================================
# shop_core/errors/exceptions.py
# Custom Exception Hierarchy for the Boutique sync core
# =============================================================================

from typing import Optional, Dict, Any


class ShopError(Exception):
    """
    Base exception for all shop_core errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "VALID_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SHOP_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# COMMAND / INPUT EXCEPTIONS
# =============================================================================

class ValidationError(ShopError):
    """Raised when a command is rejected before any state change"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            code="VALID_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class RemoteStoreError(ShopError):
    """Raised when the hosted data store rejects a call or cannot be reached"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


class CacheError(ShopError):
    """Raised when the local cache cannot be opened or written"""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code="CACHE_001",
            details=details,
            **kwargs,
        )


class QueueError(ShopError):
    """Raised when a pending action cannot be encoded or decoded"""

    def __init__(self, message: str, kind: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if kind:
            details["kind"] = kind

        super().__init__(
            message=message,
            code="QUEUE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# SESSION EXCEPTIONS
# =============================================================================

class AuthorizationError(ShopError):
    """Raised when sign-in fails or the account has no usable role"""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        role: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if user_id:
            details["user_id"] = user_id
        if role:
            details["role"] = role

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(ShopError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
