# =============================================================================
# shop_core/services/base_service.py
# Result container shared by the engine and the report services
# =============================================================================

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shop_core.errors import ShopError
from shop_core.logging import LogContext, get_logger


@dataclass
class ServiceResult:
    """
    What the dashboards receive from calls that report failure instead of
    raising: `SyncEngine.submit` and every ReportService statistic.

    `data` is set on failures too; for submit it carries the SubmitOutcome,
    so a queued change is a failed result whose data says it was kept.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Optional[Dict[str, Any]] = None) -> ServiceResult:
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        data: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        return cls(success=False, data=data, error=error, error_code=error_code, metadata=metadata)

    @classmethod
    def from_exception(cls, e: Exception, data: Any = None) -> ServiceResult:
        """ShopError keeps its code and details; anything else becomes EXCEPTION."""
        if isinstance(e, ShopError):
            return cls.fail(e.message, error_code=e.code, data=data, metadata=e.details)
        return cls.fail(str(e), error_code="EXCEPTION", data=data)


class BaseService:
    """
    Report services compute one statistic per call through `safe_execute`,
    so a statistic that fails shows as an error block while the others
    still render.
    """

    def __init__(self):
        self.logger = get_logger(f"{type(self).__module__}.{type(self).__name__}")

    def safe_execute(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> ServiceResult:
        """
        Run func(*args, **kwargs) and wrap its return value or exception.

        Timing goes to DEBUG; reports are recomputed on every Streamlit rerun.
        """
        try:
            with LogContext(self.logger, operation, level=logging.DEBUG):
                data = func(*args, **kwargs)
        except ShopError as e:
            self.logger.warning(f"{operation} failed: [{e.code}] {e.message}")
            return ServiceResult.from_exception(e)
        except Exception as e:
            return ServiceResult.fail(f"{operation} failed: {e}", error_code="EXCEPTION")
        return ServiceResult.ok(data)
