# =============================================================================
# shop_core/services/__init__.py
# Service Layer for the Boutique dashboards
# Separates business logic from UI presentation
# =============================================================================
"""
Usage Example:
-------------
    from shop_core.services import ReportService

    reports = ReportService(engine.state)
    result = reports.mobile_money_stats()
    if result.success:
        st.dataframe(result.data)
"""

from .base_service import BaseService, ServiceResult
from .report_service import ReportService

__all__ = [
    "BaseService",
    "ServiceResult",
    "ReportService",
]
