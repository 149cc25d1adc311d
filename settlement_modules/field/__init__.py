"""
Field Module (``settlement_modules.field``).

Stock handed to field waiters, the returns they bring back, and the
commission each dispatch settles to.  Dispatches and returns are recorded
through the shift lifecycle like any other sale.
"""

from settlement_modules.field.models import FieldDailySummary
from settlement_modules.field.service import FieldDispatchService

__all__ = ["FieldDailySummary", "FieldDispatchService"]
