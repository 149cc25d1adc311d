"""
Cashup Module (``settlement_modules.cashup``).

Builds the end-of-shift snapshot (live preview) and persists it exactly
once per shift.  A persisted cashup marks its shift settled; later sales
for the same employee and day go to a new shift.
"""

from settlement_modules.cashup.service import (
    BASIS_CASH_COLLECTED,
    BASIS_DAILY_SALES,
    SNAPSHOT_VERSION,
    CashupService,
)

__all__ = [
    "BASIS_CASH_COLLECTED",
    "BASIS_DAILY_SALES",
    "SNAPSHOT_VERSION",
    "CashupService",
]
