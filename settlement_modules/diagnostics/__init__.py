"""
Diagnostics Module (``settlement_modules.diagnostics``).

Read-only checks over stored cashup snapshots that point operators at
commission figures worth a second look.
"""

from settlement_modules.diagnostics.models import (
    DiagnosticProblem,
    DiagnosticReport,
    ProblemKind,
)
from settlement_modules.diagnostics.service import CommissionDiagnostics

__all__ = [
    "CommissionDiagnostics",
    "DiagnosticProblem",
    "DiagnosticReport",
    "ProblemKind",
]
