"""
Payroll Module (``settlement_modules.payroll``).

Monthly commission payroll: gross from cashup snapshots, salary deductions
applied up to gross (optionally capped), the remainder carried forward.
"""

from settlement_modules.payroll.models import PayrollLine, PayrollRun
from settlement_modules.payroll.service import PayrollService

__all__ = ["PayrollLine", "PayrollRun", "PayrollService"]
