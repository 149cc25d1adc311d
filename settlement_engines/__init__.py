"""
Pure settlement engines: bracket tables, field settlement and payroll
aggregation.  No I/O; every public engine call emits one
SETTLEMENT_ENGINE_TRACE log record.
"""

from settlement_engines.brackets import (
    BracketKind,
    BracketMatch,
    BracketTable,
    FlatTier,
    RateFlatTier,
    lookup_commission,
)
from settlement_engines.field_settlement import FieldSettlement, settle_field_dispatch
from settlement_engines.payroll_aggregation import (
    PayrollLineResult,
    aggregate_payroll,
    compute_line,
    snapshot_commission_amount,
    sum_gross,
)

__all__ = [
    "BracketKind",
    "BracketMatch",
    "BracketTable",
    "FieldSettlement",
    "FlatTier",
    "PayrollLineResult",
    "RateFlatTier",
    "aggregate_payroll",
    "compute_line",
    "lookup_commission",
    "settle_field_dispatch",
    "snapshot_commission_amount",
    "sum_gross",
]
