"""
Settlement modules: commission resolution and plan maintenance, cashup
snapshots, field dispatch settlement, monthly payroll and diagnostics.

Each module composes kernel services/selectors with the pure engines in
``settlement_engines``.  Services flush; the caller commits.
"""
