"""
Settlement Kernel

Persistence and shared domain code for the settlement engine:
- Shift lifecycle with per-slot locking and an append-only event log
- Cashup snapshots as the commission source of truth
- Money as Decimal with explicit half-up rounding
- Structured JSON logging with context propagation
"""

__version__ = "0.1.0"
