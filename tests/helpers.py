"""Shared test data and helpers for the settlement test suite."""

from sqlalchemy import text

from settlement_kernel.db.base import Base

# Small tables used across the suite; values mirror the seeded defaults.
FLAT_BRACKETS = [
    {"min": 100, "max": 500, "fixed": 100},
    {"min": 501, "max": 750, "fixed": 200},
]

INSIDE_BRACKETS = [
    {"min": 4000, "max": 5000, "fixed": 150},
    {"min": 5000, "max": 7000, "fixed": 250},
    {"min": 7000, "max": 10000, "fixed": 400},
]

RATE_BRACKETS = [
    {"min": 0, "ratePct": 5, "flat": 0},
    {"min": 1000, "ratePct": 5, "flat": 50},
]


def commission_snapshot(amount, **extra) -> dict:
    """Minimal cashup snapshot carrying a commission amount."""
    section = {"amount": amount if amount is None else str(amount), **extra}
    return {"meta": {"version": 1}, "commission": section}


def truncate_all_tables(engine) -> None:
    """Delete every row; used by tests that really commit."""
    with engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f"DELETE FROM {table.name}"))
        conn.commit()
