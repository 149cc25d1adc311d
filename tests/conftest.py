"""
Pytest fixtures for the settlement engine test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
- A database session per test, rolled back at teardown
- A deterministic clock and record factories

Environment Variables:
- SETTLEMENT_TEST_DATABASE_URL: database to run against.  Defaults to an
  in-memory SQLite database; set it to a PostgreSQL URL to run the
  concurrency tests as well.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from settlement_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from settlement_kernel.domain.clock import DeterministicClock
from settlement_kernel.domain.dtos import (
    CommissionRole,
    EmployeeRole,
    EmployeeType,
    WaiterMeta,
)
from settlement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.models.field_dispatch import FieldDispatchModel, FieldReturnModel
from settlement_kernel.models.shift import CashupModel, ShiftModel
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.commission.service import CommissionPlanService
from tests.helpers import FLAT_BRACKETS, INSIDE_BRACKETS

DEFAULT_TEST_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("SETTLEMENT_TEST_DATABASE_URL", DEFAULT_TEST_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture settlement logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, shift_service):
            shift_service.close_shift(shift_id)
            logs = captured_logs()
            assert any(r["message"] == "shift_closed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("settlement")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """One engine for the whole session; tables are created once."""
    eng = init_engine_from_url(get_database_url())
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def is_postgres(db_engine) -> bool:
    return db_engine.dialect.name == "postgresql"


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection;
    ``commit()`` inside a test only releases a savepoint and everything
    is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock and services
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 11, 14, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def shift_date() -> date:
    return date(2025, 11, 14)


@pytest.fixture
def plan_service(session, clock) -> CommissionPlanService:
    return CommissionPlanService(session, clock)


# =============================================================================
# Record factories
# =============================================================================


@pytest.fixture
def make_employee(session):
    """Create an employee row and return its DTO."""
    counter = {"n": 0}

    def _make(
        name: str | None = None,
        employee_type: EmployeeType = EmployeeType.INSIDE,
        role: EmployeeRole = EmployeeRole.WAITER,
        commission_plan_id=None,
        is_active: bool = True,
    ):
        counter["n"] += 1
        model = EmployeeModel(
            name=name or f"Employee {counter['n']}",
            role=role.value,
            employee_type=employee_type.value,
            commission_plan_id=commission_plan_id,
            is_active=is_active,
        )
        session.add(model)
        session.flush()
        return model.to_dto()

    return _make


@pytest.fixture
def make_plan(plan_service):
    """Upsert a commission plan (default for its role unless told otherwise)."""

    def _make(
        name: str,
        role: CommissionRole,
        brackets=None,
        is_default: bool = True,
    ):
        return plan_service.upsert_plan(
            name, role, brackets if brackets is not None else FLAT_BRACKETS, is_default
        )

    return _make


@pytest.fixture
def field_plan(make_plan):
    return make_plan("Field Test Brackets", CommissionRole.FIELD, FLAT_BRACKETS)


@pytest.fixture
def inside_plan(make_plan):
    return make_plan("Inside Test Brackets", CommissionRole.INSIDE, INSIDE_BRACKETS)


@pytest.fixture
def make_cashup(session, clock):
    """
    Insert a settled shift with a hand-written snapshot.

    Lets payroll and diagnostics tests control snapshot contents exactly,
    including malformed ones.
    """
    counter = {"seq": 0}

    def _make(employee_id, shift_date: date, snapshot: dict):
        counter["seq"] += 1
        shift = ShiftModel(
            employee_id=employee_id,
            shift_date=shift_date,
            slot_seq=counter["seq"],
            opened_at=clock.now(),
            closed_at=clock.now(),
        )
        session.add(shift)
        session.flush()
        cashup = CashupModel(shift=shift, snapshot=snapshot)
        session.add(cashup)
        session.flush()
        return cashup.to_dto()

    return _make


@pytest.fixture
def make_dispatch(session, clock):
    """
    Insert a dispatch (and optionally its return) without validation.

    A return is attached to ``shift_id`` when given, otherwise to the
    waiter's editable shift for the dispatch date.
    """
    shifts = ShiftService(session, clock)

    def _make(
        waiter_id,
        dispatch_date: date,
        qty: Decimal | int,
        price: Decimal | int,
        returned: Decimal | int | None = None,
        loss: Decimal | int = 0,
        cash: Decimal | int = 0,
        item_code: str = "SAMOSA",
        shift_id=None,
    ):
        dispatch = FieldDispatchModel(
            waiter_id=waiter_id,
            item_code=item_code,
            qty_dispatched=Decimal(qty),
            price_each=Decimal(price),
            dispatch_date=dispatch_date,
        )
        session.add(dispatch)
        if returned is not None:
            if shift_id is None:
                shift_id = shifts.get_or_create_editable_shift(
                    dispatch_date, waiter_id, WaiterMeta(waiter_type=EmployeeType.FIELD)
                ).id
            session.add(FieldReturnModel(
                dispatch=dispatch,
                shift_id=shift_id,
                qty_returned=Decimal(returned),
                loss_qty=Decimal(loss),
                cash_collected=Decimal(cash),
                returned_on=dispatch_date,
            ))
        session.flush()
        return dispatch.to_dto()

    return _make
