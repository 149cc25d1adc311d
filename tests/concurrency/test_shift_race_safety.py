"""
Race safety of the shift lifecycle, cashups and payroll runs.

Every test starts its workers behind a Barrier so their transactions
overlap.  The slot lock row serialises shift decisions for one
(employee, day); the unique constraints catch what slips past.

Expected Behavior:
- N concurrent first sales for one (employee, day) leave exactly one shift
- Two concurrent cashups of one shift: one succeeds, one is refused
- Two concurrent payroll runs of one month: one stored run
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from settlement_kernel.db.engine import get_session_factory
from settlement_kernel.domain.clock import SystemClock
from settlement_kernel.exceptions import CashupAlreadyExistsError, PayrollRunExistsError
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.models.payroll import PayrollRunModel
from settlement_kernel.models.shift import CashupModel, SaleLineModel, ShiftModel
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.cashup.service import CashupService
from settlement_modules.payroll import PayrollService
from tests.helpers import truncate_all_tables

pytestmark = pytest.mark.postgres

DAY = date(2025, 11, 14)


@pytest.fixture
def committed_db(db_engine, is_postgres):
    if not is_postgres:
        pytest.skip("row locks need PostgreSQL; set SETTLEMENT_TEST_DATABASE_URL")
    truncate_all_tables(db_engine)
    yield get_session_factory()
    truncate_all_tables(db_engine)


@pytest.fixture
def employee_id(committed_db):
    with committed_db() as session:
        employee = EmployeeModel(name="Racer", role="WAITER", employee_type="INSIDE")
        session.add(employee)
        session.commit()
        return employee.id


def run_concurrently(count, fn):
    barrier = Barrier(count)

    def worker(index):
        barrier.wait()
        return fn(index)

    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(worker, i) for i in range(count)]
        return [f.exception() or f.result() for f in futures]


class TestEditableShiftRace:

    def test_concurrent_first_sales_share_one_shift(self, committed_db, employee_id):
        factory = committed_db

        def sell(index):
            with factory() as session:
                shift, _ = ShiftService(session, SystemClock()).add_sale_line(
                    DAY, employee_id, f"ITEM-{index}", Decimal("1"), Decimal("100")
                )
                session.commit()
                return shift.id

        results = run_concurrently(8, sell)

        assert all(not isinstance(r, BaseException) for r in results), results
        assert len(set(results)) == 1
        with factory() as session:
            assert session.scalar(select(func.count()).select_from(ShiftModel)) == 1
            assert session.scalar(select(func.count()).select_from(SaleLineModel)) == 8


class TestCashupRace:

    def test_second_concurrent_cashup_is_refused(self, committed_db, employee_id):
        factory = committed_db
        with factory() as session:
            shift, _ = ShiftService(session).add_sale_line(
                DAY, employee_id, "CHAI", Decimal("1"), Decimal("100")
            )
            session.commit()

        def submit(index):
            with factory() as session:
                cashup = CashupService(session).submit_cashup(shift.id, submitted_by=f"till-{index}")
                session.commit()
                return cashup.id

        results = run_concurrently(2, submit)

        refused = [r for r in results if isinstance(r, CashupAlreadyExistsError)]
        stored = [r for r in results if not isinstance(r, BaseException)]
        assert len(refused) == 1 and len(stored) == 1
        with factory() as session:
            assert session.scalar(select(func.count()).select_from(CashupModel)) == 1


class TestPayrollRunRace:

    def test_one_run_per_month(self, committed_db, employee_id):
        factory = committed_db

        def run(index):
            with factory() as session:
                result = PayrollService(session).run_payroll(2025, 11, created_by=f"ops-{index}")
                session.commit()
                return result.id

        results = run_concurrently(2, run)

        assert len([r for r in results if isinstance(r, PayrollRunExistsError)]) == 1
        with factory() as session:
            assert session.scalar(select(func.count()).select_from(PayrollRunModel)) == 1
