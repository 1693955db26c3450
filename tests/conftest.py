"""Pytest fixtures for firm payroll tests."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncGenerator, Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from firm_payroll.database import create_session_factory
from firm_payroll.models import (
    Base,
    Employee,
    EmployeeAllowance,
    PayrollRun,
    SalarySlip,
)
from firm_payroll.services import GeneralLedger, JournalLedger, PayrollRunService, RunLockManager
from firm_payroll.services.commands import CreateRunCommand, PayPeriodInput, RunConfiguration
from firm_payroll.services.employee_store import EmployeeStore
from firm_payroll.tenancy import TenantContext

# One shared in-memory SQLite connection per test
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FailingLedger(GeneralLedger):
    """Posts through a real ledger but fails on the Nth slip."""

    def __init__(self, inner: GeneralLedger, fail_on: int):
        self.inner = inner
        self.fail_on = fail_on
        self.calls = 0

    async def post_salary_slip(self, slip: SalarySlip) -> UUID:
        self.calls += 1
        if self.calls == self.fail_on:
            raise RuntimeError("ledger unavailable")
        return await self.inner.post_salary_slip(slip)


class SlowEmployeeStore(EmployeeStore):
    """Employee store that stalls before answering."""

    def __init__(self, session: AsyncSession, delay: float):
        super().__init__(session)
        self.delay = delay

    async def find_employees(self, *args, **kwargs) -> list[Employee]:
        await asyncio.sleep(self.delay)
        return await super().find_employees(*args, **kwargs)


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tenant() -> TenantContext:
    return TenantContext.for_firm(uuid4())


@pytest.fixture
def other_tenant() -> TenantContext:
    return TenantContext.for_firm(uuid4())


@pytest.fixture
def lawyer_tenant() -> TenantContext:
    return TenantContext.for_lawyer(uuid4())


@pytest.fixture
def actor_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_employee(session: AsyncSession, tenant: TenantContext):
    """Factory for committed employee records (defaults to the main tenant)."""
    counter = itertools.count(1)

    async def _make(
        basic_salary: str = "5000",
        is_saudi: bool = True,
        allowances: Iterable[tuple[str, str]] = (),
        owner: TenantContext | None = None,
        **overrides,
    ) -> Employee:
        n = next(counter)
        employee = Employee(
            **(owner or tenant).owner_columns(),
            employee_number=f"EMP-{n:03d}",
            full_name_en=f"Employee {n}",
            full_name_ar=f"موظف {n}",
            national_id=f"10{n:08d}",
            is_saudi=is_saudi,
            gender="male" if n % 2 else "female",
            employment_status="active",
            employment_type="full_time",
            department="Litigation",
            job_title="Associate",
            basic_salary=Decimal(basic_salary),
            payment_method="bank_transfer",
            bank_name="Al Rajhi Bank",
            iban=f"SA0380000000608010167{n:03d}",
            allowances=[
                EmployeeAllowance(name=name, amount=Decimal(amount)) for name, amount in allowances
            ],
        )
        for key, value in overrides.items():
            setattr(employee, key, value)
        session.add(employee)
        await session.commit()
        return employee

    return _make


@pytest.fixture
def scenario_roster(make_employee):
    """Two Saudi employees at 5000 and one non-Saudi at 8000; returns their ids."""

    async def _roster() -> list[UUID]:
        first = await make_employee("5000", is_saudi=True)
        second = await make_employee("5000", is_saudi=True)
        third = await make_employee("8000", is_saudi=False)
        return [first.employee_id, second.employee_id, third.employee_id]

    return _roster


@pytest.fixture
def make_service(session: AsyncSession):
    """Build a service with its own lock registry."""

    def _make(**kwargs) -> PayrollRunService:
        kwargs.setdefault("lock_manager", RunLockManager())
        return PayrollRunService(session, **kwargs)

    return _make


@pytest.fixture
def service(make_service) -> PayrollRunService:
    return make_service()


@pytest.fixture
def failing_ledger(session: AsyncSession):
    def _make(fail_on: int) -> FailingLedger:
        return FailingLedger(JournalLedger(session), fail_on)

    return _make


@pytest.fixture
def slow_employee_store(session: AsyncSession):
    def _make(delay: float) -> SlowEmployeeStore:
        return SlowEmployeeStore(session, delay)

    return _make


@pytest.fixture
def create_run(service: PayrollRunService, tenant: TenantContext, actor_id: UUID):
    """Create a draft run for January 2025 unless told otherwise."""

    async def _create(
        month: int = 1,
        year: int = 2025,
        owner: TenantContext | None = None,
        configuration: RunConfiguration | None = None,
        run_name: str = "Monthly payroll",
    ) -> PayrollRun:
        command = CreateRunCommand(
            pay_period=PayPeriodInput(
                month=month, year=year, payment_date=date(year, month, 27)
            ),
            run_name=run_name,
            run_name_ar="رواتب الشهر",
            configuration=configuration,
        )
        return await service.create_run(owner or tenant, command, actor_id)

    return _create


@pytest.fixture
def count_rows(session: AsyncSession):
    """Count rows of a model, optionally for one payroll run."""

    async def _count(model, payroll_run_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(model)
        if payroll_run_id is not None:
            stmt = stmt.where(model.payroll_run_id == payroll_run_id)
        return await session.scalar(stmt) or 0

    return _count


def net_pay_sum(payroll_run: PayrollRun) -> Decimal:
    return sum((row.net_pay for row in payroll_run.employees), Decimal("0"))


@pytest.fixture
def assert_balanced():
    """Assert the stored net total equals the sum of the snapshot rows."""

    def _check(payroll_run: PayrollRun) -> None:
        assert net_pay_sum(payroll_run) == payroll_run.total_net_pay
        assert payroll_run.total_employees == len(payroll_run.employees)

    return _check

