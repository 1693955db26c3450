"""Payroll run lifecycle: create, calculate, validate, approve, cancel."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from firm_payroll.calculators import PayrollCalculator
from firm_payroll.errors import (
    CalculationTimeoutError,
    ConcurrencyConflictError,
    InvalidAmountError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    TenantMismatchError,
)
from firm_payroll.models import PayrollRunEmployee
from firm_payroll.services.commands import (
    EmployeeAdjustmentCommand,
    RunConfiguration,
    RunListFilters,
    UpdateRunCommand,
)

pytestmark = pytest.mark.asyncio


class TestCreateRun:
    """Test draft creation and numbering."""

    async def test_create_draft(self, create_run, actor_id):
        run = await create_run()

        assert run.status == "draft"
        assert run.run_number == "RUN-2025-001"
        assert run.period_start == date(2025, 1, 1)
        assert run.period_end == date(2025, 1, 31)
        assert run.created_by == actor_id
        assert run.total_employees == 0
        assert [e.action_type for e in run.processing_log] == ["creation"]

    async def test_run_numbers_are_sequential_per_tenant(self, create_run, other_tenant):
        """Each tenant numbers its runs independently per year."""
        first = await create_run()
        second = await create_run(month=2)
        other = await create_run(owner=other_tenant)
        next_year = await create_run(year=2026)

        assert first.run_number == "RUN-2025-001"
        assert second.run_number == "RUN-2025-002"
        assert other.run_number == "RUN-2025-001"
        assert next_year.run_number == "RUN-2026-001"

    async def test_configured_exclusions(self, create_run, scenario_roster, service, tenant):
        """Employees excluded at creation are left out of the calculation."""
        ids = await scenario_roster()
        run = await create_run(configuration=RunConfiguration(excluded_employee_ids=[ids[2]]))
        assert run.excluded_employee_ids == [ids[2]]

        run = await service.calculate(run.payroll_run_id, tenant)
        assert {row.employee_id for row in run.employees} == set(ids[:2])


class TestCalculate:
    """Test whole-run calculation."""

    async def test_scenario_totals(self, create_run, scenario_roster, service, tenant, assert_balanced):
        """2 Saudi at 5000 + 1 non-Saudi at 8000 with GOSI on."""
        await scenario_roster()
        run = await create_run()

        run = await service.calculate(run.payroll_run_id, tenant)

        assert run.status == "calculated"
        assert run.total_employees == 3
        assert run.total_basic_salary == Decimal("18000")
        assert run.total_gosi == Decimal("976")
        assert run.total_employer_gosi == Decimal("1436")
        assert run.total_gross_pay == Decimal("18000")
        assert run.total_deductions == Decimal("976")
        assert run.total_net_pay == Decimal("17024")
        assert run.statistics["employees_by_nationality"] == {"saudi": 2, "non_saudi": 1}
        assert_balanced(run)

        entry = run.processing_log[-1]
        assert entry.action_type == "calculation"
        assert entry.status == "success"
        assert entry.affected_employees == 3

    async def test_calculate_is_idempotent(self, create_run, scenario_roster, service, tenant, session):
        """Calculating twice replaces the snapshot instead of appending to it."""
        await scenario_roster()
        run = await create_run()

        first = await service.calculate(run.payroll_run_id, tenant)
        totals = (first.total_employees, first.total_net_pay, first.total_gosi)
        second = await service.calculate(run.payroll_run_id, tenant)

        assert (second.total_employees, second.total_net_pay, second.total_gosi) == totals
        stored = await session.scalars(
            select(PayrollRunEmployee).where(PayrollRunEmployee.payroll_run_id == run.payroll_run_id)
        )
        assert len(stored.all()) == 3

    async def test_only_matching_employees(self, create_run, make_employee, service, tenant, other_tenant):
        """Inactive employees and other tenants' staff are not picked up."""
        active = await make_employee("5000")
        await make_employee("6000", employment_status="terminated")
        await make_employee("7000", owner=other_tenant)
        await make_employee("7500", employment_type="intern")
        run = await create_run()

        run = await service.calculate(run.payroll_run_id, tenant)

        assert [row.employee_id for row in run.employees] == [active.employee_id]

    async def test_empty_type_filter_includes_every_type(self, create_run, make_employee, service, tenant):
        await make_employee("5000")
        await make_employee("5000", employment_type="intern")
        run = await create_run(configuration=RunConfiguration(included_employee_types=[]))

        run = await service.calculate(run.payroll_run_id, tenant)
        assert run.total_employees == 2

    async def test_gosi_disabled(self, create_run, scenario_roster, service, tenant):
        await scenario_roster()
        run = await create_run(configuration=RunConfiguration(calculate_gosi=False))

        run = await service.calculate(run.payroll_run_id, tenant)
        assert run.total_gosi == 0
        assert run.total_employer_gosi == 0
        assert run.total_net_pay == Decimal("18000")

    async def test_recalculation_clears_manual_adjustments(
        self, create_run, scenario_roster, service, tenant
    ):
        """A full calculation starts every employee from zero manual amounts."""
        ids = await scenario_roster()
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)
        await service.adjust_employee(
            run.payroll_run_id, ids[0], tenant, EmployeeAdjustmentCommand(bonus=Decimal("1000"))
        )

        run = await service.calculate(run.payroll_run_id, tenant)

        assert run.find_employee(ids[0]).bonus == 0
        assert run.total_net_pay == Decimal("17024")

    async def test_invalid_salary_rolls_back(self, create_run, make_employee, make_service, tenant):
        """A salary over the ceiling fails the run and leaves it in draft."""
        await make_employee("5000")
        await make_employee("500000")
        run = await create_run()
        service = make_service(calculator=PayrollCalculator(max_basic_salary=Decimal("100000")))

        with pytest.raises(InvalidAmountError):
            await service.calculate(run.payroll_run_id, tenant)

        run = await service.get_run(run.payroll_run_id, tenant)
        assert run.status == "draft"
        assert run.employees == []
        assert run.processing_log[-1].status == "failed"
        assert run.processing_log[-1].action_type == "calculation"

    async def test_timeout(self, create_run, make_employee, make_service, slow_employee_store, tenant):
        """A calculation over its time budget fails without partial state."""
        await make_employee("5000")
        run = await create_run()
        service = make_service(
            calculator=PayrollCalculator(timeout_seconds=0.05),
            employee_store=slow_employee_store(delay=1.0),
        )

        with pytest.raises(CalculationTimeoutError) as exc_info:
            await service.calculate(run.payroll_run_id, tenant)

        assert exc_info.value.timeout_seconds == 0.05
        run = await service.get_run(run.payroll_run_id, tenant)
        assert run.status == "draft"
        assert run.processing_log[-1].status == "failed"

    async def test_locked_run_rejected(self, create_run, service, tenant, session):
        """An operation already in flight on the run blocks a second one."""
        run = await create_run()

        async with service.locks.hold(session, run.payroll_run_id):
            with pytest.raises(ConcurrencyConflictError):
                await service.calculate(run.payroll_run_id, tenant)

        run = await service.calculate(run.payroll_run_id, tenant)
        assert run.status == "calculated"

    async def test_every_mutation_bumps_version(self, create_run, scenario_roster, service, tenant):
        await scenario_roster()
        run = await create_run()
        versions = [run.version]

        run = await service.calculate(run.payroll_run_id, tenant)
        versions.append(run.version)
        await service.validate(run.payroll_run_id, tenant)
        run = await service.get_run(run.payroll_run_id, tenant)
        versions.append(run.version)
        run = await service.approve(run.payroll_run_id, tenant)
        versions.append(run.version)

        assert versions == sorted(set(versions))


class TestValidateAndApprove:
    """Test validation and the approval guard."""

    async def test_validate_stores_result(self, create_run, make_employee, service, tenant, actor_id):
        await make_employee("5000", iban=None)
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)

        result = await service.validate(run.payroll_run_id, tenant, actor_id)

        assert result.codes() == {"MISSING_IBAN"}
        assert result.can_proceed is True
        run = await service.get_run(run.payroll_run_id, tenant)
        assert run.validated is True
        assert run.error_count == 1
        assert run.validated_by == actor_id
        assert run.processing_log[-1].action_type == "validation"

    async def test_approve(self, create_run, scenario_roster, service, tenant, actor_id):
        await scenario_roster()
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)

        run = await service.approve(run.payroll_run_id, tenant, actor_id, "Looks right")

        assert run.status == "approved"
        assert run.approval_status == "approved"
        assert run.approved_by == actor_id
        assert run.approved_at is not None
        assert run.approver_notes == "Looks right"
        assert run.validated is True

    async def test_approve_rejected_on_negative_net_pay(
        self, create_run, make_employee, service, tenant, actor_id
    ):
        """Blocking validation errors refuse approval and are logged as a failure."""
        employee = await make_employee("1000")
        employee_id = employee.employee_id
        run = await create_run()
        run_id = run.payroll_run_id
        await service.calculate(run_id, tenant)
        await service.adjust_employee(
            run_id, employee_id, tenant, EmployeeAdjustmentCommand(loans=Decimal("5000"))
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.approve(run_id, tenant, actor_id)

        assert "critical" in exc_info.value.reason
        run = await service.get_run(run_id, tenant)
        assert run.status == "calculated"
        assert run.has_blocking_errors is True
        assert run.critical_error_count == 1
        entry = run.processing_log[-1]
        assert (entry.action_type, entry.status) == ("approval", "failed")

    async def test_approve_requires_calculated(self, create_run, service, tenant):
        run = await create_run()

        with pytest.raises(InvalidStateError):
            await service.approve(run.payroll_run_id, tenant)

        run = await service.get_run(run.payroll_run_id, tenant)
        assert run.status == "draft"
        assert run.processing_log[-1].status == "failed"

    async def test_roster_frozen_after_approval(self, create_run, scenario_roster, service, tenant):
        ids = await scenario_roster()
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)
        await service.approve(run.payroll_run_id, tenant)

        with pytest.raises(InvalidStateError):
            await service.exclude_employee(run.payroll_run_id, ids[0], tenant)
        with pytest.raises(InvalidStateError):
            await service.calculate(run.payroll_run_id, tenant)


class TestCancel:
    """Test cancellation and terminality."""

    @pytest.mark.parametrize("steps", [0, 1, 2])
    async def test_cancel_before_payment(self, steps, create_run, scenario_roster, service, tenant):
        """draft, calculated and approved runs can be cancelled."""
        await scenario_roster()
        run = await create_run()
        if steps >= 1:
            await service.calculate(run.payroll_run_id, tenant)
        if steps >= 2:
            await service.approve(run.payroll_run_id, tenant)

        run = await service.cancel(run.payroll_run_id, tenant, reason="Wrong month")

        assert run.status == "cancelled"
        assert run.processing_log[-1].details == "Wrong month"

    async def test_cancelled_is_terminal(self, create_run, service, tenant):
        run = await create_run()
        run_id = run.payroll_run_id
        await service.cancel(run_id, tenant)

        with pytest.raises(InvalidStateError):
            await service.calculate(run_id, tenant)
        with pytest.raises(InvalidStateError):
            await service.cancel(run_id, tenant)

        run = await service.get_run(run_id, tenant)
        assert run.status == "cancelled"
        assert [(e.action_type, e.status) for e in run.processing_log[-2:]] == [
            ("calculation", "failed"),
            ("cancellation", "failed"),
        ]

    async def test_paid_cannot_be_cancelled(self, create_run, scenario_roster, service, tenant):
        await scenario_roster()
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)
        await service.approve(run.payroll_run_id, tenant)
        await service.process_payments(run.payroll_run_id, tenant)

        with pytest.raises(InvalidStateError):
            await service.cancel(run.payroll_run_id, tenant)


class TestRunMaintenance:
    """Test update, delete, list and stats."""

    async def test_update_draft(self, create_run, service, tenant):
        run = await create_run()

        run = await service.update_run(
            run.payroll_run_id,
            tenant,
            UpdateRunCommand(
                run_name="January 2025",
                notes="Includes new hires",
                configuration=RunConfiguration(calculate_gosi=False, excluded_employee_ids=[uuid4()]),
            ),
        )

        assert run.run_name == "January 2025"
        assert run.notes == "Includes new hires"
        assert run.calculate_gosi is False
        assert len(run.exclusions) == 1
        assert run.processing_log[-1].action_type == "update"

    async def test_configuration_locked_after_calculation(self, create_run, service, tenant):
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)

        with pytest.raises(InvalidStateError):
            await service.update_run(
                run.payroll_run_id,
                tenant,
                UpdateRunCommand(configuration=RunConfiguration(calculate_gosi=False)),
            )

        run = await service.update_run(
            run.payroll_run_id, tenant, UpdateRunCommand(run_name="Renamed")
        )
        assert run.run_name == "Renamed"
        assert run.calculate_gosi is True

    async def test_delete_draft_only(self, create_run, service, tenant):
        draft = await create_run()
        calculated = await create_run(month=2)
        await service.calculate(calculated.payroll_run_id, tenant)

        await service.delete_run(draft.payroll_run_id, tenant)
        with pytest.raises(NotFoundError):
            await service.get_run(draft.payroll_run_id, tenant)

        with pytest.raises(InvalidStateError):
            await service.delete_run(calculated.payroll_run_id, tenant)

    async def test_bulk_delete(self, create_run, service, tenant, other_tenant):
        """Only the caller's drafts are deleted."""
        draft = await create_run()
        calculated = await create_run(month=2)
        await service.calculate(calculated.payroll_run_id, tenant)
        foreign = await create_run(owner=other_tenant)

        deleted = await service.bulk_delete_runs(
            tenant, [draft.payroll_run_id, calculated.payroll_run_id, foreign.payroll_run_id, uuid4()]
        )

        assert deleted == 1
        page = await service.list_runs(tenant)
        assert [r.payroll_run_id for r in page.items] == [calculated.payroll_run_id]
        assert (await service.list_runs(other_tenant)).total == 1

    async def test_list_filters(self, create_run, service, tenant):
        await create_run(month=1, run_name="January payroll")
        await create_run(month=2, run_name="February payroll")
        await create_run(month=3, run_name="March payroll")

        page = await service.list_runs(tenant, RunListFilters(month=2))
        assert [r.run_name for r in page.items] == ["February payroll"]

        page = await service.list_runs(tenant, RunListFilters(search="march"))
        assert page.total == 1

        page = await service.list_runs(tenant, RunListFilters(page=2, page_size=2))
        assert page.total == 3
        assert page.pages == 2
        assert len(page.items) == 1

    async def test_stats(self, create_run, scenario_roster, service, tenant):
        await scenario_roster()
        await create_run(month=3)
        pending = await create_run(month=2)
        paid = await create_run(month=1)
        await service.calculate(pending.payroll_run_id, tenant)
        await service.calculate(paid.payroll_run_id, tenant)
        await service.approve(paid.payroll_run_id, tenant)
        await service.process_payments(paid.payroll_run_id, tenant)

        stats = await service.get_stats(tenant, today=date(2025, 1, 20))

        assert stats["total_runs"] == 3
        assert stats["draft_runs"] == 1
        assert stats["pending_approval"] == 1
        assert stats["paid_this_month"] == {"count": 1, "total": "17024.00"}


class TestTenancy:
    """Test tenant scoping of run access."""

    async def test_other_tenant_cannot_read(self, create_run, service, other_tenant):
        run = await create_run()

        with pytest.raises(TenantMismatchError):
            await service.get_run(run.payroll_run_id, other_tenant)

    async def test_other_tenant_cannot_mutate(self, create_run, service, tenant, other_tenant):
        """A foreign tenant's attempt leaves no trace on the run."""
        run = await create_run()

        with pytest.raises(TenantMismatchError):
            await service.cancel(run.payroll_run_id, other_tenant)

        run = await service.get_run(run.payroll_run_id, tenant)
        assert run.status == "draft"
        assert len(run.processing_log) == 1

    async def test_lawyer_tenant(self, create_run, make_employee, service, lawyer_tenant):
        """Solo practitioners own runs through lawyer_id."""
        await make_employee("5000", owner=lawyer_tenant)
        run = await create_run(owner=lawyer_tenant)

        run = await service.calculate(run.payroll_run_id, lawyer_tenant)

        assert run.firm_id is None
        assert run.lawyer_id == lawyer_tenant.lawyer_id
        assert run.total_employees == 1

    async def test_missing_run(self, service, tenant):
        with pytest.raises(NotFoundError):
            await service.get_run(uuid4(), tenant)
