"""Per-employee changes to a calculated run: exclude, include, recalculate, adjust, hold."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.calculators import (
    FinancialSummary,
    ManualDeductions,
    ManualEarnings,
    PayrollCalculator,
    apply_delta,
)
from firm_payroll.calculators.engine import copy_employee_identity, write_computation
from firm_payroll.errors import NotFoundError, ensure_valid_amount
from firm_payroll.models import PayrollRun, PayrollRunEmployee, PayrollRunExclusion, utcnow
from firm_payroll.services.commands import EmployeeAdjustmentCommand
from firm_payroll.services.employee_store import EmployeeStore
from firm_payroll.services.state_machine import Operation, PayrollRunStateMachine
from firm_payroll.tenancy import TenantContext

logger = logging.getLogger(__name__)

DEFAULT_EXCLUSION_REASON = "Manually excluded"


@dataclass(frozen=True)
class NetPayChange:
    """Net pay of one employee before and after a roster change."""

    employee_id: UUID
    old_net_pay: Decimal
    new_net_pay: Decimal

    @property
    def difference(self) -> Decimal:
        return self.new_net_pay - self.old_net_pay


def refresh_counts(payroll_run: PayrollRun) -> None:
    """Recount roster sizes from the snapshot."""
    payroll_run.total_employees = len(payroll_run.employees)
    payroll_run.processed_employees = len(payroll_run.employees)
    payroll_run.on_hold_employees = sum(1 for row in payroll_run.employees if row.on_hold)


class RosterService:
    """Incremental roster edits.

    Every change adjusts the run summary by exactly the Decimal values stored
    on the affected snapshot row, so exclude followed by include restores the
    summary when the employee record has not changed in between.
    """

    def __init__(
        self,
        session: AsyncSession,
        calculator: PayrollCalculator | None = None,
        employee_store: EmployeeStore | None = None,
    ):
        self.session = session
        self.calculator = calculator or PayrollCalculator()
        self.employee_store = employee_store or EmployeeStore(session)

    def _require_row(self, payroll_run: PayrollRun, employee_id: UUID) -> PayrollRunEmployee:
        row = payroll_run.find_employee(employee_id)
        if row is None:
            raise NotFoundError("Employee", employee_id, "not in payroll run")
        return row

    async def exclude(
        self,
        payroll_run: PayrollRun,
        employee_id: UUID,
        reason: str | None,
        actor_id: UUID | None,
    ) -> PayrollRunEmployee:
        """Drop an employee from the snapshot and record the exclusion."""
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.EXCLUDE)
        row = self._require_row(payroll_run, employee_id)

        apply_delta(payroll_run, row, None)
        payroll_run.employees.remove(row)
        if payroll_run.find_exclusion(employee_id) is None:
            payroll_run.exclusions.append(
                PayrollRunExclusion(
                    employee_id=employee_id,
                    reason=reason or DEFAULT_EXCLUSION_REASON,
                    excluded_by=actor_id,
                    excluded_at=utcnow(),
                )
            )
        refresh_counts(payroll_run)
        return row

    async def include(
        self,
        payroll_run: PayrollRun,
        employee_id: UUID,
        tenant: TenantContext,
    ) -> PayrollRunEmployee:
        """Reverse an exclusion with a fresh computation from the employee record."""
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.INCLUDE)
        exclusion = payroll_run.find_exclusion(employee_id)
        if exclusion is None:
            raise NotFoundError("Employee", employee_id, "not excluded from payroll run")

        employee = await self.employee_store.find_employee(employee_id, tenant)
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        computation = self.calculator.compute_employee_pay(
            employee, calculate_gosi=payroll_run.calculate_gosi
        )
        position = max((r.position for r in payroll_run.employees), default=-1) + 1
        row = self.calculator.snapshot(employee, computation, position)

        payroll_run.exclusions.remove(exclusion)
        payroll_run.employees.append(row)
        apply_delta(payroll_run, None, row)
        refresh_counts(payroll_run)
        return row

    async def recalculate(
        self,
        payroll_run: PayrollRun,
        employee_id: UUID,
        tenant: TenantContext,
    ) -> NetPayChange:
        """Refresh one row from the employee record, keeping manual earnings and deductions."""
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.RECALCULATE)
        row = self._require_row(payroll_run, employee_id)

        employee = await self.employee_store.find_employee(employee_id, tenant)
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        old = FinancialSummary.of_row(row)
        computation = self.calculator.compute_employee_pay(
            employee,
            calculate_gosi=payroll_run.calculate_gosi,
            manual_earnings=ManualEarnings.from_row(row),
            manual_deductions=ManualDeductions.from_row(row),
        )
        copy_employee_identity(row, employee)
        write_computation(row, computation)
        row.calculated_at = utcnow()

        apply_delta(payroll_run, old, row)
        return NetPayChange(employee_id, old.total_net_pay, row.net_pay)

    async def adjust(
        self,
        payroll_run: PayrollRun,
        employee_id: UUID,
        command: EmployeeAdjustmentCommand,
    ) -> NetPayChange:
        """Set manual earnings/deductions on one row and re-derive its totals."""
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.ADJUST)
        row = self._require_row(payroll_run, employee_id)

        changes = {
            name: ensure_valid_amount(name, value, row.employee_number)
            for name, value in command.changes().items()
        }
        old = FinancialSummary.of_row(row)
        for name, value in changes.items():
            setattr(row, name, value)

        earnings = ManualEarnings.from_row(row)
        deductions = ManualDeductions.from_row(row)
        row.gross_pay = row.basic_salary + row.allowances + earnings.total
        row.total_deductions = row.gosi + deductions.total
        row.net_pay = row.gross_pay - row.total_deductions

        apply_delta(payroll_run, old, row)
        return NetPayChange(employee_id, old.total_net_pay, row.net_pay)

    async def hold(
        self,
        payroll_run: PayrollRun,
        employee_id: UUID,
        reason: str | None,
        actor_id: UUID | None,
    ) -> PayrollRunEmployee:
        """Mark a row on hold. Totals are unchanged; payment skips held rows."""
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.HOLD)
        row = self._require_row(payroll_run, employee_id)

        row.on_hold = True
        row.on_hold_reason = reason
        row.on_hold_by = actor_id
        row.on_hold_at = utcnow()
        row.status = "on_hold"
        refresh_counts(payroll_run)
        return row

    async def unhold(self, payroll_run: PayrollRun, employee_id: UUID) -> PayrollRunEmployee:
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.UNHOLD)
        row = self._require_row(payroll_run, employee_id)

        row.on_hold = False
        row.on_hold_reason = None
        row.on_hold_by = None
        row.on_hold_at = None
        row.status = "calculated"
        refresh_counts(payroll_run)
        return row
