"""Payroll calculation engine.

Pure computation over already-loaded employees: no queries and no commits.
The run service fetches the roster, hands it to the engine and persists
whatever the engine returns.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from firm_payroll.calculators.gosi import compute_gosi
from firm_payroll.calculators.types import (
    ZERO,
    FinancialSummary,
    ManualDeductions,
    ManualEarnings,
    PayComputation,
    to_money,
)
from firm_payroll.config import get_settings
from firm_payroll.errors import CalculationTimeoutError, ensure_valid_amount
from firm_payroll.models import Employee, PayrollRun, PayrollRunEmployee, utcnow


@dataclass
class RosterCalculation:
    """Result of calculating a whole run."""

    payroll_run_id: UUID
    rows: list[PayrollRunEmployee]
    summary: FinancialSummary
    statistics: dict[str, Any] = field(default_factory=dict)
    duration_ms: int = 0


def summarize(rows: list[PayrollRunEmployee]) -> FinancialSummary:
    """Recompute the run summary from scratch."""
    return FinancialSummary.of_rows(rows)


def apply_delta(
    run: PayrollRun,
    old_row: PayrollRunEmployee | FinancialSummary | None,
    new_row: PayrollRunEmployee | FinancialSummary | None,
) -> FinancialSummary:
    """Adjust the stored summary by (new - old) and return the result.

    Either side may be None: exclude passes no new row, include passes no
    old row.
    """
    before = FinancialSummary.of_run(run)
    old = _contribution(old_row)
    new = _contribution(new_row)
    after = before - old + new
    after.apply_to(run)
    return after


def _contribution(row: PayrollRunEmployee | FinancialSummary | None) -> FinancialSummary:
    if row is None:
        return FinancialSummary()
    if isinstance(row, FinancialSummary):
        return row
    return FinancialSummary.of_row(row)


def build_statistics(rows: list[PayrollRunEmployee], duration_ms: int) -> dict[str, Any]:
    """Nationality/gender breakdown and net pay spread.

    Amounts are rendered as strings so the JSON column round-trips exactly.
    """
    saudi = sum(1 for r in rows if r.is_saudi)
    male = sum(1 for r in rows if (r.gender or "").lower() == "male")
    female = sum(1 for r in rows if (r.gender or "").lower() == "female")
    net_pays = [r.net_pay for r in rows]

    if net_pays:
        average = to_money(sum(net_pays, ZERO) / len(net_pays))
        highest, lowest = max(net_pays), min(net_pays)
        per_employee = round(duration_ms / len(rows), 3)
    else:
        average = highest = lowest = ZERO
        per_employee = 0.0

    return {
        "employees_by_nationality": {"saudi": saudi, "non_saudi": len(rows) - saudi},
        "employees_by_gender": {"male": male, "female": female},
        "total_processing_time_ms": duration_ms,
        "average_time_per_employee_ms": per_employee,
        "average_salary": str(average),
        "highest_salary": str(highest),
        "lowest_salary": str(lowest),
    }


def copy_employee_identity(row: PayrollRunEmployee, employee: Employee) -> None:
    """Copy the identity and payment details of an employee onto a snapshot row."""
    row.employee_id = employee.employee_id
    row.employee_number = employee.employee_number
    row.employee_name = employee.display_name
    row.employee_name_ar = employee.full_name_ar
    row.national_id = employee.national_id
    row.department = employee.department
    row.job_title = employee.job_title
    row.is_saudi = employee.is_saudi
    row.gender = employee.gender
    row.payment_method = employee.payment_method
    row.bank_name = employee.bank_name
    row.iban = employee.iban
    row.wps_included = employee.payment_method == "bank_transfer"


def write_computation(row: PayrollRunEmployee, computation: PayComputation) -> None:
    """Write computed amounts (and the manual fields they were computed from) onto a row."""
    earnings = computation.manual_earnings
    deductions = computation.manual_deductions

    row.basic_salary = computation.basic_salary
    row.allowances = computation.allowances
    row.overtime = earnings.overtime
    row.bonus = earnings.bonus
    row.commission = earnings.commission
    row.other_earnings = earnings.other_earnings
    row.gross_pay = computation.gross_pay

    row.gosi = computation.gosi.employee
    row.loans = deductions.loans
    row.advances = deductions.advances
    row.absences = deductions.absences
    row.late_deductions = deductions.late_deductions
    row.violations = deductions.violations
    row.other_deductions = deductions.other_deductions
    row.total_deductions = computation.total_deductions

    row.gosi_employer = computation.gosi.employer
    row.net_pay = computation.net_pay


class PayrollCalculator:
    """Computes employee pay and whole-run rosters.

    Per-employee pipeline:
    1) Validate and quantize the basic salary against the sanity ceiling
    2) Validate and sum allowances
    3) GOSI shares from the basic salary (when enabled)
    4) Carry manual earnings/deductions (zero in a full calculation)
    5) gross, total deductions, net
    """

    def __init__(
        self,
        max_basic_salary: Decimal | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self.max_basic_salary = (
            max_basic_salary if max_basic_salary is not None else settings.max_basic_salary
        )
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.calculation_timeout_seconds
        )

    def compute_employee_pay(
        self,
        employee: Employee,
        calculate_gosi: bool = True,
        manual_earnings: ManualEarnings | None = None,
        manual_deductions: ManualDeductions | None = None,
    ) -> PayComputation:
        """Compute one employee's pay from the current employee record."""
        ref = employee.employee_number or employee.employee_id

        basic = to_money(
            ensure_valid_amount(
                "basic_salary", employee.basic_salary, ref, ceiling=self.max_basic_salary
            )
        )

        allowances = ZERO
        for allowance in employee.allowances:
            allowances += to_money(
                ensure_valid_amount(f"allowance '{allowance.name}'", allowance.amount, ref)
            )

        return PayComputation(
            basic_salary=basic,
            allowances=allowances,
            gosi=compute_gosi(basic, employee.is_saudi, enabled=calculate_gosi),
            manual_earnings=manual_earnings or ManualEarnings(),
            manual_deductions=manual_deductions or ManualDeductions(),
        )

    def snapshot(
        self,
        employee: Employee,
        computation: PayComputation,
        position: int = 0,
        calculated_at: datetime | None = None,
    ) -> PayrollRunEmployee:
        """Build a fresh snapshot row for an employee."""
        row = PayrollRunEmployee(position=position, status="calculated", payment_status="pending")
        copy_employee_identity(row, employee)
        write_computation(row, computation)
        row.on_hold = False
        row.calculated_at = calculated_at or utcnow()
        return row

    def calculate_roster(
        self,
        run: PayrollRun,
        employees: list[Employee],
        deadline: float | None = None,
    ) -> RosterCalculation:
        """Compute snapshot rows, summary and statistics for a run.

        Args:
            run: The run being calculated (only its id and configuration are read)
            employees: Employees already filtered for the run
            deadline: time.monotonic() value after which the calculation is abandoned

        Raises:
            InvalidAmountError: An employee's salary or allowance fails sanity bounds
            CalculationTimeoutError: The deadline passed mid-loop
        """
        started = time.monotonic()
        calculated_at = utcnow()
        rows: list[PayrollRunEmployee] = []

        for position, employee in enumerate(employees):
            if deadline is not None and time.monotonic() > deadline:
                raise CalculationTimeoutError(run.payroll_run_id, self.timeout_seconds)
            computation = self.compute_employee_pay(employee, calculate_gosi=run.calculate_gosi)
            rows.append(self.snapshot(employee, computation, position, calculated_at))

        duration_ms = int((time.monotonic() - started) * 1000)
        return RosterCalculation(
            payroll_run_id=run.payroll_run_id,
            rows=rows,
            summary=summarize(rows),
            statistics=build_statistics(rows, duration_ms),
            duration_ms=duration_ms,
        )
