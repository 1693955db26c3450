"""Pre-approval validation of a payroll run's snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from firm_payroll.calculators.gosi import compute_gosi
from firm_payroll.calculators.types import ZERO, FinancialSummary
from firm_payroll.models import PayrollRun, PayrollRunEmployee, utcnow

CRITICAL = "critical"
ERROR = "error"
WARNING = "warning"

DEDUCTION_FIELDS = (
    "gosi",
    "loans",
    "advances",
    "absences",
    "late_deductions",
    "violations",
    "other_deductions",
)


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding against one snapshot row."""

    code: str
    severity: str
    message: str
    message_ar: str
    employee_id: str
    employee_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    """Outcome of validating a run."""

    payroll_run_id: UUID
    issues: list[ValidationIssue] = field(default_factory=list)
    validated_at: datetime = field(default_factory=utcnow)
    pre_run_checks: dict[str, bool] = field(default_factory=dict)

    def _count(self, severity: str) -> int:
        return sum(1 for issue in self.issues if issue.severity == severity)

    @property
    def critical_error_count(self) -> int:
        return self._count(CRITICAL)

    @property
    def error_count(self) -> int:
        return self._count(ERROR)

    @property
    def warning_count(self) -> int:
        return self._count(WARNING)

    @property
    def has_blocking_errors(self) -> bool:
        return self.critical_error_count > 0

    @property
    def can_proceed(self) -> bool:
        return not self.has_blocking_errors

    def codes(self) -> set[str]:
        return {issue.code for issue in self.issues}


class PayrollValidator:
    """Evaluates the snapshot rules and writes the validation block of a run.

    Rules per snapshot row:
    - net_pay < 0                               → critical NEGATIVE_NET_PAY
    - bank_transfer without an IBAN             → error MISSING_IBAN
    - basic_salary <= 0                         → warning ZERO_SALARY
    """

    def check_row(self, row: PayrollRunEmployee) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        ref = str(row.employee_id)

        if row.net_pay < 0:
            issues.append(
                ValidationIssue(
                    code="NEGATIVE_NET_PAY",
                    severity=CRITICAL,
                    message="Net pay is negative",
                    message_ar="صافي الراتب سالب",
                    employee_id=ref,
                    employee_name=row.employee_name,
                )
            )
        if not row.iban and row.payment_method == "bank_transfer":
            issues.append(
                ValidationIssue(
                    code="MISSING_IBAN",
                    severity=ERROR,
                    message="IBAN is required for bank transfer",
                    message_ar="رقم الآيبان مطلوب للتحويل البنكي",
                    employee_id=ref,
                    employee_name=row.employee_name,
                )
            )
        if row.basic_salary <= 0:
            issues.append(
                ValidationIssue(
                    code="ZERO_SALARY",
                    severity=WARNING,
                    message="Basic salary is zero or negative",
                    message_ar="الراتب الأساسي صفر أو سالب",
                    employee_id=ref,
                    employee_name=row.employee_name,
                )
            )
        return issues

    def validate(self, payroll_run: PayrollRun) -> ValidationResult:
        """Evaluate every snapshot row. Does not touch the run."""
        result = ValidationResult(payroll_run_id=payroll_run.payroll_run_id)
        for row in payroll_run.employees:
            result.issues.extend(self.check_row(row))

        codes = result.codes()
        result.pre_run_checks = {
            "all_employees_have_bank": "MISSING_IBAN" not in codes,
            "all_salaries_positive": "ZERO_SALARY" not in codes,
            "no_negative_deductions": all(
                getattr(row, name) >= ZERO
                for row in payroll_run.employees
                for name in DEDUCTION_FIELDS
            ),
            "gosi_calculation_correct": all(
                self._gosi_matches(row, payroll_run.calculate_gosi)
                for row in payroll_run.employees
            ),
            "total_balanced": FinancialSummary.of_rows(payroll_run.employees).total_net_pay
            == payroll_run.total_net_pay,
        }
        return result

    def apply(
        self,
        payroll_run: PayrollRun,
        result: ValidationResult,
        actor_id: UUID | None,
    ) -> None:
        """Write the validation block of the run from a result."""
        payroll_run.validated = True
        payroll_run.validated_at = result.validated_at
        payroll_run.validated_by = actor_id
        payroll_run.critical_error_count = result.critical_error_count
        payroll_run.error_count = result.error_count
        payroll_run.warning_count = result.warning_count
        payroll_run.has_blocking_errors = result.has_blocking_errors
        payroll_run.can_proceed = result.can_proceed
        payroll_run.validation_issues = [issue.to_dict() for issue in result.issues]

    @staticmethod
    def _gosi_matches(row: PayrollRunEmployee, enabled: bool) -> bool:
        expected = compute_gosi(row.basic_salary, row.is_saudi, enabled=enabled)
        return row.gosi == expected.employee and row.gosi_employer == expected.employer
