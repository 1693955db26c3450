"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Quantize to two decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ManualEarnings:
    """Earnings entered by hand on a run snapshot (zero in the base calculation)."""

    overtime: Decimal = ZERO
    bonus: Decimal = ZERO
    commission: Decimal = ZERO
    other_earnings: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.overtime + self.bonus + self.commission + self.other_earnings

    @classmethod
    def from_row(cls, row: Any) -> ManualEarnings:
        return cls(**{f.name: getattr(row, f.name) or ZERO for f in fields(cls)})


@dataclass(frozen=True)
class ManualDeductions:
    """Deductions entered by hand on a run snapshot (zero in the base calculation)."""

    loans: Decimal = ZERO
    advances: Decimal = ZERO
    absences: Decimal = ZERO
    late_deductions: Decimal = ZERO
    violations: Decimal = ZERO
    other_deductions: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (
            self.loans
            + self.advances
            + self.absences
            + self.late_deductions
            + self.violations
            + self.other_deductions
        )

    @classmethod
    def from_row(cls, row: Any) -> ManualDeductions:
        return cls(**{f.name: getattr(row, f.name) or ZERO for f in fields(cls)})


@dataclass(frozen=True)
class GosiContribution:
    """Employee and employer GOSI shares for one month."""

    employee: Decimal = ZERO
    employer: Decimal = ZERO


@dataclass(frozen=True)
class PayComputation:
    """Computed pay for one employee."""

    basic_salary: Decimal
    allowances: Decimal
    gosi: GosiContribution
    manual_earnings: ManualEarnings = field(default_factory=ManualEarnings)
    manual_deductions: ManualDeductions = field(default_factory=ManualDeductions)

    @property
    def gross_pay(self) -> Decimal:
        return self.basic_salary + self.allowances + self.manual_earnings.total

    @property
    def total_deductions(self) -> Decimal:
        return self.gosi.employee + self.manual_deductions.total

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.total_deductions


@dataclass(frozen=True)
class FinancialSummary:
    """Aggregate run totals.

    Supports + and - so that a single snapshot row's contribution can be
    added or removed with the exact Decimal values stored on the row.
    """

    total_basic_salary: Decimal = ZERO
    total_allowances: Decimal = ZERO
    total_gross_pay: Decimal = ZERO
    total_gosi: Decimal = ZERO
    total_employer_gosi: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net_pay: Decimal = ZERO

    @classmethod
    def of_row(cls, row: Any) -> FinancialSummary:
        """Contribution of one snapshot row."""
        return cls(
            total_basic_salary=row.basic_salary,
            total_allowances=row.allowances,
            total_gross_pay=row.gross_pay,
            total_gosi=row.gosi,
            total_employer_gosi=row.gosi_employer,
            total_deductions=row.total_deductions,
            total_net_pay=row.net_pay,
        )

    @classmethod
    def of_rows(cls, rows: list[Any]) -> FinancialSummary:
        """Sum of all rows, computed from scratch."""
        summary = cls()
        for row in rows:
            summary = summary + cls.of_row(row)
        return summary

    @classmethod
    def of_run(cls, run: Any) -> FinancialSummary:
        """Read the summary currently stored on a run."""
        return cls(**{f.name: getattr(run, f.name) for f in fields(cls)})

    def apply_to(self, run: Any) -> None:
        """Write the summary onto a run."""
        for f in fields(self):
            setattr(run, f.name, getattr(self, f.name))

    def __add__(self, other: FinancialSummary) -> FinancialSummary:
        return FinancialSummary(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def __sub__(self, other: FinancialSummary) -> FinancialSummary:
        return FinancialSummary(
            **{f.name: getattr(self, f.name) - getattr(other, f.name) for f in fields(self)}
        )

    def to_dict(self) -> dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}
