"""Payroll calculators."""

from firm_payroll.calculators.engine import (
    PayrollCalculator,
    RosterCalculation,
    apply_delta,
    build_statistics,
    summarize,
)
from firm_payroll.calculators.gosi import compute_gosi
from firm_payroll.calculators.types import (
    FinancialSummary,
    GosiContribution,
    ManualDeductions,
    ManualEarnings,
    PayComputation,
    to_money,
)

__all__ = [
    "PayrollCalculator",
    "RosterCalculation",
    "apply_delta",
    "build_statistics",
    "summarize",
    "compute_gosi",
    "FinancialSummary",
    "GosiContribution",
    "ManualDeductions",
    "ManualEarnings",
    "PayComputation",
    "to_money",
]
