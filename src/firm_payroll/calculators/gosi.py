"""GOSI (Saudi social insurance) contribution rules.

Contributions are a percentage of the basic salary, rounded half-up to whole
riyals:

    Saudi nationals:  employee 9.75%, employer 12.75%
    Non-Saudi:        employee 0%,    employer 2% (occupational hazards only)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from firm_payroll.calculators.types import ZERO, GosiContribution

SAUDI_EMPLOYEE_RATE = Decimal("0.0975")
SAUDI_EMPLOYER_RATE = Decimal("0.1275")
NON_SAUDI_EMPLOYEE_RATE = Decimal("0")
NON_SAUDI_EMPLOYER_RATE = Decimal("0.02")

WHOLE = Decimal("1")


def round_contribution(amount: Decimal) -> Decimal:
    """Round a contribution to whole units, half-up."""
    return amount.quantize(WHOLE, rounding=ROUND_HALF_UP)


def compute_gosi(basic_salary: Decimal, is_saudi: bool, enabled: bool = True) -> GosiContribution:
    """Compute the monthly GOSI shares for a basic salary."""
    if not enabled:
        return GosiContribution(employee=ZERO, employer=ZERO)

    if is_saudi:
        employee_rate, employer_rate = SAUDI_EMPLOYEE_RATE, SAUDI_EMPLOYER_RATE
    else:
        employee_rate, employer_rate = NON_SAUDI_EMPLOYEE_RATE, NON_SAUDI_EMPLOYER_RATE

    return GosiContribution(
        employee=round_contribution(basic_salary * employee_rate),
        employer=round_contribution(basic_salary * employer_rate),
    )
