"""Typed commands accepted by the payroll run service.

Each command exposes only the fields its operation may change; unknown keys
are rejected.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from firm_payroll.models import DEFAULT_EMPLOYEE_TYPES, DEFAULT_EMPLOYMENT_STATUSES


class CommandBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PayPeriodInput(CommandBase):
    """Pay period of a run. Start/end default to the calendar month."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    period_start: date | None = None
    period_end: date | None = None
    payment_date: date | None = None

    @model_validator(mode="after")
    def _fill_month_bounds(self) -> PayPeriodInput:
        if self.period_start is None:
            self.period_start = date(self.year, self.month, 1)
        if self.period_end is None:
            last_day = calendar.monthrange(self.year, self.month)[1]
            self.period_end = date(self.year, self.month, last_day)
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class RunConfiguration(CommandBase):
    """Inclusion filters and calculation switches of a run."""

    included_employment_statuses: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EMPLOYMENT_STATUSES), min_length=1
    )
    included_employee_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EMPLOYEE_TYPES)
    )
    excluded_employee_ids: list[UUID] = Field(default_factory=list)
    calculate_gosi: bool = True
    prorate_salaries: bool = True
    include_overtime: bool = True
    include_bonuses: bool = True
    process_loans: bool = True
    process_advances: bool = True


class CreateRunCommand(CommandBase):
    pay_period: PayPeriodInput
    run_name: str | None = Field(default=None, max_length=200)
    run_name_ar: str | None = Field(default=None, max_length=200)
    configuration: RunConfiguration | None = None
    notes: str | None = None


class UpdateRunCommand(CommandBase):
    """Partial update. configuration is only accepted while the run is a draft."""

    run_name: str | None = Field(default=None, max_length=200)
    run_name_ar: str | None = Field(default=None, max_length=200)
    pay_period: PayPeriodInput | None = None
    configuration: RunConfiguration | None = None
    notes: str | None = None


class EmployeeAdjustmentCommand(CommandBase):
    """Manual earnings and deductions for one snapshot row.

    Fields left unset keep their current value.
    """

    overtime: Decimal | None = Field(default=None, ge=0)
    bonus: Decimal | None = Field(default=None, ge=0)
    commission: Decimal | None = Field(default=None, ge=0)
    other_earnings: Decimal | None = Field(default=None, ge=0)
    loans: Decimal | None = Field(default=None, ge=0)
    advances: Decimal | None = Field(default=None, ge=0)
    absences: Decimal | None = Field(default=None, ge=0)
    late_deductions: Decimal | None = Field(default=None, ge=0)
    violations: Decimal | None = Field(default=None, ge=0)
    other_deductions: Decimal | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, Decimal]:
        return self.model_dump(exclude_none=True)


class RunListFilters(CommandBase):
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = None
    status: str | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


ExportFormat = Literal["json", "csv"]
