"""Tests for typed service commands."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from firm_payroll.services.commands import (
    CreateRunCommand,
    EmployeeAdjustmentCommand,
    PayPeriodInput,
    RunConfiguration,
)


class TestPayPeriodInput:
    def test_defaults_to_calendar_month(self):
        period = PayPeriodInput(month=2, year=2024)
        assert period.period_start == date(2024, 2, 1)
        assert period.period_end == date(2024, 2, 29)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            PayPeriodInput(
                month=3,
                year=2025,
                period_start=date(2025, 3, 20),
                period_end=date(2025, 3, 1),
            )

    @pytest.mark.parametrize("month", [0, 13])
    def test_month_bounds(self, month):
        with pytest.raises(ValidationError):
            PayPeriodInput(month=month, year=2025)


class TestRunCommands:
    def test_unknown_fields_rejected(self):
        """Commands only accept the fields their operation may change."""
        with pytest.raises(ValidationError):
            CreateRunCommand(pay_period={"month": 1, "year": 2025}, status="paid")

    def test_configuration_defaults(self):
        config = RunConfiguration()
        assert config.included_employment_statuses == ["active"]
        assert config.calculate_gosi is True
        assert config.excluded_employee_ids == []

    def test_configuration_needs_a_status(self):
        with pytest.raises(ValidationError):
            RunConfiguration(included_employment_statuses=[])


class TestEmployeeAdjustmentCommand:
    def test_changes_only_set_fields(self):
        command = EmployeeAdjustmentCommand(overtime="250.50", loans=Decimal("100"))
        assert command.changes() == {"overtime": Decimal("250.50"), "loans": Decimal("100")}

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            EmployeeAdjustmentCommand(bonus=Decimal("-1"))

    def test_net_pay_is_not_adjustable(self):
        with pytest.raises(ValidationError):
            EmployeeAdjustmentCommand(net_pay=Decimal("1"))
