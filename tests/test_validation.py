"""Tests for pre-approval validation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from firm_payroll.calculators import FinancialSummary, ManualDeductions, PayrollCalculator
from firm_payroll.models import Employee, PayrollRun, PayrollRunEmployee
from firm_payroll.services.validation import PayrollValidator


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator(max_basic_salary=Decimal("100000"), timeout_seconds=5)


@pytest.fixture
def validator() -> PayrollValidator:
    return PayrollValidator()


@pytest.fixture
def make_row(calculator):
    """Snapshot row built through the calculator."""

    def _make(
        basic_salary: str = "5000",
        iban: str | None = "SA0380000000608010167519",
        payment_method: str = "bank_transfer",
        loans: str = "0",
    ) -> PayrollRunEmployee:
        employee = Employee(
            employee_id=uuid4(),
            employee_number="EMP-001",
            full_name_en="Noura Al-Harbi",
            is_saudi=True,
            basic_salary=Decimal(basic_salary),
            payment_method=payment_method,
            iban=iban,
            allowances=[],
        )
        pay = calculator.compute_employee_pay(
            employee, manual_deductions=ManualDeductions(loans=Decimal(loans))
        )
        return calculator.snapshot(employee, pay)

    return _make


def make_run(rows: list[PayrollRunEmployee]) -> PayrollRun:
    run = PayrollRun(payroll_run_id=uuid4(), calculate_gosi=True, employees=rows)
    FinancialSummary.of_rows(rows).apply_to(run)
    return run


class TestRowChecks:
    """Test the per-row rules."""

    def test_clean_row(self, validator, make_row):
        assert validator.check_row(make_row()) == []

    def test_negative_net_pay_is_critical(self, validator, make_row):
        """Deductions above gross make a critical finding."""
        issues = validator.check_row(make_row("1000", loans="5000"))

        assert [i.code for i in issues] == ["NEGATIVE_NET_PAY"]
        assert issues[0].severity == "critical"
        assert issues[0].message_ar
        assert issues[0].employee_name == "Noura Al-Harbi"

    def test_missing_iban_for_bank_transfer(self, validator, make_row):
        issues = validator.check_row(make_row(iban=None))
        assert [(i.code, i.severity) for i in issues] == [("MISSING_IBAN", "error")]

    def test_cash_without_iban_is_fine(self, validator, make_row):
        """Only bank transfers need an IBAN."""
        assert validator.check_row(make_row(iban=None, payment_method="cash")) == []

    def test_zero_salary_warning(self, validator, make_row):
        issues = validator.check_row(make_row("0"))
        assert [(i.code, i.severity) for i in issues] == [("ZERO_SALARY", "warning")]


class TestValidateRun:
    """Test whole-run validation results."""

    def test_counts_and_blocking(self, validator, make_row):
        run = make_run([make_row(), make_row(iban=None), make_row("1000", loans="5000")])
        result = validator.validate(run)

        assert result.critical_error_count == 1
        assert result.error_count == 1
        assert result.warning_count == 0
        assert result.has_blocking_errors is True
        assert result.can_proceed is False

    def test_errors_and_warnings_do_not_block(self, validator, make_row):
        """Missing IBANs and zero salaries are reported but do not block."""
        result = validator.validate(make_run([make_row(iban=None), make_row("0")]))

        assert result.has_blocking_errors is False
        assert result.can_proceed is True
        assert result.codes() == {"MISSING_IBAN", "ZERO_SALARY"}

    def test_pre_run_checks(self, validator, make_row):
        run = make_run([make_row(), make_row(iban=None)])
        checks = validator.validate(run).pre_run_checks

        assert checks["all_employees_have_bank"] is False
        assert checks["all_salaries_positive"] is True
        assert checks["no_negative_deductions"] is True
        assert checks["gosi_calculation_correct"] is True
        assert checks["total_balanced"] is True

    def test_unbalanced_total_detected(self, validator, make_row):
        run = make_run([make_row()])
        run.total_net_pay += Decimal("1")
        assert validator.validate(run).pre_run_checks["total_balanced"] is False

    def test_tampered_gosi_detected(self, validator, make_row):
        row = make_row()
        row.gosi = Decimal("1")
        assert validator.validate(make_run([row])).pre_run_checks["gosi_calculation_correct"] is False

    def test_validate_does_not_touch_run(self, validator, make_row):
        run = make_run([make_row("1000", loans="5000")])
        run.validated = False
        validator.validate(run)
        assert run.validated is False

    def test_apply_writes_validation_block(self, validator, make_row):
        """apply stores counts, flags and serialized issues on the run."""
        run = make_run([make_row("1000", loans="5000")])
        actor = uuid4()
        result = validator.validate(run)
        validator.apply(run, result, actor)

        assert run.validated is True
        assert run.validated_by == actor
        assert run.critical_error_count == 1
        assert run.has_blocking_errors is True
        assert run.can_proceed is False
        assert run.validation_issues[0]["code"] == "NEGATIVE_NET_PAY"
        assert run.validation_issues[0]["employee_id"] == str(run.employees[0].employee_id)
