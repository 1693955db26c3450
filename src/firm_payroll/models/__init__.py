"""ORM models."""

from firm_payroll.models.base import Base, TenantMixin, TimestampMixin, utcnow
from firm_payroll.models.employee import Employee, EmployeeAllowance
from firm_payroll.models.gl import GLJournalEntry, GLJournalLine
from firm_payroll.models.payroll import (
    DEFAULT_EMPLOYEE_TYPES,
    DEFAULT_EMPLOYMENT_STATUSES,
    ImmutableRecordError,
    PayrollRun,
    PayrollRunEmployee,
    PayrollRunExclusion,
    ProcessingLogEntry,
    SalarySlip,
)

__all__ = [
    "Base",
    "TenantMixin",
    "TimestampMixin",
    "utcnow",
    "Employee",
    "EmployeeAllowance",
    "GLJournalEntry",
    "GLJournalLine",
    "DEFAULT_EMPLOYEE_TYPES",
    "DEFAULT_EMPLOYMENT_STATUSES",
    "ImmutableRecordError",
    "PayrollRun",
    "PayrollRunEmployee",
    "PayrollRunExclusion",
    "ProcessingLogEntry",
    "SalarySlip",
]
