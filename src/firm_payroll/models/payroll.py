"""Payroll run, roster snapshot, processing log and salary slip models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from firm_payroll.errors import PayrollError
from firm_payroll.models.base import Base, TenantMixin, TimestampMixin, utcnow

ZERO = Decimal("0")

DEFAULT_EMPLOYMENT_STATUSES = ["active"]
DEFAULT_EMPLOYEE_TYPES = ["full_time", "part_time", "contract"]


class ImmutableRecordError(PayrollError):
    """Raised when an append-only or immutable row is about to be rewritten."""

    code = "IMMUTABLE_RECORD"


# ===== Payroll Run =====


class PayrollRun(Base, TenantMixin, TimestampMixin):
    """One payroll cycle for a tenant."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    run_number: Mapped[str] = mapped_column(String, nullable=False)
    run_name: Mapped[str | None] = mapped_column(String, nullable=True)
    run_name_ar: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pay period
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Configuration (mutable only in draft)
    included_employment_statuses: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_EMPLOYMENT_STATUSES)
    )
    included_employee_types: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_EMPLOYEE_TYPES)
    )
    calculate_gosi: Mapped[bool] = mapped_column(default=True, nullable=False)
    prorate_salaries: Mapped[bool] = mapped_column(default=True, nullable=False)
    include_overtime: Mapped[bool] = mapped_column(default=True, nullable=False)
    include_bonuses: Mapped[bool] = mapped_column(default=True, nullable=False)
    process_loans: Mapped[bool] = mapped_column(default=True, nullable=False)
    process_advances: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Roster counts
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    on_hold_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Financial summary
    total_basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_gosi: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_employer_gosi: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    statistics: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Validation
    validated: Mapped[bool] = mapped_column(default=False, nullable=False)
    validated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    validated_by: Mapped[UUID | None] = mapped_column(nullable=True)
    critical_error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_blocking_errors: Mapped[bool] = mapped_column(default=False, nullable=False)
    can_proceed: Mapped[bool] = mapped_column(default=False, nullable=False)
    validation_issues: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # Approval workflow
    approval_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Payment processing
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    paid_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_paid: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    payment_completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # WPS bank file
    wps_file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    wps_file_url: Mapped[str | None] = mapped_column(String, nullable=True)
    wps_file_format: Mapped[str | None] = mapped_column(String, nullable=True)
    wps_record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wps_total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    wps_generated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    wps_generated_by: Mapped[UUID | None] = mapped_column(nullable=True)

    # Notes
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approver_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "(firm_id IS NULL) <> (lawyer_id IS NULL)",
            name="payroll_run_single_tenant_check",
        ),
        CheckConstraint(
            "status IN ('draft', 'calculating', 'calculated', 'approved', "
            "'processing_payment', 'paid', 'cancelled')",
            name="payroll_run_status_check",
        ),
        CheckConstraint("period_month BETWEEN 1 AND 12", name="payroll_run_month_check"),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
        UniqueConstraint("firm_id", "lawyer_id", "run_number", name="payroll_run_tenant_number_unique"),
    )

    # Relationships
    employees: Mapped[list[PayrollRunEmployee]] = relationship(
        back_populates="payroll_run",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayrollRunEmployee.position",
    )
    exclusions: Mapped[list[PayrollRunExclusion]] = relationship(
        back_populates="payroll_run",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayrollRunExclusion.excluded_at",
    )
    processing_log: Mapped[list[ProcessingLogEntry]] = relationship(
        back_populates="payroll_run",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ProcessingLogEntry.sequence",
    )

    @property
    def excluded_employee_ids(self) -> list[UUID]:
        return [e.employee_id for e in self.exclusions]

    def find_employee(self, employee_id: UUID) -> PayrollRunEmployee | None:
        """Find an employee's snapshot row in this run."""
        return next((e for e in self.employees if e.employee_id == employee_id), None)

    def find_exclusion(self, employee_id: UUID) -> PayrollRunExclusion | None:
        return next((e for e in self.exclusions if e.employee_id == employee_id), None)


class PayrollRunEmployee(Base, TimestampMixin):
    """Snapshot of one included employee's pay for a run.

    Copied from the employee record at calculation time; never a live reference.
    """

    __tablename__ = "payroll_run_employee"

    payroll_run_employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    employee_name: Mapped[str | None] = mapped_column(String, nullable=True)
    employee_name_ar: Mapped[str | None] = mapped_column(String, nullable=True)
    national_id: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    is_saudi: Mapped[bool] = mapped_column(default=True, nullable=False)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    allowances: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    overtime: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    bonus: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    commission: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_earnings: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Deductions
    gosi: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    loans: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    advances: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    absences: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    late_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    violations: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    gosi_employer: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Payment
    payment_method: Mapped[str] = mapped_column(String, nullable=False, default="bank_transfer")
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)
    iban: Mapped[str | None] = mapped_column(String, nullable=True)
    wps_included: Mapped[bool] = mapped_column(default=True, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="calculated")
    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Hold
    on_hold: Mapped[bool] = mapped_column(default=False, nullable=False)
    on_hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    on_hold_by: Mapped[UUID | None] = mapped_column(nullable=True)
    on_hold_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Payment outcome
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    slip_id: Mapped[UUID | None] = mapped_column(nullable=True)
    slip_number: Mapped[str | None] = mapped_column(String, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_run_employee_unique"),
        CheckConstraint(
            "status IN ('calculated', 'on_hold', 'paid')",
            name="payroll_run_employee_status_check",
        ),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="employees")


class PayrollRunExclusion(Base):
    """An employee deliberately left out of a run."""

    __tablename__ = "payroll_run_exclusion"

    payroll_run_exclusion_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    excluded_by: Mapped[UUID | None] = mapped_column(nullable=True)
    excluded_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_run_exclusion_unique"),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="exclusions")


# ===== Processing Log =====


class ProcessingLogEntry(Base, TimestampMixin):
    """Append-only audit trail entry for a payroll run."""

    __tablename__ = "payroll_processing_log"

    payroll_processing_log_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    log_id: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    action_type: Mapped[str] = mapped_column(String, nullable=False)
    performed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    affected_employees: Mapped[int | None] = mapped_column(Integer, nullable=True)
    affected_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    logged_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "sequence", name="payroll_processing_log_sequence_unique"),
        CheckConstraint(
            "status IN ('success', 'warning', 'failed')",
            name="payroll_processing_log_status_check",
        ),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="processing_log")


# ===== Salary Slip =====


class SalarySlip(Base, TenantMixin, TimestampMixin):
    """Immutable salary slip (one per employee per paid run)."""

    __tablename__ = "salary_slip"

    salary_slip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    slip_number: Mapped[str] = mapped_column(String, nullable=False)

    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    employee_name: Mapped[str | None] = mapped_column(String, nullable=True)
    employee_name_ar: Mapped[str | None] = mapped_column(String, nullable=True)
    national_id: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)

    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False)
    overtime: Mapped[Decimal] = mapped_column(nullable=False)
    bonus: Mapped[Decimal] = mapped_column(nullable=False)
    commission: Mapped[Decimal] = mapped_column(nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False)

    gosi: Mapped[Decimal] = mapped_column(nullable=False)
    gosi_employer: Mapped[Decimal] = mapped_column(nullable=False)
    loans: Mapped[Decimal] = mapped_column(nullable=False)
    advances: Mapped[Decimal] = mapped_column(nullable=False)
    absences: Mapped[Decimal] = mapped_column(nullable=False)
    late_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    violations: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)

    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)
    iban: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="paid")
    generated_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="salary_slip_one_per_employee"),
        UniqueConstraint("payroll_run_id", "slip_number", name="salary_slip_number_unique"),
        CheckConstraint("net_pay >= 0", name="salary_slip_net_pay_check"),
    )

    @property
    def other_deductions_total(self) -> Decimal:
        """Deductions other than the employee GOSI share."""
        return self.total_deductions - self.gosi


@event.listens_for(Session, "before_flush")
def _reject_rewrites(session: Session, flush_context: Any, instances: Any) -> None:
    """Processing log entries are append-only; salary slips are immutable."""
    for obj in session.dirty:
        if isinstance(obj, (ProcessingLogEntry, SalarySlip)) and session.is_modified(
            obj, include_collections=False
        ):
            raise ImmutableRecordError(f"{type(obj).__name__} rows cannot be modified")
    for obj in session.deleted:
        if isinstance(obj, SalarySlip):
            raise ImmutableRecordError("SalarySlip rows cannot be deleted")
