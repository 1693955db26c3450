"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll Run Employee schemas
# ============================================================================


class PayrollRunEmployeeResponse(BaseModel):
    """Schema for one snapshot row."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_number: str
    employee_name: str | None = None
    employee_name_ar: str | None = None
    national_id: str | None = None
    department: str | None = None
    job_title: str | None = None
    is_saudi: bool
    gender: str | None = None

    basic_salary: Decimal
    allowances: Decimal
    overtime: Decimal
    bonus: Decimal
    commission: Decimal
    other_earnings: Decimal
    gross_pay: Decimal

    gosi: Decimal
    loans: Decimal
    advances: Decimal
    absences: Decimal
    late_deductions: Decimal
    violations: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    gosi_employer: Decimal
    net_pay: Decimal

    payment_method: str
    bank_name: str | None = None
    iban: str | None = None
    wps_included: bool
    status: str
    on_hold: bool
    on_hold_reason: str | None = None
    payment_status: str
    slip_number: str | None = None
    paid_at: datetime | None = None


class ExclusionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    reason: str | None = None
    excluded_by: UUID | None = None
    excluded_at: datetime


class ProcessingLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    log_id: str
    action: str
    action_type: str
    performed_by: UUID | None = None
    status: str
    details: str | None = None
    affected_employees: int | None = None
    affected_amount: Decimal | None = None
    duration_ms: int | None = None
    logged_at: datetime


# ============================================================================
# Payroll Run schemas
# ============================================================================


class PayrollRunSummaryResponse(BaseModel):
    """Schema for a run in list views."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    run_number: str
    run_name: str | None = None
    run_name_ar: str | None = None
    status: str
    period_month: int
    period_year: int
    payment_date: date | None = None
    total_employees: int
    total_net_pay: Decimal
    created_at: datetime
    updated_at: datetime


class PayrollRunResponse(PayrollRunSummaryResponse):
    """Schema for a full run."""

    firm_id: UUID | None = None
    lawyer_id: UUID | None = None
    created_by: UUID | None = None
    period_start: date
    period_end: date

    included_employment_statuses: list[str]
    included_employee_types: list[str]
    calculate_gosi: bool
    prorate_salaries: bool
    include_overtime: bool
    include_bonuses: bool
    process_loans: bool
    process_advances: bool

    processed_employees: int
    on_hold_employees: int

    total_basic_salary: Decimal
    total_allowances: Decimal
    total_gross_pay: Decimal
    total_gosi: Decimal
    total_employer_gosi: Decimal
    total_deductions: Decimal

    statistics: dict[str, Any]

    validated: bool
    validated_at: datetime | None = None
    critical_error_count: int
    error_count: int
    warning_count: int
    has_blocking_errors: bool
    can_proceed: bool

    approval_status: str
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    approver_notes: str | None = None

    payment_status: str
    paid_employees: int
    total_paid: Decimal
    payment_completion_percentage: int
    paid_at: datetime | None = None

    wps_file_name: str | None = None
    wps_record_count: int
    wps_total_amount: Decimal

    notes: str | None = None

    employees: list[PayrollRunEmployeeResponse] = Field(default_factory=list)
    exclusions: list[ExclusionResponse] = Field(default_factory=list)
    processing_log: list[ProcessingLogEntryResponse] = Field(default_factory=list)


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunSummaryResponse]
    total: int
    page: int
    page_size: int
    pages: int


class PayrollRunStatsResponse(BaseModel):
    total_runs: int
    draft_runs: int
    pending_approval: int
    paid_this_month: dict[str, Any]


# ============================================================================
# Operation request/response schemas
# ============================================================================


class ApprovalRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comments: str | None = None


class ReasonRequest(BaseModel):
    """Body for cancel, exclude and hold."""

    model_config = ConfigDict(extra="forbid")

    reason: str | None = None


class BulkDeleteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ids: list[UUID] = Field(min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted_count: int


class ValidationIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    severity: str
    message: str
    message_ar: str
    employee_id: str
    employee_name: str | None = None


class ValidationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    validated_at: datetime
    critical_error_count: int
    error_count: int
    warning_count: int
    has_blocking_errors: bool
    can_proceed: bool
    issues: list[ValidationIssueResponse]
    pre_run_checks: dict[str, bool]


class PaymentResponse(BaseModel):
    slips_created: int
    payroll_run: PayrollRunResponse


class NetPayChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    old_net_pay: Decimal
    new_net_pay: Decimal
    difference: Decimal


class WPSFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    file_name: str
    file_url: str
    file_format: str
    record_count: int
    total_amount: Decimal
    generated_at: datetime
    generated_by: UUID | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
