"""Report export and WPS bank-file metadata."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from firm_payroll.calculators.types import ZERO, FinancialSummary
from firm_payroll.config import get_settings
from firm_payroll.models import PayrollRun, PayrollRunEmployee, utcnow
from firm_payroll.services.state_machine import Operation, PayrollRunStateMachine

WPS_FILE_FORMAT = "MOL_SIF"

CSV_HEADERS = [
    "Employee Number",
    "Employee Name (EN)",
    "Employee Name (AR)",
    "Department",
    "Job Title",
    "Basic Salary",
    "Allowances",
    "Gross Pay",
    "GOSI",
    "Loans",
    "Advances",
    "Other Deductions",
    "Total Deductions",
    "Net Pay",
    "Payment Method",
    "Bank Name",
    "IBAN",
    "Status",
]


@dataclass(frozen=True)
class WPSFileMeta:
    """Metadata of a generated WPS salary file."""

    payroll_run_id: UUID
    file_name: str
    file_url: str
    file_format: str
    record_count: int
    total_amount: Decimal
    generated_at: datetime
    generated_by: UUID | None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["payroll_run_id"] = str(self.payroll_run_id)
        data["total_amount"] = str(self.total_amount)
        data["generated_at"] = self.generated_at.isoformat()
        data["generated_by"] = str(self.generated_by) if self.generated_by else None
        return data


def wps_rows(payroll_run: PayrollRun) -> list[PayrollRunEmployee]:
    """Rows that go into the bank file: WPS-eligible and not on hold."""
    return [row for row in payroll_run.employees if row.wps_included and not row.on_hold]


def build_wps_meta(
    payroll_run: PayrollRun,
    actor_id: UUID | None,
    generated_at: datetime | None = None,
) -> WPSFileMeta:
    """Describe the WPS file for an approved or paid run and stamp it on the run."""
    PayrollRunStateMachine.require_operation(payroll_run.status, Operation.GENERATE_WPS)
    settings = get_settings()
    generated_at = generated_at or utcnow()

    rows = wps_rows(payroll_run)
    file_name = f"WPS_{payroll_run.run_number}_{generated_at:%Y%m%d%H%M%S}.sif"
    meta = WPSFileMeta(
        payroll_run_id=payroll_run.payroll_run_id,
        file_name=file_name,
        file_url=f"{settings.wps_upload_prefix.rstrip('/')}/{file_name}",
        file_format=WPS_FILE_FORMAT,
        record_count=len(rows),
        total_amount=sum((row.net_pay for row in rows), ZERO),
        generated_at=generated_at,
        generated_by=actor_id,
    )

    payroll_run.wps_file_name = meta.file_name
    payroll_run.wps_file_url = meta.file_url
    payroll_run.wps_file_format = meta.file_format
    payroll_run.wps_record_count = meta.record_count
    payroll_run.wps_total_amount = meta.total_amount
    payroll_run.wps_generated_at = meta.generated_at
    payroll_run.wps_generated_by = actor_id
    return meta


def _employee_record(row: PayrollRunEmployee) -> dict[str, Any]:
    return {
        "employee_id": str(row.employee_id),
        "employee_number": row.employee_number,
        "employee_name": row.employee_name,
        "employee_name_ar": row.employee_name_ar,
        "department": row.department,
        "job_title": row.job_title,
        "basic_salary": str(row.basic_salary),
        "allowances": str(row.allowances),
        "gross_pay": str(row.gross_pay),
        "gosi": str(row.gosi),
        "loans": str(row.loans),
        "advances": str(row.advances),
        "other_deductions": str(row.other_deductions),
        "total_deductions": str(row.total_deductions),
        "net_pay": str(row.net_pay),
        "payment_method": row.payment_method,
        "bank_name": row.bank_name,
        "iban": row.iban,
        "status": row.status,
    }


def report_data(payroll_run: PayrollRun) -> dict[str, Any]:
    """Run info, summary, counts and employees as JSON-ready values."""
    return {
        "run_info": {
            "payroll_run_id": str(payroll_run.payroll_run_id),
            "run_number": payroll_run.run_number,
            "run_name": payroll_run.run_name,
            "run_name_ar": payroll_run.run_name_ar,
            "status": payroll_run.status,
            "pay_period": {
                "month": payroll_run.period_month,
                "year": payroll_run.period_year,
                "period_start": payroll_run.period_start.isoformat(),
                "period_end": payroll_run.period_end.isoformat(),
                "payment_date": (
                    payroll_run.payment_date.isoformat() if payroll_run.payment_date else None
                ),
            },
            "created_at": payroll_run.created_at.isoformat() if payroll_run.created_at else None,
            "currency": get_settings().currency,
        },
        "summary": FinancialSummary.of_run(payroll_run).to_dict(),
        "statistics": {
            "total_employees": payroll_run.total_employees,
            "processed_employees": payroll_run.processed_employees,
            "on_hold_employees": payroll_run.on_hold_employees,
        },
        "employees": [_employee_record(row) for row in payroll_run.employees],
    }


def export_json(payroll_run: PayrollRun) -> bytes:
    return json.dumps(report_data(payroll_run), ensure_ascii=False, indent=2).encode("utf-8")


def export_csv(payroll_run: PayrollRun) -> bytes:
    """One row per employee, UTF-8 with BOM so spreadsheet tools detect Arabic text."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(CSV_HEADERS)
    for row in payroll_run.employees:
        writer.writerow([
            row.employee_number,
            row.employee_name or "",
            row.employee_name_ar or "",
            row.department or "",
            row.job_title or "",
            str(row.basic_salary),
            str(row.allowances),
            str(row.gross_pay),
            str(row.gosi),
            str(row.loans),
            str(row.advances),
            str(row.other_deductions),
            str(row.total_deductions),
            str(row.net_pay),
            row.payment_method,
            row.bank_name or "",
            row.iban or "",
            row.status,
        ])

    return output.getvalue().encode("utf-8-sig")


EXPORTERS = {
    "json": export_json,
    "csv": export_csv,
}


def export_report(payroll_run: PayrollRun, export_format: str) -> bytes:
    """Render a run as json or csv bytes.

    Raises:
        ValueError: Unknown format
    """
    exporter = EXPORTERS.get(export_format.lower())
    if exporter is None:
        raise ValueError(f"Unsupported export format '{export_format}' (use json or csv)")
    return exporter(payroll_run)
