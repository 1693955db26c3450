"""Payroll run API endpoints."""

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from firm_payroll.api.dependencies import ActorId, PayrollService, Tenant
from firm_payroll.api.schemas import (
    ApprovalRequest,
    BulkDeleteRequest,
    BulkDeleteResponse,
    ErrorResponse,
    NetPayChangeResponse,
    PaymentResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayrollRunStatsResponse,
    PayrollRunSummaryResponse,
    ReasonRequest,
    ValidationResponse,
    WPSFileResponse,
)
from firm_payroll.services.commands import (
    CreateRunCommand,
    EmployeeAdjustmentCommand,
    RunListFilters,
    UpdateRunCommand,
)

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

RunId = Annotated[UUID, Path(description="Payroll run ID")]
EmployeeId = Annotated[UUID, Path(description="Employee ID")]

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}

EXPORT_MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
}


# ============================================================================
# Payroll Run CRUD
# ============================================================================


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: PayrollService,
    tenant: Tenant,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: Annotated[int | None, Query()] = None,
    run_status: Annotated[str | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PayrollRunListResponse:
    """List payroll runs of the tenant, newest first."""
    result = await service.list_runs(
        tenant,
        RunListFilters(
            month=month,
            year=year,
            status=run_status,
            search=search,
            page=page,
            page_size=page_size,
        ),
    )
    return PayrollRunListResponse(
        items=[PayrollRunSummaryResponse.model_validate(r) for r in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get("/stats", response_model=PayrollRunStatsResponse)
async def get_payroll_run_stats(service: PayrollService, tenant: Tenant) -> PayrollRunStatsResponse:
    """Dashboard counters."""
    return PayrollRunStatsResponse(**await service.get_stats(tenant))


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def create_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payload: CreateRunCommand,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    payroll_run = await service.create_run(tenant, payload, actor_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_payroll_runs(
    service: PayrollService,
    tenant: Tenant,
    payload: BulkDeleteRequest,
) -> BulkDeleteResponse:
    """Delete the draft runs among the given ids."""
    deleted = await service.bulk_delete_runs(tenant, payload.ids)
    return BulkDeleteResponse(deleted_count=deleted)


@router.get("/{payroll_run_id}", response_model=PayrollRunResponse, responses=ERRORS)
async def get_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    payroll_run_id: RunId,
) -> PayrollRunResponse:
    """Get a payroll run with its employees and processing log."""
    return PayrollRunResponse.model_validate(await service.get_run(payroll_run_id, tenant))


@router.patch("/{payroll_run_id}", response_model=PayrollRunResponse, responses=ERRORS)
async def update_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    payload: UpdateRunCommand,
) -> PayrollRunResponse:
    """Update name, pay period, notes or (draft only) configuration."""
    payroll_run = await service.update_run(payroll_run_id, tenant, payload, actor_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.delete(
    "/{payroll_run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERRORS,
)
async def delete_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    payroll_run_id: RunId,
) -> Response:
    """Delete a draft payroll run."""
    await service.delete_run(payroll_run_id, tenant)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post("/{payroll_run_id}/calculate", response_model=PayrollRunResponse, responses=ERRORS)
async def calculate_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
) -> PayrollRunResponse:
    """Calculate pay for every matching employee."""
    payroll_run = await service.calculate(payroll_run_id, tenant, actor_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post("/{payroll_run_id}/validate", response_model=ValidationResponse, responses=ERRORS)
async def validate_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
) -> ValidationResponse:
    """Validate the calculated snapshot."""
    result = await service.validate(payroll_run_id, tenant, actor_id)
    return ValidationResponse.model_validate(result)


@router.post("/{payroll_run_id}/approve", response_model=PayrollRunResponse, responses=ERRORS)
async def approve_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    payload: ApprovalRequest | None = None,
) -> PayrollRunResponse:
    """Approve a calculated run. Fails when validation finds blocking errors."""
    comments = payload.comments if payload else None
    payroll_run = await service.approve(payroll_run_id, tenant, actor_id, comments)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post(
    "/{payroll_run_id}/process-payments",
    response_model=PaymentResponse,
    responses={**ERRORS, 502: {"model": ErrorResponse}},
)
async def process_payroll_payments(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
) -> PaymentResponse:
    """Create salary slips and post them to the ledger."""
    result = await service.process_payments(payroll_run_id, tenant, actor_id)
    return PaymentResponse(
        slips_created=result.slips_created,
        payroll_run=PayrollRunResponse.model_validate(result.payroll_run),
    )


@router.post("/{payroll_run_id}/cancel", response_model=PayrollRunResponse, responses=ERRORS)
async def cancel_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    payload: ReasonRequest | None = None,
) -> PayrollRunResponse:
    """Cancel a run that has not been paid."""
    reason = payload.reason if payload else None
    payroll_run = await service.cancel(payroll_run_id, tenant, actor_id, reason)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post("/{payroll_run_id}/wps", response_model=WPSFileResponse, responses=ERRORS)
async def generate_wps_file(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
) -> WPSFileResponse:
    """Generate WPS bank-file metadata."""
    meta = await service.generate_wps(payroll_run_id, tenant, actor_id)
    return WPSFileResponse.model_validate(meta)


@router.get("/{payroll_run_id}/export", responses=ERRORS)
async def export_payroll_run(
    service: PayrollService,
    tenant: Tenant,
    payroll_run_id: RunId,
    export_format: Annotated[Literal["json", "csv"], Query(alias="format")] = "json",
) -> Response:
    """Download the run report."""
    content = await service.export_report(payroll_run_id, tenant, export_format)
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[export_format],
        headers={
            "Content-Disposition": f'attachment; filename="payroll-run-{payroll_run_id}.{export_format}"'
        },
    )


# ============================================================================
# Roster
# ============================================================================


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/exclude",
    response_model=PayrollRunResponse,
    responses=ERRORS,
)
async def exclude_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
    payload: ReasonRequest | None = None,
) -> PayrollRunResponse:
    """Remove an employee from the run."""
    reason = payload.reason if payload else None
    payroll_run = await service.exclude_employee(payroll_run_id, employee_id, tenant, actor_id, reason)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/include",
    response_model=PayrollRunResponse,
    responses=ERRORS,
)
async def include_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
) -> PayrollRunResponse:
    """Bring an excluded employee back into the run."""
    payroll_run = await service.include_employee(payroll_run_id, employee_id, tenant, actor_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/recalculate",
    response_model=NetPayChangeResponse,
    responses=ERRORS,
)
async def recalculate_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
) -> NetPayChangeResponse:
    """Refresh one employee from the current employee record."""
    change = await service.recalculate_employee(payroll_run_id, employee_id, tenant, actor_id)
    return NetPayChangeResponse.model_validate(change)


@router.patch(
    "/{payroll_run_id}/employees/{employee_id}",
    response_model=NetPayChangeResponse,
    responses=ERRORS,
)
async def adjust_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
    payload: EmployeeAdjustmentCommand,
) -> NetPayChangeResponse:
    """Set manual earnings and deductions for one employee."""
    change = await service.adjust_employee(payroll_run_id, employee_id, tenant, payload, actor_id)
    return NetPayChangeResponse.model_validate(change)


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/hold",
    response_model=PayrollRunResponse,
    responses=ERRORS,
)
async def hold_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
    payload: ReasonRequest | None = None,
) -> PayrollRunResponse:
    """Hold an employee's payment."""
    reason = payload.reason if payload else None
    payroll_run = await service.hold_employee(payroll_run_id, employee_id, tenant, actor_id, reason)
    return PayrollRunResponse.model_validate(payroll_run)


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/unhold",
    response_model=PayrollRunResponse,
    responses=ERRORS,
)
async def unhold_employee(
    service: PayrollService,
    tenant: Tenant,
    actor_id: ActorId,
    payroll_run_id: RunId,
    employee_id: EmployeeId,
) -> PayrollRunResponse:
    """Release a held employee."""
    payroll_run = await service.unhold_employee(payroll_run_id, employee_id, tenant, actor_id)
    return PayrollRunResponse.model_validate(payroll_run)
