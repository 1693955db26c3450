"""Payroll run service - main orchestrator for payroll run operations."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from firm_payroll.calculators import PayrollCalculator
from firm_payroll.errors import (
    CalculationTimeoutError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    TenantMismatchError,
)
from firm_payroll.models import PayrollRun, PayrollRunExclusion, ProcessingLogEntry, utcnow
from firm_payroll.services.commands import (
    CreateRunCommand,
    EmployeeAdjustmentCommand,
    RunConfiguration,
    RunListFilters,
    UpdateRunCommand,
)
from firm_payroll.services.employee_store import EmployeeStore
from firm_payroll.services.export_service import WPSFileMeta, build_wps_meta, export_report
from firm_payroll.services.ledger import GeneralLedger, JournalLedger
from firm_payroll.services.locking_service import RunLockManager, run_locks
from firm_payroll.services.payment_service import PaymentProcessor
from firm_payroll.services.roster_service import NetPayChange, RosterService, refresh_counts
from firm_payroll.services.state_machine import Operation, PayrollRunStateMachine, PayrollRunStatus
from firm_payroll.services.validation import PayrollValidator, ValidationResult
from firm_payroll.tenancy import TenantContext

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    slips_created: int
    payroll_run: PayrollRun


@dataclass
class RunPage:
    items: list[PayrollRun]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.page_size) if self.total else 0


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create/update/delete runs and read them back under tenant scope
    - calculate: snapshot the tenant's employees and compute pay
    - validate / approve: approval re-validates and refuses blocking errors
    - process_payments: salary slips + ledger posting, all or nothing
    - cancel: terminal, from draft/calculated/approved
    - roster edits: exclude, include, recalculate, adjust, hold, unhold
    - generate_wps / export_report

    Every mutating operation holds the per-run lock and is one transaction:
    committed on success, rolled back on any error. Calculation, approval,
    cancellation and payment failures are then recorded in the processing
    log of the unchanged run.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger: GeneralLedger | None = None,
        calculator: PayrollCalculator | None = None,
        employee_store: EmployeeStore | None = None,
        lock_manager: RunLockManager | None = None,
    ):
        self.session = session
        self.calculator = calculator or PayrollCalculator()
        self.employee_store = employee_store or EmployeeStore(session)
        self.ledger = ledger or JournalLedger(session)
        self.locks = lock_manager or run_locks
        self.validator = PayrollValidator()
        self.roster = RosterService(session, self.calculator, self.employee_store)
        self.payments = PaymentProcessor(session, self.ledger)

    # ===== Loading =====

    async def _load_run(self, payroll_run_id: UUID, tenant: TenantContext) -> PayrollRun:
        payroll_run = await self.session.get(PayrollRun, payroll_run_id, populate_existing=True)
        if payroll_run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        if not tenant.owns(payroll_run):
            raise TenantMismatchError("PayrollRun", payroll_run_id)
        return payroll_run

    async def get_run(self, payroll_run_id: UUID, tenant: TenantContext) -> PayrollRun:
        """Load a run with its snapshot, exclusions and processing log."""
        return await self._load_run(payroll_run_id, tenant)

    async def list_runs(
        self,
        tenant: TenantContext,
        filters: RunListFilters | None = None,
    ) -> RunPage:
        """Runs of the tenant, newest first."""
        filters = filters or RunListFilters()
        conditions = [tenant.filter_for(PayrollRun)]
        if filters.month is not None:
            conditions.append(PayrollRun.period_month == filters.month)
        if filters.year is not None:
            conditions.append(PayrollRun.period_year == filters.year)
        if filters.status:
            conditions.append(PayrollRun.status == filters.status)
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(
                or_(
                    PayrollRun.run_number.ilike(pattern),
                    PayrollRun.run_name.ilike(pattern),
                    PayrollRun.run_name_ar.ilike(pattern),
                )
            )

        total = await self.session.scalar(
            select(func.count()).select_from(PayrollRun).where(*conditions)
        )
        result = await self.session.execute(
            select(PayrollRun)
            .where(*conditions)
            .order_by(PayrollRun.created_at.desc(), PayrollRun.run_number.desc())
            .offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
        )
        return RunPage(
            items=list(result.scalars().all()),
            total=total or 0,
            page=filters.page,
            page_size=filters.page_size,
        )

    async def get_stats(self, tenant: TenantContext, today: date | None = None) -> dict[str, Any]:
        """Dashboard counters for the tenant."""
        today = today or utcnow().date()
        scope = tenant.filter_for(PayrollRun)

        async def count(*conditions: Any) -> int:
            value = await self.session.scalar(
                select(func.count()).select_from(PayrollRun).where(scope, *conditions)
            )
            return value or 0

        paid = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(PayrollRun.total_net_pay), 0)).where(
                scope,
                PayrollRun.status == PayrollRunStatus.PAID.value,
                PayrollRun.period_month == today.month,
                PayrollRun.period_year == today.year,
            )
        )
        paid_count, paid_total = paid.one()

        return {
            "total_runs": await count(),
            "draft_runs": await count(PayrollRun.status == PayrollRunStatus.DRAFT.value),
            "pending_approval": await count(
                PayrollRun.status == PayrollRunStatus.CALCULATED.value
            ),
            "paid_this_month": {
                "count": paid_count or 0,
                "total": str(Decimal(str(paid_total or 0)).quantize(Decimal("0.01"))),
            },
        }

    # ===== Unit of work =====

    @asynccontextmanager
    async def _run_scope(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
        failure_action: tuple[str, str] | None = None,
    ) -> AsyncIterator[PayrollRun]:
        """Lock, load, yield, then commit; roll back on any error.

        With failure_action=(action, action_type), an error raised after the
        run was loaded is recorded as a failed log entry on the rolled-back run.
        """
        async with self.locks.hold(self.session, payroll_run_id):
            payroll_run = None
            try:
                payroll_run = await self._load_run(payroll_run_id, tenant)
                yield payroll_run
                if payroll_run not in self.session.deleted:
                    payroll_run.updated_at = utcnow()
                await self.session.commit()
            except StaleDataError as exc:
                await self.session.rollback()
                logger.warning("stale write on payroll run %s", payroll_run_id)
                raise ConcurrencyConflictError(payroll_run_id, "run was modified concurrently") from exc
            except Exception as exc:
                await self.session.rollback()
                if payroll_run is None:
                    raise
                logger.warning(
                    "rolled back %s on payroll run %s: %s",
                    failure_action[0] if failure_action else "operation",
                    payroll_run_id,
                    exc,
                )
                if failure_action is not None:
                    await self._record_failure(payroll_run_id, tenant, actor_id, failure_action, exc)
                raise

    async def _record_failure(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None,
        failure_action: tuple[str, str],
        exc: Exception,
    ) -> None:
        action, action_type = failure_action
        try:
            payroll_run = await self._load_run(payroll_run_id, tenant)
            self._log(payroll_run, action, action_type, actor_id, status="failed", details=str(exc))
            payroll_run.updated_at = utcnow()
            await self.session.commit()
        except Exception:
            logger.exception("could not record failure on payroll run %s", payroll_run_id)
            await self.session.rollback()

    def _log(
        self,
        payroll_run: PayrollRun,
        action: str,
        action_type: str,
        actor_id: UUID | None,
        status: str = "success",
        details: str | None = None,
        affected_employees: int | None = None,
        affected_amount: Decimal | None = None,
        duration_ms: int | None = None,
    ) -> ProcessingLogEntry:
        """Append a processing log entry."""
        sequence = max((entry.sequence for entry in payroll_run.processing_log), default=0) + 1
        logged_at = utcnow()
        entry = ProcessingLogEntry(
            sequence=sequence,
            log_id=f"LOG-{logged_at:%Y%m%d%H%M%S%f}-{sequence}",
            action=action,
            action_type=action_type,
            performed_by=actor_id,
            status=status,
            details=details,
            affected_employees=affected_employees,
            affected_amount=affected_amount,
            duration_ms=duration_ms,
            logged_at=logged_at,
        )
        payroll_run.processing_log.append(entry)
        return entry

    # ===== Run CRUD =====

    async def _next_run_number(self, tenant: TenantContext, year: int) -> str:
        prefix = f"RUN-{year}-"
        result = await self.session.execute(
            select(PayrollRun.run_number).where(
                tenant.filter_for(PayrollRun),
                PayrollRun.run_number.like(f"{prefix}%"),
            )
        )
        sequences = [
            int(number[len(prefix):])
            for number in result.scalars()
            if number[len(prefix):].isdigit()
        ]
        return f"{prefix}{max(sequences, default=0) + 1:03d}"

    def _apply_configuration(
        self,
        payroll_run: PayrollRun,
        configuration: RunConfiguration,
        actor_id: UUID | None,
    ) -> None:
        payroll_run.included_employment_statuses = list(configuration.included_employment_statuses)
        payroll_run.included_employee_types = list(configuration.included_employee_types)
        payroll_run.calculate_gosi = configuration.calculate_gosi
        payroll_run.prorate_salaries = configuration.prorate_salaries
        payroll_run.include_overtime = configuration.include_overtime
        payroll_run.include_bonuses = configuration.include_bonuses
        payroll_run.process_loans = configuration.process_loans
        payroll_run.process_advances = configuration.process_advances

        excluded_at = utcnow()
        for employee_id in dict.fromkeys(configuration.excluded_employee_ids):
            payroll_run.exclusions.append(
                PayrollRunExclusion(
                    employee_id=employee_id,
                    reason="Excluded in run configuration",
                    excluded_by=actor_id,
                    excluded_at=excluded_at,
                )
            )

    async def create_run(
        self,
        tenant: TenantContext,
        command: CreateRunCommand,
        actor_id: UUID | None = None,
    ) -> PayrollRun:
        """Create a draft run for a pay period."""
        period = command.pay_period
        try:
            payroll_run = PayrollRun(
                **tenant.owner_columns(),
                run_number=await self._next_run_number(tenant, period.year),
                run_name=command.run_name,
                run_name_ar=command.run_name_ar,
                status=PayrollRunStatus.DRAFT.value,
                created_by=actor_id,
                period_month=period.month,
                period_year=period.year,
                period_start=period.period_start,
                period_end=period.period_end,
                payment_date=period.payment_date,
                notes=command.notes,
            )
            self._apply_configuration(
                payroll_run, command.configuration or RunConfiguration(), actor_id
            )
            self._log(payroll_run, "Payroll run created", "creation", actor_id)
            self.session.add(payroll_run)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("created payroll run %s for tenant %s", payroll_run.run_number, tenant.tenant_id)
        return payroll_run

    async def update_run(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        command: UpdateRunCommand,
        actor_id: UUID | None = None,
    ) -> PayrollRun:
        """Change name, period, notes, or (drafts only) configuration."""
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.UPDATE)
            provided = command.model_fields_set

            if command.configuration is not None:
                PayrollRunStateMachine.require_operation(
                    payroll_run.status,
                    Operation.UPDATE_CONFIGURATION,
                    "configuration can only change while the run is a draft",
                )
            if "run_name" in provided:
                payroll_run.run_name = command.run_name
            if "run_name_ar" in provided:
                payroll_run.run_name_ar = command.run_name_ar
            if command.pay_period is not None:
                period = command.pay_period
                payroll_run.period_month = period.month
                payroll_run.period_year = period.year
                payroll_run.period_start = period.period_start
                payroll_run.period_end = period.period_end
                payroll_run.payment_date = period.payment_date
            if command.configuration is not None:
                payroll_run.exclusions.clear()
                await self.session.flush()
                self._apply_configuration(payroll_run, command.configuration, actor_id)
            if "notes" in provided:
                payroll_run.notes = command.notes

            self._log(
                payroll_run,
                "Payroll run updated",
                "update",
                actor_id,
                details=", ".join(sorted(provided)) or None,
            )

        return payroll_run

    async def delete_run(self, payroll_run_id: UUID, tenant: TenantContext) -> None:
        """Delete a draft run."""
        async with self._run_scope(payroll_run_id, tenant) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.DELETE)
            await self.session.delete(payroll_run)
        logger.info("deleted payroll run %s", payroll_run_id)

    async def bulk_delete_runs(self, tenant: TenantContext, payroll_run_ids: Sequence[UUID]) -> int:
        """Delete the draft runs among the given ids, returning how many were deleted.

        Ids that are missing, owned by another tenant, not draft, or locked by
        an in-flight operation are skipped.
        """
        if not payroll_run_ids:
            return 0
        try:
            result = await self.session.execute(
                select(PayrollRun).where(
                    tenant.filter_for(PayrollRun),
                    PayrollRun.payroll_run_id.in_(list(payroll_run_ids)),
                    PayrollRun.status == PayrollRunStatus.DRAFT.value,
                )
            )
            runs = [r for r in result.scalars().all() if not self.locks.is_held(r.payroll_run_id)]
            for payroll_run in runs:
                await self.session.delete(payroll_run)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("bulk deleted %d payroll runs for tenant %s", len(runs), tenant.tenant_id)
        return len(runs)

    # ===== Lifecycle =====

    async def calculate(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> PayrollRun:
        """Snapshot the tenant's matching employees and compute the run.

        Raises:
            InvalidStateError: The run is not draft or calculated
            InvalidAmountError: An employee's salary or allowance is out of bounds
            CalculationTimeoutError: The calculation exceeded its time budget
        """
        timeout = self.calculator.timeout_seconds
        async with self._run_scope(
            payroll_run_id, tenant, actor_id, ("Payroll calculation failed", "calculation")
        ) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.CALCULATE)
            PayrollRunStateMachine.validate_transition(
                payroll_run.status, PayrollRunStatus.CALCULATING, Operation.CALCULATE
            )
            payroll_run.status = PayrollRunStatus.CALCULATING.value
            deadline = time.monotonic() + timeout

            try:
                employees = await asyncio.wait_for(
                    self.employee_store.find_employees(
                        tenant,
                        payroll_run.included_employment_statuses,
                        payroll_run.included_employee_types,
                        payroll_run.excluded_employee_ids,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as exc:
                raise CalculationTimeoutError(payroll_run_id, timeout) from exc

            calculation = self.calculator.calculate_roster(payroll_run, employees, deadline)

            # Old rows must be gone before new rows for the same employees are inserted
            payroll_run.employees.clear()
            await self.session.flush()
            payroll_run.employees.extend(calculation.rows)

            calculation.summary.apply_to(payroll_run)
            payroll_run.statistics = calculation.statistics
            refresh_counts(payroll_run)
            self._reset_validation(payroll_run)

            PayrollRunStateMachine.validate_transition(
                payroll_run.status, PayrollRunStatus.CALCULATED, Operation.CALCULATE
            )
            payroll_run.status = PayrollRunStatus.CALCULATED.value
            self._log(
                payroll_run,
                "Payroll calculated",
                "calculation",
                actor_id,
                affected_employees=len(calculation.rows),
                affected_amount=calculation.summary.total_net_pay,
                duration_ms=calculation.duration_ms,
            )

        logger.info(
            "calculated run %s: %d employees, net %s",
            payroll_run.run_number,
            payroll_run.total_employees,
            payroll_run.total_net_pay,
        )
        return payroll_run

    @staticmethod
    def _reset_validation(payroll_run: PayrollRun) -> None:
        payroll_run.validated = False
        payroll_run.validated_at = None
        payroll_run.validated_by = None
        payroll_run.critical_error_count = 0
        payroll_run.error_count = 0
        payroll_run.warning_count = 0
        payroll_run.has_blocking_errors = False
        payroll_run.can_proceed = False
        payroll_run.validation_issues = []

    async def validate(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> ValidationResult:
        """Evaluate the snapshot and store the validation block."""
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.VALIDATE)
            result = self.validator.validate(payroll_run)
            self.validator.apply(payroll_run, result, actor_id)
            self._log(
                payroll_run,
                "Payroll validated",
                "validation",
                actor_id,
                status="warning" if result.has_blocking_errors else "success",
                details=f"Found {len(result.issues)} issues",
            )

        logger.info(
            "validated run %s: %d critical, %d errors, %d warnings",
            payroll_run.run_number,
            result.critical_error_count,
            result.error_count,
            result.warning_count,
        )
        return result

    async def approve(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
        comments: str | None = None,
    ) -> PayrollRun:
        """Approve a calculated run after re-validating its snapshot.

        A rejected approval still commits the fresh validation block and a
        failed log entry, then raises.

        Raises:
            InvalidStateError: The run is not calculated
            InvalidTransitionError: Validation found blocking errors
        """
        rejected: InvalidTransitionError | None = None
        async with self._run_scope(
            payroll_run_id, tenant, actor_id, ("Payroll approval rejected", "approval")
        ) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.APPROVE)
            result = self.validator.validate(payroll_run)
            self.validator.apply(payroll_run, result, actor_id)

            blockers = PayrollRunStateMachine.approval_blockers(payroll_run)
            if blockers:
                reason = "; ".join(blockers)
                self._log(
                    payroll_run,
                    "Payroll approval rejected",
                    "approval",
                    actor_id,
                    status="failed",
                    details=reason,
                )
                rejected = InvalidTransitionError(payroll_run.status, Operation.APPROVE.value, reason)
            else:
                PayrollRunStateMachine.validate_transition(
                    payroll_run.status, PayrollRunStatus.APPROVED, Operation.APPROVE
                )
                payroll_run.status = PayrollRunStatus.APPROVED.value
                payroll_run.approval_status = "approved"
                payroll_run.approved_by = actor_id
                payroll_run.approved_at = utcnow()
                payroll_run.approver_notes = comments
                self._log(
                    payroll_run,
                    "Payroll approved",
                    "approval",
                    actor_id,
                    details=comments,
                    affected_employees=payroll_run.total_employees,
                    affected_amount=payroll_run.total_net_pay,
                )

        if rejected is not None:
            logger.warning("approval of run %s rejected: %s", payroll_run.run_number, rejected.reason)
            raise rejected

        logger.info("approved run %s", payroll_run.run_number)
        return payroll_run

    async def process_payments(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> PaymentResult:
        """Create and post salary slips for an approved run, all or nothing.

        Raises:
            InvalidStateError: The run is not approved
            InvalidAmountError: A snapshot net pay failed the last-chance check
            LedgerPostingError: The ledger rejected a slip; nothing was persisted
        """
        async with self._run_scope(
            payroll_run_id, tenant, actor_id, ("Payment processing failed", "payment")
        ) as payroll_run:
            outcome = await self.payments.process(payroll_run, actor_id)
            self._log(
                payroll_run,
                "Payments processed",
                "payment",
                actor_id,
                affected_employees=outcome.slips_created,
                affected_amount=outcome.total_paid,
            )

        return PaymentResult(slips_created=outcome.slips_created, payroll_run=payroll_run)

    async def cancel(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        """Cancel a draft, calculated or approved run. Cancelled is terminal."""
        async with self._run_scope(
            payroll_run_id, tenant, actor_id, ("Payroll cancellation rejected", "cancellation")
        ) as payroll_run:
            PayrollRunStateMachine.require_operation(payroll_run.status, Operation.CANCEL)
            PayrollRunStateMachine.validate_transition(
                payroll_run.status, PayrollRunStatus.CANCELLED, Operation.CANCEL
            )
            payroll_run.status = PayrollRunStatus.CANCELLED.value
            self._log(payroll_run, "Payroll run cancelled", "cancellation", actor_id, details=reason)

        logger.info("cancelled run %s", payroll_run.run_number)
        return payroll_run

    # ===== Roster =====

    async def exclude_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            row = await self.roster.exclude(payroll_run, employee_id, reason, actor_id)
            self._log(
                payroll_run,
                "Employee excluded",
                "exclusion",
                actor_id,
                details=reason,
                affected_employees=1,
                affected_amount=row.net_pay,
            )
        return payroll_run

    async def include_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> PayrollRun:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            row = await self.roster.include(payroll_run, employee_id, tenant)
            self._log(
                payroll_run,
                "Employee included",
                "inclusion",
                actor_id,
                affected_employees=1,
                affected_amount=row.net_pay,
            )
        return payroll_run

    async def recalculate_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> NetPayChange:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            change = await self.roster.recalculate(payroll_run, employee_id, tenant)
            self._log(
                payroll_run,
                "Employee recalculated",
                "calculation",
                actor_id,
                details=f"net pay {change.old_net_pay} -> {change.new_net_pay}",
                affected_employees=1,
                affected_amount=change.difference,
            )
        return change

    async def adjust_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        command: EmployeeAdjustmentCommand,
        actor_id: UUID | None = None,
    ) -> NetPayChange:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            change = await self.roster.adjust(payroll_run, employee_id, command)
            self._log(
                payroll_run,
                "Employee pay adjusted",
                "update",
                actor_id,
                details=", ".join(sorted(command.changes())) or None,
                affected_employees=1,
                affected_amount=change.difference,
            )
        return change

    async def hold_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            await self.roster.hold(payroll_run, employee_id, reason, actor_id)
            self._log(
                payroll_run, "Employee put on hold", "hold", actor_id, details=reason, affected_employees=1
            )
        return payroll_run

    async def unhold_employee(
        self,
        payroll_run_id: UUID,
        employee_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> PayrollRun:
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            await self.roster.unhold(payroll_run, employee_id)
            self._log(payroll_run, "Employee removed from hold", "hold", actor_id, affected_employees=1)
        return payroll_run

    # ===== Outputs =====

    async def generate_wps(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        actor_id: UUID | None = None,
    ) -> WPSFileMeta:
        """Record WPS bank-file metadata on an approved or paid run."""
        async with self._run_scope(payroll_run_id, tenant, actor_id) as payroll_run:
            meta = build_wps_meta(payroll_run, actor_id)
            self._log(
                payroll_run,
                "WPS file generated",
                "wps",
                actor_id,
                details=meta.file_name,
                affected_employees=meta.record_count,
                affected_amount=meta.total_amount,
            )
        return meta

    async def export_report(
        self,
        payroll_run_id: UUID,
        tenant: TenantContext,
        export_format: str = "json",
    ) -> bytes:
        """Render a run as json or csv bytes."""
        payroll_run = await self._load_run(payroll_run_id, tenant)
        return export_report(payroll_run, export_format)

