"""Salary slip generation and ledger posting for approved runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.errors import LedgerPostingError, PayrollError, ensure_valid_amount
from firm_payroll.models import PayrollRun, PayrollRunEmployee, SalarySlip, utcnow
from firm_payroll.services.ledger import GeneralLedger
from firm_payroll.services.state_machine import Operation, PayrollRunStateMachine, PayrollRunStatus

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    """Slips written by one payment run."""

    payroll_run_id: UUID
    slips: list[SalarySlip] = field(default_factory=list)
    total_paid: Decimal = Decimal("0")

    @property
    def slips_created(self) -> int:
        return len(self.slips)


def slip_number_for(run_number: str, sequence: int) -> str:
    return f"SLIP-{run_number}-{sequence:04d}"


class PaymentProcessor:
    """Creates one salary slip per payable employee and posts each to the ledger.

    Flushes but never commits: the caller owns the transaction, so a failure
    anywhere (amount guard, slip insert, ledger) is undone by one rollback.

    Steps:
    1) approved → processing_payment
    2) For every employee not on hold: re-check net pay, insert the slip,
       post it, stamp the snapshot row
    3) processing_payment → paid and payment summary
    """

    def __init__(self, session: AsyncSession, ledger: GeneralLedger):
        self.session = session
        self.ledger = ledger

    async def process(self, payroll_run: PayrollRun, actor_id: UUID | None) -> PaymentOutcome:
        """Pay every non-held employee of an approved run.

        Raises:
            InvalidStateError: The run is not approved
            InvalidAmountError: A snapshot net pay is negative or not finite
            LedgerPostingError: The ledger rejected a slip
        """
        PayrollRunStateMachine.require_operation(payroll_run.status, Operation.PROCESS_PAYMENTS)
        PayrollRunStateMachine.validate_transition(
            payroll_run.status, PayrollRunStatus.PROCESSING_PAYMENT, Operation.PROCESS_PAYMENTS
        )
        payroll_run.status = PayrollRunStatus.PROCESSING_PAYMENT.value
        payroll_run.payment_status = "processing"

        outcome = PaymentOutcome(payroll_run_id=payroll_run.payroll_run_id)
        paid_at = utcnow()
        sequence = 0

        for row in payroll_run.employees:
            if row.on_hold:
                continue
            sequence += 1
            net_pay = ensure_valid_amount("net_pay", row.net_pay, row.employee_number)

            slip = self._build_slip(
                payroll_run,
                row,
                slip_number_for(payroll_run.run_number, sequence),
                actor_id,
            )
            self.session.add(slip)
            await self.session.flush()

            try:
                await self.ledger.post_salary_slip(slip)
            except PayrollError:
                raise
            except Exception as exc:
                raise LedgerPostingError(slip.slip_number, str(exc)) from exc

            row.slip_id = slip.salary_slip_id
            row.slip_number = slip.slip_number
            row.payment_status = "paid"
            row.status = "paid"
            row.paid_at = paid_at

            outcome.slips.append(slip)
            outcome.total_paid += net_pay

        PayrollRunStateMachine.validate_transition(
            payroll_run.status, PayrollRunStatus.PAID, Operation.PROCESS_PAYMENTS
        )
        payroll_run.status = PayrollRunStatus.PAID.value
        payroll_run.payment_status = "completed"
        payroll_run.paid_employees = outcome.slips_created
        payroll_run.total_paid = payroll_run.total_net_pay
        payroll_run.payment_completion_percentage = 100
        payroll_run.paid_at = paid_at

        logger.info(
            "paid run %s: %d slips, %s posted",
            payroll_run.run_number,
            outcome.slips_created,
            outcome.total_paid,
        )
        return outcome

    def _build_slip(
        self,
        payroll_run: PayrollRun,
        row: PayrollRunEmployee,
        slip_number: str,
        actor_id: UUID | None,
    ) -> SalarySlip:
        return SalarySlip(
            salary_slip_id=uuid4(),
            payroll_run_id=payroll_run.payroll_run_id,
            employee_id=row.employee_id,
            slip_number=slip_number,
            firm_id=payroll_run.firm_id,
            lawyer_id=payroll_run.lawyer_id,
            employee_number=row.employee_number,
            employee_name=row.employee_name,
            employee_name_ar=row.employee_name_ar,
            national_id=row.national_id,
            department=row.department,
            job_title=row.job_title,
            period_month=payroll_run.period_month,
            period_year=payroll_run.period_year,
            period_start=payroll_run.period_start,
            period_end=payroll_run.period_end,
            payment_date=payroll_run.payment_date,
            basic_salary=row.basic_salary,
            total_allowances=row.allowances,
            overtime=row.overtime,
            bonus=row.bonus,
            commission=row.commission,
            total_earnings=row.gross_pay,
            gosi=row.gosi,
            gosi_employer=row.gosi_employer,
            loans=row.loans,
            advances=row.advances,
            absences=row.absences,
            late_deductions=row.late_deductions,
            violations=row.violations,
            other_deductions=row.other_deductions,
            total_deductions=row.total_deductions,
            net_pay=row.net_pay,
            payment_method=row.payment_method,
            bank_name=row.bank_name,
            iban=row.iban,
            payment_status="paid",
            generated_by=actor_id,
        )
