"""General ledger posting for salary slips."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.models import GLJournalEntry, GLJournalLine, SalarySlip

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class GeneralLedger(ABC):
    """Posting contract used by payment processing.

    Implementations must be idempotent per slip: posting the same slip twice
    returns the first entry's id and writes nothing new.
    """

    @abstractmethod
    async def post_salary_slip(self, slip: SalarySlip) -> UUID:
        """Post one slip, returning the journal entry id."""


class JournalLedger(GeneralLedger):
    """Writes one balanced journal entry per salary slip into the GL tables.

    Entry layout:
        Dr salary expense           total earnings
        Cr salaries payable         net pay
        Cr GOSI payable             employee GOSI share
        Cr deductions payable       all other deductions
        Dr GOSI expense             employer GOSI share
        Cr GOSI payable             employer GOSI share

    Zero amounts produce no line.
    """

    DEFAULT_ACCOUNTS = {
        "SALARY_EXPENSE": "6000-SALARIES-EXP",
        "GOSI_EXPENSE": "6100-GOSI-EXP",
        "SALARIES_PAYABLE": "2100-SALARIES-PAY",
        "DEDUCTIONS_PAYABLE": "2200-DEDUCTION-PAY",
        "GOSI_PAYABLE": "2300-GOSI-PAY",
    }

    def __init__(self, session: AsyncSession, accounts: dict[str, str] | None = None):
        self.session = session
        self.accounts = {**self.DEFAULT_ACCOUNTS, **(accounts or {})}

    async def post_salary_slip(self, slip: SalarySlip) -> UUID:
        existing = await self._find_entry(slip.salary_slip_id)
        if existing is not None:
            logger.info("slip %s already posted as %s", slip.slip_number, existing.gl_journal_entry_id)
            return existing.gl_journal_entry_id

        entry = GLJournalEntry(
            salary_slip_id=slip.salary_slip_id,
            payroll_run_id=slip.payroll_run_id,
            entry_date=slip.payment_date or date.today(),
            reference=slip.slip_number,
            status="posted",
            firm_id=slip.firm_id,
            lawyer_id=slip.lawyer_id,
        )

        description = f"Salary {slip.slip_number}"
        self._add_line(entry, "SALARY_EXPENSE", debit=slip.total_earnings, description=description)
        self._add_line(entry, "SALARIES_PAYABLE", credit=slip.net_pay, description=description)
        self._add_line(entry, "GOSI_PAYABLE", credit=slip.gosi, description="GOSI employee share")
        self._add_line(
            entry,
            "DEDUCTIONS_PAYABLE",
            credit=slip.other_deductions_total,
            description="Other deductions",
        )
        self._add_line(entry, "GOSI_EXPENSE", debit=slip.gosi_employer, description="GOSI employer share")
        self._add_line(entry, "GOSI_PAYABLE", credit=slip.gosi_employer, description="GOSI employer share")

        if entry.total_debit != entry.total_credit:
            raise ValueError(
                f"Unbalanced journal entry for {slip.slip_number}: "
                f"debit {entry.total_debit} != credit {entry.total_credit}"
            )

        self.session.add(entry)
        await self.session.flush()
        return entry.gl_journal_entry_id

    def _add_line(
        self,
        entry: GLJournalEntry,
        account_key: str,
        debit: Decimal = ZERO,
        credit: Decimal = ZERO,
        description: str | None = None,
    ) -> None:
        """Add a journal line to the entry (skipped when the amount is zero)."""
        if debit == 0 and credit == 0:
            return
        entry.lines.append(
            GLJournalLine(
                account_string=self.accounts[account_key],
                debit=debit,
                credit=credit,
                description=description,
            )
        )

    async def _find_entry(self, salary_slip_id: UUID) -> GLJournalEntry | None:
        result = await self.session.execute(
            select(GLJournalEntry).where(GLJournalEntry.salary_slip_id == salary_slip_id)
        )
        return result.scalar_one_or_none()
