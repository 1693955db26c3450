"""General ledger journal models written by the salary slip posting adapter."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from firm_payroll.models.base import Base, TenantMixin, TimestampMixin, utcnow


class GLJournalEntry(Base, TenantMixin):
    """Balanced journal entry for one salary slip."""

    __tablename__ = "gl_journal_entry"

    gl_journal_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    salary_slip_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_slip.salary_slip_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=False,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="posted")
    posted_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('posted', 'reversed')",
            name="gl_journal_entry_status_check",
        ),
    )

    # Relationships
    lines: Mapped[list[GLJournalLine]] = relationship(
        back_populates="entry",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))


class GLJournalLine(Base, TimestampMixin):
    """Individual GL journal entry line."""

    __tablename__ = "gl_journal_line"

    gl_journal_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    gl_journal_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("gl_journal_entry.gl_journal_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    account_string: Mapped[str] = mapped_column(String, nullable=False)
    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(debit = 0 AND credit <> 0) OR (credit = 0 AND debit <> 0)",
            name="gl_journal_line_debit_credit_check",
        ),
    )

    # Relationships
    entry: Mapped[GLJournalEntry] = relationship(back_populates="lines")
