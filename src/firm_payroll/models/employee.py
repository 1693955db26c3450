"""Employee compensation records (owned by HR, read-only to payroll)."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from firm_payroll.models.base import Base, TenantMixin, TimestampMixin


class Employee(Base, TenantMixin, TimestampMixin):
    """Employee record with the compensation fields payroll reads."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    full_name_en: Mapped[str | None] = mapped_column(String, nullable=True)
    full_name_ar: Mapped[str | None] = mapped_column(String, nullable=True)
    national_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_saudi: Mapped[bool] = mapped_column(default=True, nullable=False)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)

    employment_status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    employment_type: Mapped[str] = mapped_column(String, nullable=False, default="full_time")
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_method: Mapped[str] = mapped_column(String, nullable=False, default="bank_transfer")
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)
    iban: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(firm_id IS NULL) <> (lawyer_id IS NULL)",
            name="employee_single_tenant_check",
        ),
        CheckConstraint(
            "payment_method IN ('bank_transfer', 'cash', 'cheque')",
            name="employee_payment_method_check",
        ),
        UniqueConstraint("firm_id", "lawyer_id", "employee_number", name="employee_tenant_number_unique"),
    )

    # Relationships
    allowances: Mapped[list[EmployeeAllowance]] = relationship(
        back_populates="employee",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str | None:
        """English name, falling back to Arabic."""
        return self.full_name_en or self.full_name_ar


class EmployeeAllowance(Base):
    """A recurring monthly allowance (housing, transport, ...)."""

    __tablename__ = "employee_allowance"

    employee_allowance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="allowances")
