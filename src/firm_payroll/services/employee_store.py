"""Read access to employee records owned by HR."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.models import Employee
from firm_payroll.tenancy import TenantContext


class EmployeeStore:
    """Tenant-scoped employee queries used by calculation and roster changes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_employees(
        self,
        tenant: TenantContext,
        statuses: Iterable[str],
        types: Iterable[str] | None = None,
        exclude_ids: Iterable[UUID] = (),
    ) -> list[Employee]:
        """Employees of the tenant matching the run's inclusion filters.

        An empty or missing type list does not filter by employment type.
        Results are ordered by employee number so the snapshot order is stable.
        """
        stmt = select(Employee).where(
            tenant.filter_for(Employee),
            Employee.employment_status.in_(list(statuses)),
        )
        types = list(types or [])
        if types:
            stmt = stmt.where(Employee.employment_type.in_(types))
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            stmt = stmt.where(Employee.employee_id.not_in(exclude_ids))
        stmt = stmt.order_by(Employee.employee_number, Employee.employee_id)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_employee(self, employee_id: UUID, tenant: TenantContext) -> Employee | None:
        """One employee, or None when absent under this tenant."""
        result = await self.session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                tenant.filter_for(Employee),
            )
        )
        return result.scalar_one_or_none()
