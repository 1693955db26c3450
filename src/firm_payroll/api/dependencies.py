"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.database import init_db
from firm_payroll.services import PayrollRunService
from firm_payroll.tenancy import TenantContext


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        yield session


def _parse_uuid(value: str, header: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_tenant(
    x_firm_id: Annotated[str | None, Header()] = None,
    x_lawyer_id: Annotated[str | None, Header()] = None,
) -> TenantContext:
    """Resolve the tenant from exactly one of X-Firm-ID / X-Lawyer-ID."""
    if bool(x_firm_id) == bool(x_lawyer_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exactly one of X-Firm-ID or X-Lawyer-ID header is required",
        )
    if x_firm_id:
        return TenantContext.for_firm(_parse_uuid(x_firm_id, "X-Firm-ID"))
    return TenantContext.for_lawyer(_parse_uuid(x_lawyer_id, "X-Lawyer-ID"))


async def get_actor_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> UUID | None:
    """Acting user, when the caller supplies one."""
    if not x_user_id:
        return None
    return _parse_uuid(x_user_id, "X-User-ID")


async def get_payroll_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> PayrollRunService:
    return PayrollRunService(db)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Tenant = Annotated[TenantContext, Depends(get_tenant)]
ActorId = Annotated[UUID | None, Depends(get_actor_id)]
PayrollService = Annotated[PayrollRunService, Depends(get_payroll_service)]
