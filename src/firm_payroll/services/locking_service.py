"""Per-run mutual exclusion for mutating payroll operations."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.database import acquire_advisory_xact_lock
from firm_payroll.errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class RunLockManager:
    """Grants at most one in-flight mutating operation per payroll run.

    Two layers:
    1. A process-local registry of held run ids (non-blocking try)
    2. On PostgreSQL, a transaction-scoped advisory lock keyed by the run id,
       so workers in other processes are excluded as well

    Stale writes that slip past both are still caught by the run's version
    column at flush time.
    """

    def __init__(self) -> None:
        self._held: set[str] = set()

    def is_held(self, payroll_run_id: UUID | str) -> bool:
        return str(payroll_run_id) in self._held

    @asynccontextmanager
    async def hold(self, session: AsyncSession, payroll_run_id: UUID | str) -> AsyncIterator[None]:
        """Hold the run for the duration of the block.

        Raises:
            ConcurrencyConflictError: Another operation already holds the run
        """
        key = str(payroll_run_id)
        if key in self._held:
            logger.warning("payroll run %s is locked by another operation", key)
            raise ConcurrencyConflictError(key, "operation already in progress")
        self._held.add(key)
        try:
            if _is_postgres(session) and not await acquire_advisory_xact_lock(session, key):
                logger.warning("advisory lock for payroll run %s is held elsewhere", key)
                raise ConcurrencyConflictError(key, "advisory lock held by another transaction")
            yield
        finally:
            self._held.discard(key)


def _is_postgres(session: AsyncSession) -> bool:
    bind = session.bind
    return bind is not None and bind.dialect.name == "postgresql"


# Shared by every service instance in this process
run_locks = RunLockManager()
