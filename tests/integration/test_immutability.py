"""Salary slips are immutable and the processing log is append-only."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from firm_payroll.models import ImmutableRecordError, SalarySlip

pytestmark = pytest.mark.asyncio


@pytest.fixture
def paid_run(create_run, scenario_roster, service, tenant):
    async def _make():
        await scenario_roster()
        run = await create_run()
        await service.calculate(run.payroll_run_id, tenant)
        await service.approve(run.payroll_run_id, tenant)
        await service.process_payments(run.payroll_run_id, tenant)
        return run.payroll_run_id

    return _make


class TestSalarySlipImmutability:
    async def test_update_rejected(self, paid_run, session):
        """Changing a slip after insert fails at flush."""
        run_id = await paid_run()
        slip = (
            await session.scalars(select(SalarySlip).where(SalarySlip.payroll_run_id == run_id))
        ).first()

        slip.net_pay = Decimal("1")
        with pytest.raises(ImmutableRecordError):
            await session.flush()
        await session.rollback()

    async def test_delete_rejected(self, paid_run, session):
        run_id = await paid_run()
        slip = (
            await session.scalars(select(SalarySlip).where(SalarySlip.payroll_run_id == run_id))
        ).first()

        await session.delete(slip)
        with pytest.raises(ImmutableRecordError):
            await session.flush()
        await session.rollback()


class TestProcessingLog:
    async def test_entries_cannot_be_rewritten(self, create_run, session):
        run = await create_run()
        entry = run.processing_log[0]

        entry.details = "rewritten"
        with pytest.raises(ImmutableRecordError):
            await session.flush()
        await session.rollback()

    async def test_sequence_is_contiguous(self, paid_run, service, tenant):
        """Every operation appends exactly one entry, numbered in order."""
        run_id = await paid_run()

        run = await service.get_run(run_id, tenant)

        assert [e.sequence for e in run.processing_log] == [1, 2, 3, 4]
        assert [e.action_type for e in run.processing_log] == [
            "creation",
            "calculation",
            "approval",
            "payment",
        ]
        assert len({e.log_id for e in run.processing_log}) == 4
