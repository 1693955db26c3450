"""Firm payroll services."""

from firm_payroll.services.ledger import GeneralLedger, JournalLedger
from firm_payroll.services.locking_service import RunLockManager, run_locks
from firm_payroll.services.payroll_run_service import PaymentResult, PayrollRunService, RunPage
from firm_payroll.services.state_machine import Operation, PayrollRunStateMachine, PayrollRunStatus
from firm_payroll.services.validation import PayrollValidator, ValidationIssue, ValidationResult

__all__ = [
    "GeneralLedger",
    "JournalLedger",
    "RunLockManager",
    "run_locks",
    "PaymentResult",
    "PayrollRunService",
    "RunPage",
    "Operation",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PayrollValidator",
    "ValidationIssue",
    "ValidationResult",
]
