"""Error taxonomy for payroll run operations."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll domain errors."""

    code = "PAYROLL_ERROR"


class NotFoundError(PayrollError):
    """Raised when a run or referenced employee is absent under tenant scope."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID | str, detail: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        msg = f"{entity} {entity_id} not found"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class TenantMismatchError(PayrollError):
    """Raised when the caller's tenant does not own the target run or employee."""

    code = "TENANT_MISMATCH"

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} does not belong to the requesting tenant")


class InvalidStateError(PayrollError):
    """Raised when an operation is attempted from a disallowed run status."""

    code = "INVALID_STATE"

    def __init__(self, status: str, operation: str, reason: str | None = None):
        self.status = status
        self.operation = operation
        self.reason = reason
        msg = f"Cannot {operation} a payroll run in status '{status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidTransitionError(PayrollError):
    """Raised when a state-machine guard rejects a transition."""

    code = "INVALID_TRANSITION"

    def __init__(self, status: str, operation: str, reason: str | None = None):
        self.status = status
        self.operation = operation
        self.reason = reason
        msg = f"Invalid transition '{operation}' from status '{status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidAmountError(PayrollError):
    """Raised when a salary, allowance or net pay value fails sanity bounds."""

    code = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Any, employee_ref: UUID | str | None = None):
        self.field = field
        self.value = value
        self.employee_ref = employee_ref
        msg = f"Invalid {field} amount {value!r}"
        if employee_ref is not None:
            msg += f" for employee {employee_ref}"
        super().__init__(msg)


class ConcurrencyConflictError(PayrollError):
    """Raised when another operation already holds the run, or the row is stale."""

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, payroll_run_id: UUID | str, reason: str | None = None):
        self.payroll_run_id = payroll_run_id
        msg = f"Payroll run {payroll_run_id} is being modified by another operation"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class LedgerPostingError(PayrollError):
    """Raised when posting a salary slip to the general ledger fails."""

    code = "LEDGER_POSTING_FAILED"

    def __init__(self, slip_number: str, reason: str | None = None):
        self.slip_number = slip_number
        msg = f"GL posting failed for slip {slip_number}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class CalculationTimeoutError(PayrollError):
    """Raised when a run calculation exceeds its time budget."""

    code = "CALCULATION_TIMEOUT"

    def __init__(self, payroll_run_id: UUID | str, timeout_seconds: float):
        self.payroll_run_id = payroll_run_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Calculation of payroll run {payroll_run_id} exceeded {timeout_seconds}s"
        )


def ensure_valid_amount(
    field: str,
    value: Decimal,
    employee_ref: UUID | str | None = None,
    ceiling: Decimal | None = None,
) -> Decimal:
    """Check a money amount is finite, non-negative and under an optional ceiling."""
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except ArithmeticError:
            raise InvalidAmountError(field, value, employee_ref) from None
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(field, value, employee_ref)
    if ceiling is not None and value > ceiling:
        raise InvalidAmountError(field, value, employee_ref)
    return value
