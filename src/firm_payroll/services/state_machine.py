"""Payroll run state machine with operation and transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from firm_payroll.errors import InvalidStateError, InvalidTransitionError

if TYPE_CHECKING:
    from firm_payroll.models import PayrollRun


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    CALCULATING = "calculating"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PROCESSING_PAYMENT = "processing_payment"
    PAID = "paid"
    CANCELLED = "cancelled"


class Operation(str, Enum):
    """Operations gated by run status."""

    CALCULATE = "calculate"
    VALIDATE = "validate"
    APPROVE = "approve"
    PROCESS_PAYMENTS = "process_payments"
    CANCEL = "cancel"
    UPDATE = "update"
    UPDATE_CONFIGURATION = "update_configuration"
    DELETE = "delete"
    EXCLUDE = "exclude"
    INCLUDE = "include"
    RECALCULATE = "recalculate"
    ADJUST = "adjust"
    HOLD = "hold"
    UNHOLD = "unhold"
    GENERATE_WPS = "generate_wps"
    EXPORT = "export"


S = PayrollRunStatus

_ROSTER_EDITABLE = frozenset({S.DRAFT, S.CALCULATED})
_NOT_CANCELLED = frozenset(s for s in S if s != S.CANCELLED)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → calculating → calculated
    - calculated → calculating (recalculate the whole run)
    - calculated → approved
    - approved → processing_payment → paid
    - draft | calculated | approved → cancelled

    paid and cancelled are terminal.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        S.DRAFT: [S.CALCULATING, S.CANCELLED],
        S.CALCULATING: [S.CALCULATED],
        S.CALCULATED: [S.CALCULATING, S.APPROVED, S.CANCELLED],
        S.APPROVED: [S.PROCESSING_PAYMENT, S.CANCELLED],
        S.PROCESSING_PAYMENT: [S.PAID],
        S.PAID: [],  # Terminal state
        S.CANCELLED: [],  # Terminal state
    }

    # Statuses each operation may start from
    ALLOWED_FROM: dict[str, frozenset[str]] = {
        Operation.CALCULATE: _ROSTER_EDITABLE,
        Operation.VALIDATE: _NOT_CANCELLED,
        Operation.APPROVE: frozenset({S.CALCULATED}),
        Operation.PROCESS_PAYMENTS: frozenset({S.APPROVED}),
        Operation.CANCEL: frozenset({S.DRAFT, S.CALCULATED, S.APPROVED}),
        Operation.UPDATE: _ROSTER_EDITABLE,
        Operation.UPDATE_CONFIGURATION: frozenset({S.DRAFT}),
        Operation.DELETE: frozenset({S.DRAFT}),
        Operation.EXCLUDE: _ROSTER_EDITABLE,
        Operation.INCLUDE: _ROSTER_EDITABLE,
        Operation.RECALCULATE: _ROSTER_EDITABLE,
        Operation.ADJUST: _ROSTER_EDITABLE,
        Operation.HOLD: frozenset({S.DRAFT, S.CALCULATED, S.APPROVED}),
        Operation.UNHOLD: frozenset({S.DRAFT, S.CALCULATED, S.APPROVED}),
        Operation.GENERATE_WPS: frozenset({S.APPROVED, S.PAID}),
        Operation.EXPORT: frozenset(S),
    }

    TERMINAL = frozenset({S.PAID, S.CANCELLED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str, operation: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                from_status, operation, f"'{from_status}' cannot move to '{to_status}'"
            )

    @classmethod
    def can_perform(cls, status: str, operation: str) -> bool:
        """Check if an operation may start from this status."""
        return status in cls.ALLOWED_FROM.get(operation, frozenset())

    @classmethod
    def require_operation(cls, status: str, operation: str, reason: str | None = None) -> None:
        """Raise InvalidStateError unless the operation may start from this status."""
        if not cls.can_perform(status, operation):
            raise InvalidStateError(status, _label(operation), reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def approval_blockers(cls, payroll_run: PayrollRun) -> list[str]:
        """Guard for calculated → approved, returning any reasons (empty if clear)."""
        errors: list[str] = []
        if payroll_run.has_blocking_errors:
            errors.append(
                f"validation reported {payroll_run.critical_error_count} critical error(s)"
            )
        return errors


def _label(operation: str) -> str:
    return operation.value if isinstance(operation, Operation) else str(operation)
