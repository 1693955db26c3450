"""Explicit tenant scoping for every payroll query."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement


@dataclass(frozen=True)
class TenantContext:
    """The firm or solo practitioner a request acts for.

    Exactly one of firm_id / lawyer_id is set.
    """

    firm_id: UUID | None = None
    lawyer_id: UUID | None = None

    def __post_init__(self) -> None:
        if (self.firm_id is None) == (self.lawyer_id is None):
            raise ValueError("TenantContext requires exactly one of firm_id or lawyer_id")

    @classmethod
    def for_firm(cls, firm_id: UUID) -> TenantContext:
        return cls(firm_id=firm_id)

    @classmethod
    def for_lawyer(cls, lawyer_id: UUID) -> TenantContext:
        return cls(lawyer_id=lawyer_id)

    @property
    def tenant_id(self) -> UUID:
        return self.firm_id if self.firm_id is not None else self.lawyer_id  # type: ignore[return-value]

    def owner_columns(self) -> dict[str, UUID | None]:
        """Column values stamped on rows created for this tenant."""
        return {"firm_id": self.firm_id, "lawyer_id": self.lawyer_id}

    def filter_for(self, model: Any) -> ColumnElement[bool]:
        """WHERE clause restricting a tenant-owned model to this tenant."""
        if self.firm_id is not None:
            return model.firm_id == self.firm_id
        return model.lawyer_id == self.lawyer_id

    def owns(self, entity: Any) -> bool:
        """Check whether a loaded tenant-owned row belongs to this tenant."""
        if self.firm_id is not None:
            return entity.firm_id == self.firm_id
        return entity.firm_id is None and entity.lawyer_id == self.lawyer_id
