"""
PayMaster - Leave Models

Vacation requests with an append-only audit trail.
"""

import uuid
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Integer, JSON, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, utcnow


class VacationStatus(str, Enum):
    """Vacation request status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LeaveType(str, Enum):
    """Leave categories."""
    ANNUAL = "annual"
    SICK = "sick"
    EMERGENCY = "emergency"
    UNPAID = "unpaid"
    OTHER = "other"


class VacationRequest(BaseModel):
    """
    Employee vacation request.

    A request created to correct an already generated payroll entry keeps
    a link to that entry in linked_payroll_entry_id.
    """

    __tablename__ = "vacation_requests"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days: Mapped[int] = mapped_column(Integer, nullable=False)

    leave_type: Mapped[LeaveType] = mapped_column(
        SQLEnum(LeaveType),
        default=LeaveType.ANNUAL,
        nullable=False,
    )
    deduct_from_salary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[VacationStatus] = mapped_column(
        SQLEnum(VacationStatus),
        default=VacationStatus.PENDING,
        nullable=False,
        index=True,
    )

    reason: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True,
        comment="Free text; may carry the loan pause marker",
    )

    linked_payroll_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_entries.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    audit_log: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    def record_event(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """Append an audit record. The list is replaced so the JSON column is flagged dirty."""
        entry = {
            "event": event,
            "status": self.status.value if self.status else None,
            "at": utcnow().isoformat(),
        }
        if payload:
            entry["payload"] = payload
        self.audit_log = [*(self.audit_log or []), entry]
