"""
PayMaster - Employee Event Model

Bonuses, allowances, deductions and penalties that feed payroll.
A monthly recurring event is a template: each period derives at most one
occurrence from it and occurrences are never stored.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class EventType(str, Enum):
    """Payroll event categories."""
    BONUS = "bonus"
    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"
    PENALTY = "penalty"
    OTHER = "other"


class EventStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class RecurrenceType(str, Enum):
    NONE = "none"
    MONTHLY = "monthly"


class EmployeeEvent(BaseModel):
    """Employee payroll event."""

    __tablename__ = "employee_events"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event_type: Mapped[EventType] = mapped_column(SQLEnum(EventType), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True,
        comment="Anchor date; day-of-month is reused by recurring occurrences",
    )

    affects_payroll: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        SQLEnum(EventStatus),
        default=EventStatus.ACTIVE,
        nullable=False,
    )

    recurrence_type: Mapped[RecurrenceType] = mapped_column(
        SQLEnum(RecurrenceType),
        default=RecurrenceType.NONE,
        nullable=False,
    )
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
