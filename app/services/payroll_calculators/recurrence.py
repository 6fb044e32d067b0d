"""
PayMaster - Recurrence Expander

Turns an employee event into at most one occurrence for a pay period.

Rules:
- none:    contributes when the anchor date lies inside the period
- monthly: contributes when anchor <= period end and the recurrence has
           not ended before the period starts

Occurrences are derived on every call and never stored, so editing or
ending a template takes effect for every later period.
"""

import calendar
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from app.models.event import EmployeeEvent, EventStatus, EventType, RecurrenceType
from app.services.payroll_calculators.common import PayPeriod


SOURCE_PERIOD = "period"
SOURCE_RECURRING = "recurring"


@dataclass(frozen=True)
class EventOccurrence:
    """One period's realized contribution from an event."""
    event_id: uuid.UUID
    employee_id: uuid.UUID
    event_type: EventType
    title: str
    amount: Decimal
    occurrence_date: date
    source: str


def _clamp_day(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def occurrence_date_in_period(anchor: date, period: PayPeriod) -> date:
    """
    Anchor's day-of-month placed inside the period.

    Used for display only; the financial effect is period-scoped.
    """
    if period.contains(anchor):
        return anchor
    candidate = _clamp_day(period.start.year, period.start.month, anchor.day)
    if candidate < period.start:
        year = period.start.year + (1 if period.start.month == 12 else 0)
        month = 1 if period.start.month == 12 else period.start.month + 1
        candidate = _clamp_day(year, month, anchor.day)
    return min(max(candidate, period.start), period.end)


def event_applies_to_period(event: EmployeeEvent, period: PayPeriod) -> bool:
    """Recurrence window test without the payroll flags."""
    if event.recurrence_type == RecurrenceType.MONTHLY:
        return event.event_date <= period.end and (
            event.recurrence_end_date is None or event.recurrence_end_date >= period.start
        )
    return period.contains(event.event_date)


def expand_occurrence(event: EmployeeEvent, period: PayPeriod) -> Optional[EventOccurrence]:
    """Return the event's occurrence for ``period`` or None."""
    if not event.affects_payroll or event.status != EventStatus.ACTIVE:
        return None
    if not event_applies_to_period(event, period):
        return None

    source = SOURCE_PERIOD if period.contains(event.event_date) else SOURCE_RECURRING
    return EventOccurrence(
        event_id=event.id,
        employee_id=event.employee_id,
        event_type=event.event_type,
        title=event.title,
        amount=event.amount,
        occurrence_date=occurrence_date_in_period(event.event_date, period),
        source=source,
    )
