"""
PayMaster - Event Aggregator

Nets bonus, allowance, deduction and penalty occurrences per employee.

- bonus, allowance   -> additions (increase gross pay)
- deduction, penalty -> other deductions (decrease net pay)
- other              -> reported, no arithmetic effect
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterable, List

from app.models.event import EmployeeEvent, EventType
from app.services.payroll_calculators.common import PayPeriod, ZERO, to_money
from app.services.payroll_calculators.overrides import PayrollOverrides, NO_OVERRIDES
from app.services.payroll_calculators.recurrence import EventOccurrence, expand_occurrence
from app.utils.error_handling import PayrollAggregationException


class EventEffect(str, Enum):
    """How an occurrence moves the entry's figures."""
    ADDITION = "addition"
    DEDUCTION = "deduction"
    NONE = "none"


EFFECT_BY_TYPE = {
    EventType.BONUS: EventEffect.ADDITION,
    EventType.ALLOWANCE: EventEffect.ADDITION,
    EventType.DEDUCTION: EventEffect.DEDUCTION,
    EventType.PENALTY: EventEffect.DEDUCTION,
    EventType.OTHER: EventEffect.NONE,
}


@dataclass(frozen=True)
class EventConsideration:
    event_id: uuid.UUID
    employee_id: uuid.UUID
    event_type: EventType
    title: str
    amount: Decimal
    effect: EventEffect
    occurrence_date: date
    source: str


@dataclass
class EmployeeEventSummary:
    additions: Decimal = ZERO
    other_deductions: Decimal = ZERO
    events: List[EventConsideration] = field(default_factory=list)

    @property
    def allowances(self) -> List[EventConsideration]:
        return [e for e in self.events if e.event_type == EventType.ALLOWANCE]


def _validated_amount(occurrence: EventOccurrence) -> Decimal:
    try:
        amount = occurrence.amount if isinstance(occurrence.amount, Decimal) else Decimal(str(occurrence.amount))
    except (InvalidOperation, TypeError, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        raise PayrollAggregationException(
            f"Event amount is not a number: {occurrence.amount!r}",
            record_type="employee_event",
            record_id=occurrence.event_id,
        )
    if amount < ZERO:
        raise PayrollAggregationException(
            f"Event amount must not be negative: {amount}",
            record_type="employee_event",
            record_id=occurrence.event_id,
        )
    return to_money(amount)


def aggregate_events(
    events: Iterable[EmployeeEvent],
    period: PayPeriod,
    overrides: PayrollOverrides = NO_OVERRIDES,
) -> Dict[uuid.UUID, EmployeeEventSummary]:
    """Group event occurrences for ``period`` by employee."""
    summaries: Dict[uuid.UUID, EmployeeEventSummary] = {}

    for event in overrides.filter_events(events):
        occurrence = expand_occurrence(event, period)
        if occurrence is None:
            continue
        if occurrence.event_type not in EFFECT_BY_TYPE:
            raise PayrollAggregationException(
                f"Unknown event type: {occurrence.event_type!r}",
                record_type="employee_event",
                record_id=occurrence.event_id,
            )

        amount = _validated_amount(occurrence)
        effect = EFFECT_BY_TYPE[occurrence.event_type]
        summary = summaries.setdefault(occurrence.employee_id, EmployeeEventSummary())
        if effect == EventEffect.ADDITION:
            summary.additions += amount
        elif effect == EventEffect.DEDUCTION:
            summary.other_deductions += amount

        summary.events.append(EventConsideration(
            event_id=occurrence.event_id,
            employee_id=occurrence.employee_id,
            event_type=occurrence.event_type,
            title=occurrence.title,
            amount=amount,
            effect=effect,
            occurrence_date=occurrence.occurrence_date,
            source=occurrence.source,
        ))

    return summaries
