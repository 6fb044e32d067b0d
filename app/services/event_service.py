"""
PayMaster - Event Store

Employee payroll events: direct events dated in a period and monthly
recurring templates.
"""

import uuid
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import EmployeeEvent, EventStatus, EventType, RecurrenceType
from app.services.payroll_calculators.common import to_money
from app.utils.error_handling import InvalidAmountException, InvalidDateRangeException, NotFoundException

logger = logging.getLogger(__name__)


class EventService:
    """Store for payroll-affecting employee events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_in_range_or_recurring(self, start_date: date, end_date: date) -> List[EmployeeEvent]:
        """
        Events that can produce an occurrence in [start_date, end_date]:
        one-off events dated inside the range, and monthly templates
        anchored on or before the range end that have not ended before it.
        """
        one_off = and_(
            EmployeeEvent.recurrence_type == RecurrenceType.NONE,
            EmployeeEvent.event_date >= start_date,
            EmployeeEvent.event_date <= end_date,
        )
        recurring = and_(
            EmployeeEvent.recurrence_type == RecurrenceType.MONTHLY,
            EmployeeEvent.event_date <= end_date,
            or_(
                EmployeeEvent.recurrence_end_date.is_(None),
                EmployeeEvent.recurrence_end_date >= start_date,
            ),
        )
        result = await self.db.execute(
            select(EmployeeEvent)
            .where(
                and_(
                    EmployeeEvent.affects_payroll.is_(True),
                    EmployeeEvent.status == EventStatus.ACTIVE,
                    or_(one_off, recurring),
                )
            )
            .order_by(EmployeeEvent.event_date, EmployeeEvent.id)
        )
        return list(result.scalars().all())

    async def existing_ids(self, ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
        ids = list(ids)
        if not ids:
            return set()
        result = await self.db.execute(select(EmployeeEvent.id).where(EmployeeEvent.id.in_(ids)))
        return set(result.scalars().all())

    async def create_event(
        self,
        employee_id: uuid.UUID,
        event_type: EventType,
        title: str,
        amount: Decimal,
        event_date: date,
        recurrence_type: RecurrenceType = RecurrenceType.NONE,
        recurrence_end_date: Optional[date] = None,
        affects_payroll: bool = True,
        description: Optional[str] = None,
    ) -> EmployeeEvent:
        if amount is None or Decimal(str(amount)) < 0:
            raise InvalidAmountException(amount)
        if recurrence_end_date is not None and recurrence_end_date < event_date:
            raise InvalidDateRangeException(event_date, recurrence_end_date)

        event = EmployeeEvent(
            employee_id=employee_id,
            event_type=event_type,
            title=title,
            description=description,
            amount=to_money(amount),
            event_date=event_date,
            affects_payroll=affects_payroll,
            status=EventStatus.ACTIVE,
            recurrence_type=recurrence_type,
            recurrence_end_date=recurrence_end_date if recurrence_type == RecurrenceType.MONTHLY else None,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def end_recurrence(self, event_id: uuid.UUID, end_date: date) -> EmployeeEvent:
        """Stop a monthly template from producing occurrences after ``end_date``."""
        result = await self.db.execute(select(EmployeeEvent).where(EmployeeEvent.id == event_id))
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundException("EmployeeEvent", event_id)
        if event.recurrence_type != RecurrenceType.MONTHLY:
            raise InvalidDateRangeException(
                event.event_date, end_date,
                message="Only monthly recurring events can be ended",
            )
        if end_date < event.event_date:
            raise InvalidDateRangeException(event.event_date, end_date)

        event.recurrence_end_date = end_date
        await self.db.commit()
        await self.db.refresh(event)

        logger.info(f"Recurring event {event_id} ends on {end_date}")
        return event
