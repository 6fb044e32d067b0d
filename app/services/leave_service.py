"""
PayMaster - Vacation Store

Queries and creates vacation requests for payroll.
Creation only flushes; the calling operation owns the commit.
"""

import uuid
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.leave import LeaveType, VacationRequest, VacationStatus

logger = logging.getLogger(__name__)


class VacationStore:
    """Vacation request persistence used by the payroll engine."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_approved(self, start_date: date, end_date: date) -> List[VacationRequest]:
        """Approved requests whose range overlaps [start_date, end_date]."""
        result = await self.db.execute(
            select(VacationRequest)
            .where(
                and_(
                    VacationRequest.status == VacationStatus.APPROVED,
                    VacationRequest.start_date <= end_date,
                    VacationRequest.end_date >= start_date,
                )
            )
            .order_by(VacationRequest.start_date, VacationRequest.id)
        )
        return list(result.scalars().all())

    async def find_for_recalculation(
        self,
        start_date: date,
        end_date: date,
        entry_ids: Iterable[uuid.UUID],
    ) -> List[VacationRequest]:
        """Approved requests overlapping the run or linked to one of its entries."""
        entry_ids = list(entry_ids)
        overlap = and_(
            VacationRequest.start_date <= end_date,
            VacationRequest.end_date >= start_date,
        )
        condition = or_(overlap, VacationRequest.linked_payroll_entry_id.in_(entry_ids)) if entry_ids else overlap
        result = await self.db.execute(
            select(VacationRequest)
            .where(and_(VacationRequest.status == VacationStatus.APPROVED, condition))
            .order_by(VacationRequest.start_date, VacationRequest.id)
        )
        return list(result.scalars().all())

    async def existing_ids(self, ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
        ids = list(ids)
        if not ids:
            return set()
        result = await self.db.execute(select(VacationRequest.id).where(VacationRequest.id.in_(ids)))
        return set(result.scalars().all())

    async def create(
        self,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        days: Optional[int] = None,
        leave_type: LeaveType = LeaveType.ANNUAL,
        deduct_from_salary: bool = False,
        reason: Optional[str] = None,
        status: VacationStatus = VacationStatus.PENDING,
        linked_entry_id: Optional[uuid.UUID] = None,
        audit_payload: Optional[Dict[str, Any]] = None,
    ) -> VacationRequest:
        """Add a vacation request and record its creation in the audit log."""
        if days is None:
            days = (end_date - start_date).days + 1

        vacation = VacationRequest(
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            days=days,
            leave_type=leave_type,
            deduct_from_salary=deduct_from_salary,
            reason=reason,
            status=status,
            linked_payroll_entry_id=linked_entry_id,
            audit_log=[],
        )
        payload = dict(audit_payload or {})
        if linked_entry_id is not None:
            payload.setdefault("payroll_entry_id", str(linked_entry_id))
        vacation.record_event("created", payload or None)

        self.db.add(vacation)
        await self.db.flush()

        logger.info(f"Vacation request created for employee {employee_id}: {start_date} to {end_date} ({status.value})")
        return vacation
