"""
PayMaster - Employee Directory

Read-only view of employees eligible for payroll.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payroll import Employee, EmployeeStatus


class EmployeeDirectory:
    """Employee lookups used by payroll generation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self, include_on_leave: bool = False) -> List[Employee]:
        """Employees that participate in a run, in employee code order."""
        statuses = [EmployeeStatus.ACTIVE]
        if include_on_leave:
            statuses.append(EmployeeStatus.ON_LEAVE)

        result = await self.db.execute(
            select(Employee)
            .where(Employee.status.in_(statuses))
            .order_by(Employee.employee_code)
        )
        return list(result.scalars().all())

    async def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        result = await self.db.execute(select(Employee).where(Employee.id == employee_id))
        return result.scalar_one_or_none()
