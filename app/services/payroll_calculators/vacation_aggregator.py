"""
PayMaster - Vacation Aggregator

Counts approved vacation days inside a pay period, per employee.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from app.models.leave import LeaveType, VacationRequest, VacationStatus
from app.services.payroll_calculators.common import PayPeriod
from app.services.payroll_calculators.overrides import PayrollOverrides, NO_OVERRIDES


@dataclass(frozen=True)
class VacationConsideration:
    """A vacation request as counted for one period."""
    vacation_id: uuid.UUID
    employee_id: uuid.UUID
    start_date: date
    end_date: date
    leave_type: LeaveType
    deduct_from_salary: bool
    days_in_period: int
    linked_payroll_entry_id: Optional[uuid.UUID] = None


@dataclass
class EmployeeVacationSummary:
    vacation_days: int = 0
    deductible_days: int = 0
    notify_vacation: bool = False
    vacations: List[VacationConsideration] = field(default_factory=list)


def aggregate_vacations(
    vacations: Iterable[VacationRequest],
    period: PayPeriod,
    overrides: PayrollOverrides = NO_OVERRIDES,
) -> Dict[uuid.UUID, EmployeeVacationSummary]:
    """
    Sum in-period vacation days per employee.

    Any included request flags its employee for a vacation notification,
    whether or not the request deducts from salary.
    """
    summaries: Dict[uuid.UUID, EmployeeVacationSummary] = {}

    for vacation in overrides.filter_vacations(vacations):
        if vacation.status != VacationStatus.APPROVED:
            continue
        days = period.overlap_days(vacation.start_date, vacation.end_date)
        if days <= 0:
            continue

        summary = summaries.setdefault(vacation.employee_id, EmployeeVacationSummary())
        summary.vacation_days += days
        if vacation.deduct_from_salary:
            summary.deductible_days += days
        summary.notify_vacation = True
        summary.vacations.append(VacationConsideration(
            vacation_id=vacation.id,
            employee_id=vacation.employee_id,
            start_date=vacation.start_date,
            end_date=vacation.end_date,
            leave_type=vacation.leave_type,
            deduct_from_salary=bool(vacation.deduct_from_salary),
            days_in_period=days,
            linked_payroll_entry_id=vacation.linked_payroll_entry_id,
        ))

    return summaries
