"""
PayMaster - Payroll Plan

The computed result of a generation or preview before anything is
written. Generation hands it to the persister and the notification
emitter; preview returns it as-is.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.models.loan import Loan
from app.models.payroll import Employee, PayrollRun
from app.services.payroll_calculators import (
    EmployeeEventSummary,
    EmployeePayrollResult,
    EmployeeVacationSummary,
    LoanAllocation,
    LoanAllocationResult,
    PayPeriod,
    PayrollOverrides,
    RunTotals,
    ZERO,
)


@dataclass
class EmployeePlan:
    """One employee's inputs and computed entry."""
    employee: Employee
    result: EmployeePayrollResult
    vacation: EmployeeVacationSummary
    events: EmployeeEventSummary
    loans: List[LoanAllocation] = field(default_factory=list)

    @property
    def employee_id(self) -> uuid.UUID:
        return self.result.employee_id

    @property
    def notify_vacation(self) -> bool:
        return self.vacation.notify_vacation

    @property
    def notify_loan(self) -> bool:
        return self.result.loan_deduction > ZERO


@dataclass
class PayrollPlan:
    period_label: str
    period: PayPeriod
    overrides: PayrollOverrides
    employees: List[EmployeePlan]
    allocations: LoanAllocationResult
    loans_by_id: Dict[uuid.UUID, Loan]
    totals: RunTotals
    conflict: Optional[PayrollRun] = None

    @property
    def results(self) -> List[EmployeePayrollResult]:
        return [e.result for e in self.employees]
