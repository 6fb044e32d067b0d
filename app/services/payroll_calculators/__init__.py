"""
PayMaster - Payroll Calculators Package

Pure computation over already-loaded records. Nothing here touches the
database, so generation and preview share every calculation.

Modules:
- recurrence: recurring event expansion into period occurrences
- overrides: skip-lists applied before aggregation
- loan_allocator: ordered installment allocation across loans
- vacation_aggregator: approved vacation days per employee
- event_aggregator: bonus/allowance/deduction/penalty netting
- computer: gross/net arithmetic and run totals
- loans: amortization schedule, lending policy, pause detection
"""

from app.services.payroll_calculators.common import PayPeriod, ZERO, to_money
from app.services.payroll_calculators.recurrence import EventOccurrence, expand_occurrence
from app.services.payroll_calculators.overrides import PayrollOverrides, NO_OVERRIDES
from app.services.payroll_calculators.loan_allocator import (
    LoanAllocation,
    LoanAllocationResult,
    allocate_loan_installments,
    loan_amortization_order,
)
from app.services.payroll_calculators.vacation_aggregator import (
    EmployeeVacationSummary,
    VacationConsideration,
    aggregate_vacations,
)
from app.services.payroll_calculators.event_aggregator import (
    EmployeeEventSummary,
    EventConsideration,
    EventEffect,
    aggregate_events,
)
from app.services.payroll_calculators.computer import (
    EmployeePayrollResult,
    FlatStatutoryDeductionPolicy,
    PayrollComputer,
    RunTotals,
    StatutoryDeductions,
    VacationPayPolicy,
    calculate_run_totals,
)
from app.services.payroll_calculators.loans import (
    LoanPolicyResult,
    LoanScheduleError,
    ScheduledInstallment,
    generate_amortization_schedule,
    should_pause_loan_for_leave,
    validate_loan_policies,
)


__all__ = [
    "PayPeriod",
    "ZERO",
    "to_money",
    "EventOccurrence",
    "expand_occurrence",
    "PayrollOverrides",
    "NO_OVERRIDES",
    "LoanAllocation",
    "LoanAllocationResult",
    "allocate_loan_installments",
    "loan_amortization_order",
    "EmployeeVacationSummary",
    "VacationConsideration",
    "aggregate_vacations",
    "EmployeeEventSummary",
    "EventConsideration",
    "EventEffect",
    "aggregate_events",
    "EmployeePayrollResult",
    "FlatStatutoryDeductionPolicy",
    "PayrollComputer",
    "RunTotals",
    "StatutoryDeductions",
    "VacationPayPolicy",
    "calculate_run_totals",
    "LoanPolicyResult",
    "LoanScheduleError",
    "ScheduledInstallment",
    "generate_amortization_schedule",
    "should_pause_loan_for_leave",
    "validate_loan_policies",
]
