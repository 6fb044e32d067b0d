"""
PayMaster - Loan Schedule Tools

Forecasting helpers that sit beside payroll amortization:
- Amortization schedule with interest, balloon payoff and paused months
- Lending policy validation against salary
- Pause detection from tagged vacation reasons

Payroll generation does not consult the pause marker; it affects the
forecast schedule only.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from app.models.leave import VacationRequest, VacationStatus
from app.services.payroll_calculators.common import ZERO, to_money


MAX_INSTALLMENTS = 600  # 50 years of monthly payments
DEFAULT_PAUSE_MARKER = "[pause-loans]"
WARNING_SALARY_RATIO = Decimal("0.35")
VIOLATION_SALARY_RATIO = Decimal("0.50")


class LoanScheduleError(ValueError):
    """Raised when a payment cannot amortize the principal."""


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the target month's last day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(start.day, calendar.monthrange(year, month)[1]))


def next_due_date(start_date: date, last_paid: Optional[date]) -> date:
    """First due date, on the loan's day of month, after the month of ``last_paid``."""
    if last_paid is None or last_paid < start_date:
        return start_date
    months = (last_paid.year - start_date.year) * 12 + (last_paid.month - start_date.month) + 1
    return add_months(start_date, months)


def monthly_rate(annual_rate: Optional[Decimal]) -> Decimal:
    annual_rate = Decimal(str(annual_rate or 0))
    if annual_rate <= 0:
        return Decimal("0")
    return annual_rate / Decimal("12") / Decimal("100")


@dataclass(frozen=True)
class ScheduledInstallment:
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    payment_amount: Decimal
    remaining_balance: Decimal


def generate_amortization_schedule(
    amount: Decimal,
    interest_rate: Optional[Decimal],
    monthly_payment: Decimal,
    start_date: date,
    end_date: Optional[date] = None,
    pause_months: Iterable[Tuple[int, int]] = (),
) -> List[ScheduledInstallment]:
    """
    Build a monthly repayment schedule.

    Args:
        amount: Outstanding principal
        interest_rate: Annual interest rate percentage
        monthly_payment: Payment per installment
        start_date: First due date
        end_date: Hard end; the first due date past it settles the balance
        pause_months: (year, month) pairs that carry no installment

    Returns:
        Installments in due-date order; empty when amount or payment is not positive
    """
    principal = Decimal(str(amount or 0))
    payment = Decimal(str(monthly_payment or 0))
    if principal <= 0 or payment <= 0:
        return []

    rate = monthly_rate(interest_rate)
    paused: Set[Tuple[int, int]] = set(pause_months)
    schedule: List[ScheduledInstallment] = []
    balance = principal
    offset = 0

    while balance > Decimal("0.01") and len(schedule) < MAX_INSTALLMENTS:
        due = add_months(start_date, offset)
        offset += 1
        if (due.year, due.month) in paused:
            continue

        interest = balance * rate
        if end_date is not None and due > end_date:
            schedule.append(ScheduledInstallment(
                installment_number=len(schedule) + 1,
                due_date=due,
                principal_amount=to_money(balance),
                interest_amount=to_money(interest),
                payment_amount=to_money(balance + interest),
                remaining_balance=ZERO,
            ))
            balance = Decimal("0")
            break

        principal_part = payment - interest
        if principal_part <= 0:
            raise LoanScheduleError(
                "Monthly payment is insufficient to cover interest; adjust policy or payment amount."
            )
        principal_part = min(principal_part, balance)
        balance = max(Decimal("0"), balance - principal_part)

        schedule.append(ScheduledInstallment(
            installment_number=len(schedule) + 1,
            due_date=due,
            principal_amount=to_money(principal_part),
            interest_amount=to_money(interest),
            payment_amount=to_money(principal_part + interest),
            remaining_balance=to_money(balance),
        ))

    return schedule


@dataclass
class LoanPolicyResult:
    violations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_compliant(self) -> bool:
        return not self.violations


def validate_loan_policies(
    amount: Decimal,
    monthly_deduction: Decimal,
    start_date: date,
    end_date: Optional[date] = None,
    interest_rate: Optional[Decimal] = None,
    employee_salary: Optional[Decimal] = None,
    warning_ratio: Decimal = WARNING_SALARY_RATIO,
    violation_ratio: Decimal = VIOLATION_SALARY_RATIO,
) -> LoanPolicyResult:
    """Check loan terms against lending policy."""
    result = LoanPolicyResult()
    amount = Decimal(str(amount or 0))
    payment = Decimal(str(monthly_deduction or 0))

    if amount <= 0:
        result.violations.append("Loan amount must be greater than zero.")
    if payment <= 0:
        result.violations.append("Monthly deduction must be greater than zero.")
    if end_date is not None and start_date > end_date:
        result.violations.append("Start date must be before the end date.")

    rate = monthly_rate(interest_rate)
    if rate > 0 and payment <= amount * rate:
        result.violations.append("Monthly deduction must exceed the interest portion to reduce principal.")

    if employee_salary is not None and Decimal(str(employee_salary)) > 0:
        ratio = payment / Decimal(str(employee_salary))
        if ratio > violation_ratio:
            result.violations.append(
                f"Monthly deduction exceeds {violation_ratio * 100:.0f}% of employee salary."
            )
        elif ratio > warning_ratio:
            result.warnings.append(
                f"Monthly deduction exceeds {warning_ratio * 100:.0f}% of employee salary."
            )

    return result


def should_pause_loan_for_leave(
    vacations: Sequence[VacationRequest],
    start: date,
    end: date,
    marker: str = DEFAULT_PAUSE_MARKER,
) -> bool:
    """True if an approved, overlapping vacation carries the pause marker."""
    for vacation in vacations:
        if vacation.status != VacationStatus.APPROVED:
            continue
        overlaps = vacation.start_date <= end and vacation.end_date >= start
        if overlaps and marker in (vacation.reason or ""):
            return True
    return False


def paused_months(
    vacations: Sequence[VacationRequest],
    start_date: date,
    horizon_months: int,
    marker: str = DEFAULT_PAUSE_MARKER,
) -> List[Tuple[int, int]]:
    """(year, month) pairs within the horizon that a tagged vacation pauses."""
    months = []
    for offset in range(horizon_months):
        first = add_months(start_date.replace(day=1), offset)
        last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
        if should_pause_loan_for_leave(vacations, first, last, marker):
            months.append((first.year, first.month))
    return months
