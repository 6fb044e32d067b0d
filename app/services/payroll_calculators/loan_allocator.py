"""
PayMaster - Loan Amortization Allocator

Computes this period's installment for every candidate loan.

Candidates are active loans whose [start_date, end_date or open] range
overlaps the period, minus skipped loans. They are paid in
loan_amortization_order: oldest loan first, loan id as tie-break.

    installment     = min(monthly_deduction, remaining_amount)
    remaining_after = remaining_amount - installment
    status          = completed when remaining_after == 0

The allocator is pure. It returns allocations; the persister applies them.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from app.models.loan import Loan, LoanStatus
from app.services.payroll_calculators.common import PayPeriod, ZERO, to_money
from app.services.payroll_calculators.overrides import PayrollOverrides, NO_OVERRIDES
from app.utils.error_handling import PayrollAggregationException


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def loan_amortization_order(loan: Loan) -> Tuple[datetime, str]:
    """
    Sort key for paying down loans within a run.

    Creation time ascending, then loan id, so the order never depends on
    the order rows come back from the database.
    """
    return (_naive_utc(loan.created_at), str(loan.id))


@dataclass(frozen=True)
class LoanAllocation:
    """A loan's installment for one run."""
    loan_id: uuid.UUID
    employee_id: uuid.UUID
    monthly_deduction: Decimal
    remaining_before: Decimal
    installment: Decimal
    remaining_after: Decimal

    @property
    def has_installment(self) -> bool:
        return self.installment > ZERO

    @property
    def completes_loan(self) -> bool:
        return self.has_installment and self.remaining_after == ZERO

    @property
    def resulting_status(self) -> LoanStatus:
        return LoanStatus.COMPLETED if self.completes_loan else LoanStatus.ACTIVE


@dataclass
class LoanAllocationResult:
    """Allocations in payment order, plus per-employee totals."""
    allocations: List[LoanAllocation] = field(default_factory=list)

    @property
    def by_employee(self) -> Dict[uuid.UUID, List[LoanAllocation]]:
        grouped: Dict[uuid.UUID, List[LoanAllocation]] = OrderedDict()
        for allocation in self.allocations:
            grouped.setdefault(allocation.employee_id, []).append(allocation)
        return grouped

    def total_for(self, employee_id: uuid.UUID) -> Decimal:
        return sum(
            (a.installment for a in self.allocations if a.employee_id == employee_id),
            ZERO,
        )

    @property
    def total(self) -> Decimal:
        return sum((a.installment for a in self.allocations), ZERO)

    @property
    def paying(self) -> List[LoanAllocation]:
        return [a for a in self.allocations if a.has_installment]


def check_loan_consistency(loan: Loan) -> None:
    """Raise if the stored balance cannot be amortized safely."""
    if loan.remaining_amount is None or loan.monthly_deduction is None or loan.amount is None:
        raise PayrollAggregationException(
            "Loan is missing amount, monthly deduction or remaining balance",
            record_type="loan",
            record_id=loan.id,
        )
    if loan.remaining_amount < ZERO:
        raise PayrollAggregationException(
            f"Loan has a negative remaining balance ({loan.remaining_amount})",
            record_type="loan",
            record_id=loan.id,
        )
    if loan.monthly_deduction < ZERO:
        raise PayrollAggregationException(
            f"Loan has a negative monthly deduction ({loan.monthly_deduction})",
            record_type="loan",
            record_id=loan.id,
        )
    if loan.remaining_amount > loan.amount:
        raise PayrollAggregationException(
            f"Loan remaining balance {loan.remaining_amount} exceeds original amount {loan.amount}",
            record_type="loan",
            record_id=loan.id,
        )


def is_loan_candidate(loan: Loan, period: PayPeriod) -> bool:
    return loan.status == LoanStatus.ACTIVE and period.overlaps(loan.start_date, loan.end_date)


def allocate_loan_installments(
    loans: Iterable[Loan],
    period: PayPeriod,
    overrides: PayrollOverrides = NO_OVERRIDES,
) -> LoanAllocationResult:
    """
    Allocate installments across ``loans`` for ``period``.

    Skipped loans are removed before sorting so they take no place in
    the payment order.
    """
    candidates = [
        loan for loan in overrides.filter_loans(loans)
        if is_loan_candidate(loan, period)
    ]

    result = LoanAllocationResult()
    for loan in sorted(candidates, key=loan_amortization_order):
        check_loan_consistency(loan)
        remaining = to_money(loan.remaining_amount)
        installment = min(to_money(loan.monthly_deduction), remaining)
        result.allocations.append(LoanAllocation(
            loan_id=loan.id,
            employee_id=loan.employee_id,
            monthly_deduction=to_money(loan.monthly_deduction),
            remaining_before=remaining,
            installment=installment,
            remaining_after=remaining - installment,
        ))
    return result
