"""
PayMaster - Loan Allocator Tests

Unit tests for ordered installment allocation across loans.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.models.loan import Loan, LoanStatus
from app.services.payroll_calculators import (
    PayPeriod,
    PayrollOverrides,
    allocate_loan_installments,
    loan_amortization_order,
)
from app.utils.error_handling import PayrollAggregationException


JANUARY = PayPeriod(date(2024, 1, 1), date(2024, 1, 31))
EMPLOYEE_ID = uuid.uuid4()


def _loan(
    amount: str,
    monthly: str,
    remaining: str = None,
    created_at: datetime = datetime(2023, 6, 1, 9, 0),
    start_date: date = date(2023, 6, 1),
    end_date: date = None,
    status: LoanStatus = LoanStatus.ACTIVE,
    employee_id: uuid.UUID = EMPLOYEE_ID,
    loan_id: uuid.UUID = None,
) -> Loan:
    return Loan(
        id=loan_id or uuid.uuid4(),
        employee_id=employee_id,
        amount=Decimal(amount),
        monthly_deduction=Decimal(monthly),
        remaining_amount=Decimal(remaining if remaining is not None else amount),
        interest_rate=Decimal("0"),
        start_date=start_date,
        end_date=end_date,
        status=status,
        created_at=created_at,
    )


class TestInstallmentAmounts:
    """installment = min(monthly_deduction, remaining_amount)."""

    def test_two_loans_one_completes(self):
        """A small balance finishes this period while the larger loan keeps paying."""
        nearly_done = _loan("300", "100", remaining="90", created_at=datetime(2023, 1, 1))
        fresh = _loan("200", "75", created_at=datetime(2023, 2, 1))

        result = allocate_loan_installments([fresh, nearly_done], JANUARY)

        assert result.total == Decimal("165.00")
        assert result.total_for(EMPLOYEE_ID) == Decimal("165.00")

        first, second = result.allocations
        assert first.loan_id == nearly_done.id
        assert first.installment == Decimal("90.00")
        assert first.remaining_after == Decimal("0.00")
        assert first.resulting_status == LoanStatus.COMPLETED

        assert second.loan_id == fresh.id
        assert second.installment == Decimal("75.00")
        assert second.remaining_after == Decimal("125.00")
        assert second.resulting_status == LoanStatus.ACTIVE

    def test_older_loan_deducts_first_newer_loan_completes(self):
        """Older 200/75 loan pays 75, newer loan with 90 left pays 90 and completes."""
        older = _loan("200", "75", created_at=datetime(2023, 1, 1))
        newer = _loan("300", "100", remaining="90", created_at=datetime(2023, 2, 1))

        result = allocate_loan_installments([newer, older], JANUARY)

        assert result.total_for(EMPLOYEE_ID) == Decimal("165.00")
        assert [(a.loan_id, a.installment, a.remaining_after, a.resulting_status)
                for a in result.allocations] == [
            (older.id, Decimal("75.00"), Decimal("125.00"), LoanStatus.ACTIVE),
            (newer.id, Decimal("90.00"), Decimal("0.00"), LoanStatus.COMPLETED),
        ]

    def test_installments_never_exceed_remaining(self):
        loans = [
            _loan("500", "120", remaining="35"),
            _loan("500", "120", remaining="500"),
            _loan("40", "120"),
        ]

        result = allocate_loan_installments(loans, JANUARY)

        for allocation, loan in zip(
            result.allocations, sorted(loans, key=loan_amortization_order)
        ):
            assert allocation.installment <= loan.remaining_amount
            assert allocation.remaining_after >= Decimal("0")
        assert result.total == Decimal("195.00")

    def test_zero_balance_loan_produces_no_installment(self):
        settled = _loan("100", "50", remaining="0")

        result = allocate_loan_installments([settled], JANUARY)

        assert len(result.allocations) == 1
        assert result.allocations[0].installment == Decimal("0.00")
        assert result.allocations[0].has_installment is False
        assert result.paying == []


class TestAmortizationOrder:
    """Loans are paid oldest first with the loan id as tie-break."""

    def test_order_independent_of_input_order(self):
        loans = [
            _loan("100", "10", created_at=datetime(2023, 3, 1)),
            _loan("100", "10", created_at=datetime(2023, 1, 1)),
            _loan("100", "10", created_at=datetime(2023, 2, 1)),
        ]
        expected = [loans[1].id, loans[2].id, loans[0].id]

        forward = allocate_loan_installments(loans, JANUARY)
        backward = allocate_loan_installments(list(reversed(loans)), JANUARY)

        assert [a.loan_id for a in forward.allocations] == expected
        assert [a.loan_id for a in backward.allocations] == expected

    def test_same_creation_time_breaks_tie_on_id(self):
        low = uuid.UUID("00000000-0000-0000-0000-000000000001")
        high = uuid.UUID("ffffffff-0000-0000-0000-000000000001")
        same_time = datetime(2023, 1, 1)
        loans = [_loan("100", "10", created_at=same_time, loan_id=high),
                 _loan("100", "10", created_at=same_time, loan_id=low)]

        result = allocate_loan_installments(loans, JANUARY)

        assert [a.loan_id for a in result.allocations] == [low, high]

    def test_aware_and_naive_timestamps_compare(self):
        aware = _loan("100", "10", created_at=datetime(2023, 1, 1, 12, tzinfo=timezone.utc))
        naive = _loan("100", "10", created_at=datetime(2023, 1, 1, 11))

        result = allocate_loan_installments([aware, naive], JANUARY)

        assert [a.loan_id for a in result.allocations] == [naive.id, aware.id]


class TestCandidateSelection:

    def test_inactive_loans_are_ignored(self):
        loans = [
            _loan("100", "10", status=LoanStatus.PAUSED),
            _loan("100", "10", status=LoanStatus.COMPLETED),
            _loan("100", "10", status=LoanStatus.PENDING),
        ]

        assert allocate_loan_installments(loans, JANUARY).allocations == []

    def test_loan_outside_period_is_ignored(self):
        future = _loan("100", "10", start_date=date(2024, 2, 1))
        ended = _loan("100", "10", start_date=date(2023, 1, 1), end_date=date(2023, 12, 31))

        assert allocate_loan_installments([future, ended], JANUARY).allocations == []

    def test_skipped_loan_takes_no_place_in_order(self):
        skipped = _loan("100", "10", created_at=datetime(2023, 1, 1))
        kept = _loan("100", "10", created_at=datetime(2023, 2, 1))
        overrides = PayrollOverrides.from_lists(skipped_loan_ids=[skipped.id])

        result = allocate_loan_installments([skipped, kept], JANUARY, overrides)

        assert [a.loan_id for a in result.allocations] == [kept.id]
        assert result.total == Decimal("10.00")


class TestInconsistentLoans:

    def test_remaining_above_amount_raises(self):
        broken = _loan("100", "10", remaining="150")

        with pytest.raises(PayrollAggregationException) as exc_info:
            allocate_loan_installments([broken], JANUARY)

        assert exc_info.value.details["record_type"] == "loan"

    def test_negative_remaining_raises(self):
        with pytest.raises(PayrollAggregationException):
            allocate_loan_installments([_loan("100", "10", remaining="-5")], JANUARY)

    def test_negative_monthly_deduction_raises(self):
        with pytest.raises(PayrollAggregationException):
            allocate_loan_installments([_loan("100", "-10")], JANUARY)
