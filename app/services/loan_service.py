"""
PayMaster - Loan Service

Loan store for the payroll engine plus loan administration:
- Active-loan lookup for a pay period
- Installment application with ledger rows
- Loan creation with lending policy checks
- Manual payments and ledger reconciliation
- Amortization schedule forecast with leave pauses
"""

import uuid
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.leave import VacationRequest, VacationStatus
from app.models.loan import Loan, LoanPayment, LoanPaymentSource, LoanStatus
from app.models.payroll import Employee
from app.services.payroll_calculators.common import ZERO, to_money
from app.services.payroll_calculators.loan_allocator import LoanAllocation
from app.services.payroll_calculators.loans import (
    LoanScheduleError,
    ScheduledInstallment,
    generate_amortization_schedule,
    next_due_date,
    paused_months,
    validate_loan_policies,
)
from app.utils.error_handling import (
    EmployeeNotFoundException,
    InvalidAmountException,
    LoanNotFoundException,
    LoanPolicyException,
    LoanScheduleException,
    PayrollAggregationException,
    PersistenceFailureException,
    ValidationException,
)

logger = logging.getLogger(__name__)


class LoanService:
    """Service for employee loans and the repayment ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # PAYROLL STORE OPERATIONS
    # ===========================================

    async def find_active_overlapping(self, start_date: date, end_date: date) -> List[Loan]:
        """Active loans whose [start_date, end_date or open] overlaps the period."""
        result = await self.db.execute(
            select(Loan).where(
                and_(
                    Loan.status == LoanStatus.ACTIVE,
                    Loan.start_date <= end_date,
                    or_(Loan.end_date.is_(None), Loan.end_date >= start_date),
                )
            )
        )
        return list(result.scalars().all())

    async def existing_ids(self, ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
        ids = list(ids)
        if not ids:
            return set()
        result = await self.db.execute(select(Loan.id).where(Loan.id.in_(ids)))
        return set(result.scalars().all())

    def apply_installment(
        self,
        loan: Loan,
        allocation: LoanAllocation,
        payroll_run_id: uuid.UUID,
        applied_date: date,
    ) -> Optional[LoanPayment]:
        """
        Apply a computed installment to ``loan`` and stage its ledger row.

        Zero installments leave the loan untouched and produce no row.
        """
        if not allocation.has_installment:
            return None
        if to_money(loan.remaining_amount) != allocation.remaining_before:
            raise PayrollAggregationException(
                "Loan balance changed after installments were computed",
                record_type="loan",
                record_id=loan.id,
                details={
                    "expected_remaining": str(allocation.remaining_before),
                    "actual_remaining": str(loan.remaining_amount),
                },
            )

        loan.remaining_amount = allocation.remaining_after
        loan.status = allocation.resulting_status

        payment = LoanPayment(
            loan_id=loan.id,
            employee_id=loan.employee_id,
            payroll_run_id=payroll_run_id,
            amount=allocation.installment,
            applied_date=applied_date,
            source=LoanPaymentSource.PAYROLL,
        )
        self.db.add(payment)
        return payment

    # ===========================================
    # LOAN ADMINISTRATION
    # ===========================================

    async def get_loan(self, loan_id: uuid.UUID) -> Loan:
        result = await self.db.execute(select(Loan).where(Loan.id == loan_id))
        loan = result.scalar_one_or_none()
        if loan is None:
            raise LoanNotFoundException(loan_id)
        return loan

    async def create_loan(
        self,
        employee_id: uuid.UUID,
        amount: Decimal,
        monthly_deduction: Decimal,
        start_date: date,
        end_date: Optional[date] = None,
        interest_rate: Decimal = ZERO,
        status: LoanStatus = LoanStatus.ACTIVE,
        reason: Optional[str] = None,
    ) -> Tuple[Loan, List[str]]:
        """
        Create a loan after checking lending policy.

        Returns:
            (loan, warnings)
        """
        employee = (await self.db.execute(
            select(Employee).where(Employee.id == employee_id)
        )).scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundException(employee_id)

        policy = validate_loan_policies(
            amount=amount,
            monthly_deduction=monthly_deduction,
            start_date=start_date,
            end_date=end_date,
            interest_rate=interest_rate,
            employee_salary=employee.salary,
            warning_ratio=settings.loan_salary_warning_ratio,
            violation_ratio=settings.loan_salary_violation_ratio,
        )
        if not policy.is_compliant:
            raise LoanPolicyException(policy.violations, policy.warnings)

        loan = Loan(
            employee_id=employee_id,
            amount=to_money(amount),
            monthly_deduction=to_money(monthly_deduction),
            remaining_amount=to_money(amount),
            interest_rate=to_money(interest_rate or ZERO),
            start_date=start_date,
            end_date=end_date,
            status=status,
            reason=reason,
        )
        self.db.add(loan)
        await self.db.commit()
        await self.db.refresh(loan)

        logger.info(f"Loan {loan.id} created for employee {employee_id}: {loan.amount}")
        return loan, policy.warnings

    async def record_manual_payment(
        self,
        loan_id: uuid.UUID,
        amount: Decimal,
        applied_date: date,
        notes: Optional[str] = None,
    ) -> LoanPayment:
        """Record an out-of-payroll payment against a loan."""
        loan = await self.get_loan(loan_id)
        amount = to_money(amount)

        if amount <= ZERO:
            raise InvalidAmountException(amount)
        if loan.status not in (LoanStatus.ACTIVE, LoanStatus.PAUSED):
            raise ValidationException(
                f"Cannot record a payment on a {loan.status.value} loan",
                field="loan_id",
            )
        if amount > loan.remaining_amount:
            raise InvalidAmountException(
                amount,
                message=f"Payment {amount} exceeds remaining balance {loan.remaining_amount}",
            )

        loan.remaining_amount = to_money(loan.remaining_amount) - amount
        if loan.remaining_amount == ZERO:
            loan.status = LoanStatus.COMPLETED

        payment = LoanPayment(
            loan_id=loan.id,
            employee_id=loan.employee_id,
            payroll_run_id=None,
            amount=amount,
            applied_date=applied_date,
            source=LoanPaymentSource.MANUAL,
            notes=notes,
        )
        self.db.add(payment)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailureException("manual loan payment", original_error=e) from e
        await self.db.refresh(payment)

        logger.info(f"Manual payment of {amount} recorded for loan {loan_id}")
        return payment

    async def get_reconciliation(self, loan_id: uuid.UUID) -> Dict[str, Any]:
        """Compare the ledger with the loan's stored balance."""
        loan = await self.get_loan(loan_id)
        paid = (await self.db.execute(
            select(func.coalesce(func.sum(LoanPayment.amount), 0)).where(LoanPayment.loan_id == loan_id)
        )).scalar()
        paid = to_money(paid or ZERO)
        amount = to_money(loan.amount)
        remaining = to_money(loan.remaining_amount)
        return {
            "loan_id": loan.id,
            "amount": amount,
            "paid": paid,
            "remaining": remaining,
            "balanced": paid + remaining == amount,
        }

    async def get_schedule(self, loan_id: uuid.UUID, horizon_months: int = 120) -> List[ScheduledInstallment]:
        """
        Forecast the remaining repayment schedule.

        Installments start in the month after the latest recorded payment
        (or at the loan start when nothing has been paid). Months covered
        by an approved vacation carrying the pause marker are skipped.
        """
        loan = await self.get_loan(loan_id)
        last_paid = (await self.db.execute(
            select(func.max(LoanPayment.applied_date)).where(LoanPayment.loan_id == loan_id)
        )).scalar()
        first_due = next_due_date(loan.start_date, last_paid)

        vacations = (await self.db.execute(
            select(VacationRequest).where(
                and_(
                    VacationRequest.employee_id == loan.employee_id,
                    VacationRequest.status == VacationStatus.APPROVED,
                    VacationRequest.end_date >= first_due.replace(day=1),
                )
            )
        )).scalars().all()

        pauses = paused_months(
            list(vacations), first_due, horizon_months, marker=settings.loan_pause_marker,
        )
        try:
            return generate_amortization_schedule(
                amount=loan.remaining_amount,
                interest_rate=loan.interest_rate,
                monthly_payment=loan.monthly_deduction,
                start_date=first_due,
                end_date=loan.end_date,
                pause_months=pauses,
            )
        except LoanScheduleError as e:
            raise LoanScheduleException(str(e)) from e
