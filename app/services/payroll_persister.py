"""
PayMaster - Payroll Persister

Writes a payroll plan as one all-or-nothing unit:
run, entries, loan balance/status mutations and loan payment rows.
Any failure rolls the whole unit back.
"""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.loan import LoanPayment
from app.models.payroll import PayrollEntry, PayrollRun, PayrollRunStatus
from app.services.loan_service import LoanService
from app.services.payroll_plan import PayrollPlan
from app.utils.error_handling import PersistenceFailureException

logger = logging.getLogger(__name__)


class PayrollPersister:
    """Transactional writer for generated payroll."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.loan_service = LoanService(db)

    async def persist(self, plan: PayrollPlan) -> PayrollRun:
        """
        Insert the run with its entries and loan ledger, then commit.

        Raises:
            PersistenceFailureException: a database error occurred; nothing
                was written
        """
        try:
            run = self._insert_run(plan)
            await self.db.flush()
            self._insert_entries(run, plan)
            self._apply_loan_allocations(run, plan)
            await self.db.flush()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Payroll run for {plan.period_label} rolled back: {e}", exc_info=True)
            raise PersistenceFailureException("payroll run", original_error=e) from e
        except Exception:
            await self.db.rollback()
            logger.error(f"Payroll run for {plan.period_label} rolled back", exc_info=True)
            raise

        return run

    def _insert_run(self, plan: PayrollPlan) -> PayrollRun:
        run = PayrollRun(
            period=plan.period_label,
            start_date=plan.period.start,
            end_date=plan.period.end,
            gross_amount=plan.totals.gross_amount,
            total_deductions=plan.totals.total_deductions,
            net_amount=plan.totals.net_amount,
            status=PayrollRunStatus.COMPLETED,
            overrides=plan.overrides.to_dict(),
        )
        self.db.add(run)
        return run

    def _insert_entries(self, run: PayrollRun, plan: PayrollPlan) -> List[PayrollEntry]:
        entries = []
        for employee_plan in plan.employees:
            result = employee_plan.result
            entry = PayrollEntry(
                payroll_run_id=run.id,
                employee_id=result.employee_id,
                contract_salary=result.contract_salary,
                base_salary=result.base_salary,
                bonus_amount=result.bonus_amount,
                tax_deduction=result.tax_deduction,
                social_security_deduction=result.social_security_deduction,
                health_insurance_deduction=result.health_insurance_deduction,
                loan_deduction=result.loan_deduction,
                other_deductions=result.other_deductions,
                working_days=result.working_days,
                actual_working_days=result.actual_working_days,
                vacation_days=result.vacation_days,
                gross_pay=result.gross_pay,
                net_pay=result.net_pay,
                adjustment_reason=result.adjustment_reason,
            )
            self.db.add(entry)
            entries.append(entry)
        return entries

    def _apply_loan_allocations(self, run: PayrollRun, plan: PayrollPlan) -> List[LoanPayment]:
        payments = []
        for allocation in plan.allocations.paying:
            payment = self.loan_service.apply_installment(
                loan=plan.loans_by_id[allocation.loan_id],
                allocation=allocation,
                payroll_run_id=run.id,
                applied_date=plan.period.end,
            )
            if payment is not None:
                payments.append(payment)
        return payments
