"""
PayMaster - Payroll Service

Payroll generation, preview, and post-run vacation corrections.

Generation pipeline:
1. Period guard: reject a range overlapping any existing run
2. Load employees, vacations, loans and events for the period
3. Aggregate (overrides applied first inside each aggregator)
4. Compute each employee's entry
5. Persist run, entries and loan ledger atomically
6. Emit notifications after commit

Preview runs steps 2-4 through the same code and returns the plan.
"""

import uuid
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.event import EventType
from app.models.leave import LeaveType, VacationRequest, VacationStatus
from app.models.payroll import PayrollEntry, PayrollRun
from app.services.employee_directory import EmployeeDirectory
from app.services.event_service import EventService
from app.services.leave_service import VacationStore
from app.services.loan_service import LoanService
from app.services.payroll_calculators import (
    EmployeeEventSummary,
    EmployeeVacationSummary,
    EventConsideration,
    FlatStatutoryDeductionPolicy,
    PayPeriod,
    PayrollComputer,
    PayrollOverrides,
    NO_OVERRIDES,
    VacationPayPolicy,
    aggregate_events,
    aggregate_vacations,
    allocate_loan_installments,
    calculate_run_totals,
)
from app.services.payroll_calculators.computer import actual_working_days, apply_vacation_pay_policy
from app.services.payroll_locks import payroll_write_lock
from app.services.payroll_notifications import PayrollNotificationEmitter
from app.services.payroll_persister import PayrollPersister
from app.services.payroll_plan import EmployeePlan, PayrollPlan
from app.utils.error_handling import (
    InvalidAmountException,
    InvalidDateRangeException,
    InvalidOverrideException,
    NoActiveEmployeesException,
    PayrollEntryNotFoundException,
    PayrollPeriodConflictException,
    PayrollRunNotFoundException,
    PersistenceFailureException,
    ValidationException,
)

logger = logging.getLogger(__name__)


def run_reference(run: PayrollRun) -> Dict[str, Any]:
    """Identity of a run as carried in conflict errors and previews."""
    return {
        "id": str(run.id),
        "period": run.period,
        "start_date": run.start_date.isoformat(),
        "end_date": run.end_date.isoformat(),
    }


class PayrollService:
    """
    Payroll engine service.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.directory = EmployeeDirectory(db)
        self.vacations = VacationStore(db)
        self.loans = LoanService(db)
        self.events = EventService(db)

    # ===========================================
    # VALIDATION
    # ===========================================

    @staticmethod
    def _validate_period(period: str, start_date: date, end_date: date) -> None:
        if not period or not period.strip():
            raise ValidationException("Payroll period label is required", field="period")
        if start_date > end_date:
            raise InvalidDateRangeException(start_date, end_date)

    async def _validate_overrides(self, overrides: PayrollOverrides) -> None:
        """Every skipped id must refer to an existing record of its kind."""
        checks = (
            ("vacation", overrides.skipped_vacation_ids, self.vacations.existing_ids),
            ("loan", overrides.skipped_loan_ids, self.loans.existing_ids),
            ("event", overrides.skipped_event_ids, self.events.existing_ids),
        )
        for kind, ids, lookup in checks:
            if not ids:
                continue
            found = await lookup(ids)
            unknown = sorted(ids - found, key=str)
            if unknown:
                raise InvalidOverrideException(kind, unknown)

    @staticmethod
    def _statutory_policy(deductions: Optional[Dict[str, Any]]) -> FlatStatutoryDeductionPolicy:
        deductions = deductions or {}
        for field, value in deductions.items():
            if value is not None and Decimal(str(value)) < 0:
                raise InvalidAmountException(value, field=f"deductions.{field}")
        return FlatStatutoryDeductionPolicy(
            tax_deduction=deductions.get("tax_deduction"),
            social_security_deduction=deductions.get("social_security_deduction"),
            health_insurance_deduction=deductions.get("health_insurance_deduction"),
        )

    # ===========================================
    # PERIOD GUARD
    # ===========================================

    async def find_conflicting_run(self, start_date: date, end_date: date) -> Optional[PayrollRun]:
        """First run whose range intersects [start_date, end_date]."""
        result = await self.db.execute(
            select(PayrollRun)
            .where(
                and_(
                    PayrollRun.start_date <= end_date,
                    PayrollRun.end_date >= start_date,
                )
            )
            .order_by(PayrollRun.start_date)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _guard_period(self, start_date: date, end_date: date) -> None:
        conflict = await self.find_conflicting_run(start_date, end_date)
        if conflict is not None:
            logger.warning(
                f"Payroll generation for {start_date}..{end_date} rejected: overlaps run {conflict.id}"
            )
            raise PayrollPeriodConflictException(run_reference(conflict))

    # ===========================================
    # PLAN (shared by preview and generation)
    # ===========================================

    async def _build_plan(
        self,
        period_label: str,
        start_date: date,
        end_date: date,
        overrides: PayrollOverrides,
        deductions: Optional[Dict[str, Any]] = None,
    ) -> PayrollPlan:
        period = PayPeriod(start_date, end_date)
        computer = PayrollComputer(
            vacation_pay_policy=VacationPayPolicy(settings.payroll_vacation_pay_policy),
            statutory_policy=self._statutory_policy(deductions),
            currency=settings.payroll_currency,
            default_working_days=settings.payroll_default_working_days,
        )

        employees = await self.directory.list_active(include_on_leave=settings.payroll_include_on_leave)
        employee_ids = {e.id for e in employees}

        # Sequential reads on one session; aggregators impose their own ordering
        vacations = await self.vacations.find_approved(start_date, end_date)
        loans = await self.loans.find_active_overlapping(start_date, end_date)
        events = await self.events.find_in_range_or_recurring(start_date, end_date)

        loans = [loan for loan in loans if loan.employee_id in employee_ids]
        vacation_summaries = aggregate_vacations(
            [v for v in vacations if v.employee_id in employee_ids], period, overrides,
        )
        event_summaries = aggregate_events(
            [e for e in events if e.employee_id in employee_ids], period, overrides,
        )
        allocations = allocate_loan_installments(loans, period, overrides)
        allocations_by_employee = allocations.by_employee

        employee_plans = []
        for employee in employees:
            vacation = vacation_summaries.get(employee.id, EmployeeVacationSummary())
            employee_events = event_summaries.get(employee.id)
            result = computer.compute(
                employee,
                vacation,
                employee_events,
                loan_deduction=allocations.total_for(employee.id),
            )
            employee_plans.append(EmployeePlan(
                employee=employee,
                result=result,
                vacation=vacation,
                events=employee_events or EmployeeEventSummary(),
                loans=allocations_by_employee.get(employee.id, []),
            ))

        return PayrollPlan(
            period_label=period_label.strip(),
            period=period,
            overrides=overrides,
            employees=employee_plans,
            allocations=allocations,
            loans_by_id={loan.id: loan for loan in loans},
            totals=calculate_run_totals(p.result for p in employee_plans),
        )

    # ===========================================
    # GENERATION AND PREVIEW
    # ===========================================

    async def generate_payroll(
        self,
        period: str,
        start_date: date,
        end_date: date,
        overrides: PayrollOverrides = NO_OVERRIDES,
        deductions: Optional[Dict[str, Any]] = None,
    ) -> PayrollRun:
        """
        Generate and persist a payroll run.

        Raises:
            PayrollPeriodConflictException: the range overlaps an existing run
            ValidationException: malformed period or unknown override ids
            PayrollAggregationException: a malformed event or inconsistent loan
            PersistenceFailureException: the write failed and was rolled back
        """
        self._validate_period(period, start_date, end_date)

        async with payroll_write_lock(self.db):
            await self._guard_period(start_date, end_date)
            await self._validate_overrides(overrides)

            plan = await self._build_plan(period, start_date, end_date, overrides, deductions)
            if not plan.employees:
                raise NoActiveEmployeesException()

            try:
                run = await PayrollPersister(self.db).persist(plan)
            except PersistenceFailureException as e:
                # Another writer committed an overlapping run after the guard
                if isinstance(e.original_error, IntegrityError):
                    await self._guard_period(start_date, end_date)
                raise
            run_id = run.id
            logger.info(
                f"Payroll run {run_id} generated for {plan.period_label} "
                f"({start_date}..{end_date}): {len(plan.employees)} entries, "
                f"net {plan.totals.net_amount}"
            )

            emitter = PayrollNotificationEmitter(self.db, currency=settings.payroll_currency)
            await emitter.emit_for_run(run_id, plan)

        return await self.get_payroll_run(run_id)

    async def preview_payroll(
        self,
        period: str,
        start_date: date,
        end_date: date,
        overrides: PayrollOverrides = NO_OVERRIDES,
        deductions: Optional[Dict[str, Any]] = None,
    ) -> PayrollPlan:
        """
        Compute a payroll plan without writing anything.

        An overlapping run is reported on ``plan.conflict`` instead of
        raising.
        """
        self._validate_period(period, start_date, end_date)
        await self._validate_overrides(overrides)

        conflict = await self.find_conflicting_run(start_date, end_date)
        plan = await self._build_plan(period, start_date, end_date, overrides, deductions)
        plan.conflict = conflict
        return plan

    # ===========================================
    # VACATION-LINKED RECALCULATION
    # ===========================================

    async def attach_vacation_to_entry(
        self,
        entry_id: uuid.UUID,
        start_date: date,
        end_date: date,
        leave_type: LeaveType = LeaveType.ANNUAL,
        deduct_from_salary: bool = False,
        reason: Optional[str] = None,
    ) -> Tuple[VacationRequest, PayrollEntry]:
        """
        Create an approved vacation tied to an existing entry and apply
        its days to that entry immediately.
        """
        if start_date > end_date:
            raise InvalidDateRangeException(start_date, end_date)

        async with payroll_write_lock(self.db):
            entry = await self.get_payroll_entry(entry_id)
            run = entry.payroll_run
            days = PayPeriod(run.start_date, run.end_date).overlap_days(start_date, end_date)
            if days == 0:
                raise ValidationException(
                    f"Vacation {start_date}..{end_date} does not overlap payroll run "
                    f"{run.start_date}..{run.end_date}",
                    field="start_date",
                )

            try:
                vacation = await self.vacations.create(
                    employee_id=entry.employee_id,
                    start_date=start_date,
                    end_date=end_date,
                    days=days,
                    leave_type=leave_type,
                    deduct_from_salary=deduct_from_salary,
                    reason=reason,
                    status=VacationStatus.APPROVED,
                    linked_entry_id=entry.id,
                    audit_payload={"payroll_entry_id": str(entry.id), "payroll_run_id": str(run.id)},
                )

                entry.vacation_days = entry.vacation_days + days
                entry.actual_working_days = actual_working_days(entry.working_days, entry.vacation_days)
                note = f"{leave_type.value} leave: {days} days (attached {start_date}..{end_date})"
                entry.adjustment_reason = (
                    f"{entry.adjustment_reason} {note}" if entry.adjustment_reason else note
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Attaching vacation to entry {entry_id} failed: {e}", exc_info=True)
                raise PersistenceFailureException("vacation attachment", original_error=e) from e

        logger.info(f"Vacation {vacation.id} ({days} days) attached to payroll entry {entry_id}")
        return vacation, entry

    async def recalculate_run(self, run_id: uuid.UUID) -> PayrollRun:
        """
        Re-derive vacation days on every entry of a run from the currently
        approved vacations. Loan and event figures are left as generated.
        """
        policy = VacationPayPolicy(settings.payroll_vacation_pay_policy)

        async with payroll_write_lock(self.db):
            run = await self.get_payroll_run(run_id)
            period = PayPeriod(run.start_date, run.end_date)
            overrides = PayrollOverrides.from_dict(run.overrides)

            vacations = await self.vacations.find_for_recalculation(
                run.start_date, run.end_date, [e.id for e in run.entries],
            )
            summaries = aggregate_vacations(vacations, period, overrides)

            changed = 0
            for entry in run.entries:
                summary = summaries.get(entry.employee_id, EmployeeVacationSummary())
                if self._apply_vacation_summary(entry, summary, policy):
                    changed += 1

            totals = calculate_run_totals(run.entries)
            run.gross_amount = totals.gross_amount
            run.total_deductions = totals.total_deductions
            run.net_amount = totals.net_amount

            try:
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Recalculation of run {run_id} failed: {e}", exc_info=True)
                raise PersistenceFailureException("payroll recalculation", original_error=e) from e

        logger.info(f"Payroll run {run_id} recalculated: {changed} entries changed")
        return await self.get_payroll_run(run_id)

    @staticmethod
    def _apply_vacation_summary(
        entry: PayrollEntry,
        summary: EmployeeVacationSummary,
        policy: VacationPayPolicy,
    ) -> bool:
        """Rewrite the entry's vacation-derived figures; True if anything moved."""
        before = (entry.vacation_days, entry.base_salary)

        entry.vacation_days = summary.vacation_days
        entry.actual_working_days = actual_working_days(entry.working_days, summary.vacation_days)
        entry.base_salary = apply_vacation_pay_policy(
            policy, entry.contract_salary, entry.working_days, summary.deductible_days,
        )
        entry.gross_pay = entry.base_salary + entry.bonus_amount
        entry.net_pay = entry.gross_pay - entry.total_deductions

        return before != (entry.vacation_days, entry.base_salary)

    # ===========================================
    # QUERIES
    # ===========================================

    async def get_payroll_run(self, run_id: uuid.UUID) -> PayrollRun:
        """Get payroll run with its entries."""
        result = await self.db.execute(
            select(PayrollRun)
            .options(selectinload(PayrollRun.entries))
            .where(PayrollRun.id == run_id)
            .execution_options(populate_existing=True)
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise PayrollRunNotFoundException(run_id)
        return run

    async def allowance_breakdown(self, run: PayrollRun) -> Dict[uuid.UUID, List[EventConsideration]]:
        """
        Allowance occurrences behind each entry of a persisted run, keyed by
        employee id. Re-aggregated over the run period with the run's stored
        overrides.
        """
        employee_ids = {entry.employee_id for entry in run.entries}
        events = await self.events.find_in_range_or_recurring(run.start_date, run.end_date)
        summaries = aggregate_events(
            [
                e for e in events
                if e.employee_id in employee_ids and e.event_type == EventType.ALLOWANCE
            ],
            PayPeriod(run.start_date, run.end_date),
            PayrollOverrides.from_dict(run.overrides),
        )
        return {employee_id: summary.allowances for employee_id, summary in summaries.items()}

    async def get_payroll_entry(self, entry_id: uuid.UUID) -> PayrollEntry:
        result = await self.db.execute(
            select(PayrollEntry)
            .options(selectinload(PayrollEntry.payroll_run))
            .where(PayrollEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise PayrollEntryNotFoundException(entry_id)
        return entry

    async def list_payroll_runs(
        self,
        year: Optional[int] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[PayrollRun], int]:
        """List payroll runs, newest period first."""
        query = select(PayrollRun)

        if year:
            query = query.where(
                and_(
                    PayrollRun.start_date >= date(year, 1, 1),
                    PayrollRun.start_date <= date(year, 12, 31),
                )
            )

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar()

        query = query.order_by(PayrollRun.start_date.desc())
        query = query.offset((page - 1) * per_page).limit(per_page)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total
