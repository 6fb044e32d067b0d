"""
PayMaster - Payroll Service Tests

Integration tests for payroll generation and preview against a real
(in-memory) database: period guard, overrides, atomic persistence and
post-run notifications.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import EmployeeEvent, EventType, RecurrenceType
from app.models.leave import VacationRequest
from app.models.loan import Loan, LoanPayment, LoanPaymentSource, LoanStatus
from app.models.notification import Notification, NotificationType
from app.models.payroll import EmployeeStatus, PayrollEntry, PayrollRun
from app.services.event_service import EventService
from app.services.notification_service import NotificationService
from app.services.payroll_calculators import PayrollOverrides
from app.services.payroll_persister import PayrollPersister
from app.services.payroll_service import PayrollService
from app.utils.error_handling import (
    ErrorCode,
    InvalidAmountException,
    InvalidDateRangeException,
    InvalidOverrideException,
    NoActiveEmployeesException,
    NotificationFailureException,
    PayrollAggregationException,
    PayrollPeriodConflictException,
    PersistenceFailureException,
    ValidationException,
)


JAN_START, JAN_END = date(2024, 1, 1), date(2024, 1, 31)


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


async def _loan_state(db: AsyncSession, loan_id: uuid.UUID):
    row = (await db.execute(
        select(Loan.remaining_amount, Loan.status).where(Loan.id == loan_id)
    )).one()
    return row.remaining_amount, row.status


@pytest_asyncio.fixture
async def payroll_data(make_employee, make_loan, make_vacation, make_event):
    """
    Two active employees and one terminated:
    - alice: two loans (one nearly paid off), a 3-day vacation
    - bob: a one-off bonus and a monthly allowance
    """
    alice = await make_employee(salary="1000.00", first_name="Alice")
    bob = await make_employee(salary="500.00", first_name="Bob")
    gone = await make_employee(salary="800.00", status=EmployeeStatus.TERMINATED)

    nearly_done = await make_loan(alice, "300", "100", remaining_amount="90",
                                  created_at=datetime(2023, 1, 1))
    fresh = await make_loan(alice, "200", "75", created_at=datetime(2023, 2, 1))
    ignored = await make_loan(gone, "500", "50", created_at=datetime(2023, 1, 1))

    vacation = await make_vacation(alice, date(2024, 1, 10), date(2024, 1, 12))
    bonus = await make_event(bob, EventType.BONUS, "100", date(2024, 1, 15))
    allowance = await make_event(bob, EventType.ALLOWANCE, "20", date(2023, 11, 5),
                                 recurrence_type=RecurrenceType.MONTHLY)

    return {
        "alice": alice.id,
        "bob": bob.id,
        "gone": gone.id,
        "nearly_done": nearly_done.id,
        "fresh": fresh.id,
        "ignored": ignored.id,
        "vacation": vacation.id,
        "bonus": bonus.id,
        "allowance": allowance.id,
    }


# ===========================================
# GENERATION
# ===========================================

class TestGeneratePayroll:
    """End-to-end generation for one period."""

    @pytest.mark.asyncio
    async def test_generates_entries_and_totals(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)

        entries = {e.employee_id: e for e in run.entries}
        assert set(entries) == {payroll_data["alice"], payroll_data["bob"]}

        alice = entries[payroll_data["alice"]]
        assert alice.gross_pay == Decimal("1000.00")
        assert alice.loan_deduction == Decimal("165.00")
        assert alice.net_pay == Decimal("835.00")
        assert alice.vacation_days == 3
        assert alice.actual_working_days == 23
        assert alice.adjustment_reason == "3 vacation days. Loan deduction: 165.00 KWD."

        bob = entries[payroll_data["bob"]]
        assert bob.bonus_amount == Decimal("120.00")
        assert bob.gross_pay == Decimal("620.00")
        assert bob.net_pay == Decimal("620.00")

        assert run.gross_amount == Decimal("1620.00")
        assert run.total_deductions == Decimal("165.00")
        assert run.net_amount == Decimal("1455.00")
        assert run.gross_amount - run.total_deductions == run.net_amount

    @pytest.mark.asyncio
    async def test_loans_are_amortized_with_ledger_rows(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)

        assert await _loan_state(db_session, payroll_data["nearly_done"]) == (
            Decimal("0.00"), LoanStatus.COMPLETED,
        )
        assert await _loan_state(db_session, payroll_data["fresh"]) == (
            Decimal("125.00"), LoanStatus.ACTIVE,
        )
        assert await _loan_state(db_session, payroll_data["ignored"]) == (
            Decimal("500.00"), LoanStatus.ACTIVE,
        )

        payments = (await db_session.execute(
            select(LoanPayment).order_by(LoanPayment.amount)
        )).scalars().all()
        assert [(p.loan_id, p.amount) for p in payments] == [
            (payroll_data["fresh"], Decimal("75.00")),
            (payroll_data["nearly_done"], Decimal("90.00")),
        ]
        assert all(p.payroll_run_id == run.id for p in payments)
        assert all(p.source == LoanPaymentSource.PAYROLL for p in payments)
        assert all(p.applied_date == JAN_END for p in payments)

    @pytest.mark.asyncio
    async def test_completed_loan_is_not_charged_next_period(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        await service.generate_payroll("January 2024", JAN_START, JAN_END)

        february = await service.generate_payroll("February 2024", date(2024, 2, 1), date(2024, 2, 29))

        alice = next(e for e in february.entries if e.employee_id == payroll_data["alice"])
        assert alice.loan_deduction == Decimal("75.00")
        assert await _loan_state(db_session, payroll_data["fresh"]) == (
            Decimal("50.00"), LoanStatus.ACTIVE,
        )

    @pytest.mark.asyncio
    async def test_statutory_deductions_from_request(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        run = await service.generate_payroll(
            "January 2024", JAN_START, JAN_END,
            deductions={"tax_deduction": Decimal("10"), "health_insurance_deduction": Decimal("5")},
        )

        bob = next(e for e in run.entries if e.employee_id == payroll_data["bob"])
        assert bob.tax_deduction == Decimal("10.00")
        assert bob.health_insurance_deduction == Decimal("5.00")
        assert bob.net_pay == Decimal("605.00")

    @pytest.mark.asyncio
    async def test_invalid_date_range(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        with pytest.raises(InvalidDateRangeException):
            await service.generate_payroll("Backwards", JAN_END, JAN_START)

        assert await _count(db_session, PayrollRun) == 0

    @pytest.mark.asyncio
    async def test_blank_period_label(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        with pytest.raises(ValidationException):
            await service.generate_payroll("  ", JAN_START, JAN_END)

    @pytest.mark.asyncio
    async def test_no_active_employees(self, db_session: AsyncSession, make_employee):
        await make_employee(status=EmployeeStatus.INACTIVE)
        service = PayrollService(db_session)

        with pytest.raises(NoActiveEmployeesException):
            await service.generate_payroll("January 2024", JAN_START, JAN_END)

        assert await _count(db_session, PayrollRun) == 0

    @pytest.mark.asyncio
    async def test_malformed_event_fails_whole_run(self, db_session: AsyncSession, make_employee, make_event):
        employee = await make_employee()
        await make_employee()
        await make_event(employee, EventType.BONUS, "-10", date(2024, 1, 5))
        service = PayrollService(db_session)

        with pytest.raises(PayrollAggregationException):
            await service.generate_payroll("January 2024", JAN_START, JAN_END)

        assert await _count(db_session, PayrollRun) == 0
        assert await _count(db_session, PayrollEntry) == 0


# ===========================================
# PERIOD GUARD
# ===========================================

class TestPeriodGuard:
    """A second run whose range intersects an existing run writes nothing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [
        (date(2024, 1, 1), date(2024, 1, 31)),
        (date(2024, 1, 15), date(2024, 2, 14)),
        (date(2023, 12, 15), date(2024, 1, 1)),
        (date(2024, 1, 31), date(2024, 1, 31)),
    ])
    async def test_overlap_is_rejected_without_writes(self, db_session: AsyncSession, payroll_data, start, end):
        service = PayrollService(db_session)
        first = await service.generate_payroll("January 2024", JAN_START, JAN_END)
        first_id = first.id

        counts_before = {
            model: await _count(db_session, model)
            for model in (PayrollRun, PayrollEntry, LoanPayment, Notification, VacationRequest)
        }
        loans_before = await _loan_state(db_session, payroll_data["fresh"])

        with pytest.raises(PayrollPeriodConflictException) as exc_info:
            await service.generate_payroll("Overlap", start, end)

        assert exc_info.value.code == ErrorCode.ALREADY_EXISTS
        assert exc_info.value.status_code == 409
        assert exc_info.value.conflicting_run["id"] == str(first_id)
        for model, count in counts_before.items():
            assert await _count(db_session, model) == count
        assert await _loan_state(db_session, payroll_data["fresh"]) == loans_before

    @pytest.mark.asyncio
    async def test_adjacent_period_is_accepted(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        await service.generate_payroll("January 2024", JAN_START, JAN_END)

        await service.generate_payroll("February 2024", date(2024, 2, 1), date(2024, 2, 29))

        assert await _count(db_session, PayrollRun) == 2

    @pytest.mark.asyncio
    async def test_unique_start_date_violation_is_a_conflict(
        self, db_session: AsyncSession, payroll_data, monkeypatch,
    ):
        service = PayrollService(db_session)
        first = await service.generate_payroll("January 2024", JAN_START, JAN_END)
        first_id = first.id

        original = PayrollService.find_conflicting_run
        calls = []

        async def misses_first_lookup(self, start_date, end_date):
            # The guard sees no run, as if the other writer had not committed yet
            calls.append((start_date, end_date))
            if len(calls) == 1:
                return None
            return await original(self, start_date, end_date)

        monkeypatch.setattr(PayrollService, "find_conflicting_run", misses_first_lookup)

        with pytest.raises(PayrollPeriodConflictException) as exc_info:
            await service.generate_payroll("Early January", JAN_START, date(2024, 1, 15))

        assert exc_info.value.status_code == 409
        assert exc_info.value.conflicting_run["id"] == str(first_id)
        assert len(calls) == 2
        assert await _count(db_session, PayrollRun) == 1
        assert await _count(db_session, LoanPayment) == 2
        assert await _loan_state(db_session, payroll_data["fresh"]) == (
            Decimal("125.00"), LoanStatus.ACTIVE,
        )


# ===========================================
# OVERRIDES
# ===========================================

class TestOverrides:
    """Skipped records behave exactly as if they did not exist."""

    @pytest.mark.asyncio
    async def test_skipped_records_equal_absent_records(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        overrides = PayrollOverrides.from_lists(
            skipped_vacation_ids=[payroll_data["vacation"]],
            skipped_loan_ids=[payroll_data["nearly_done"]],
            skipped_event_ids=[payroll_data["bonus"]],
        )

        skipped = await service.preview_payroll("January 2024", JAN_START, JAN_END, overrides)
        skipped_figures = [r.figures() for r in skipped.results]

        await db_session.execute(delete(VacationRequest).where(VacationRequest.id == payroll_data["vacation"]))
        await db_session.execute(delete(Loan).where(Loan.id == payroll_data["nearly_done"]))
        await db_session.execute(delete(EmployeeEvent).where(EmployeeEvent.id == payroll_data["bonus"]))
        await db_session.commit()

        absent = await service.preview_payroll("January 2024", JAN_START, JAN_END)

        assert skipped_figures == [r.figures() for r in absent.results]
        assert skipped.totals == absent.totals

    @pytest.mark.asyncio
    async def test_skipped_loan_has_no_side_effects(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        overrides = PayrollOverrides.from_lists(skipped_loan_ids=[payroll_data["nearly_done"]])

        run = await service.generate_payroll("January 2024", JAN_START, JAN_END, overrides)

        alice = next(e for e in run.entries if e.employee_id == payroll_data["alice"])
        assert alice.loan_deduction == Decimal("75.00")
        assert await _loan_state(db_session, payroll_data["nearly_done"]) == (
            Decimal("90.00"), LoanStatus.ACTIVE,
        )
        loan_ids = (await db_session.execute(select(LoanPayment.loan_id))).scalars().all()
        assert loan_ids == [payroll_data["fresh"]]
        assert run.overrides["skipped_loan_ids"] == [str(payroll_data["nearly_done"])]

    @pytest.mark.asyncio
    async def test_skipped_vacation_sends_no_vacation_notification(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        overrides = PayrollOverrides.from_lists(skipped_vacation_ids=[payroll_data["vacation"]])

        await service.generate_payroll("January 2024", JAN_START, JAN_END, overrides)

        types = (await db_session.execute(
            select(Notification.notification_type).where(Notification.employee_id == payroll_data["alice"])
        )).scalars().all()
        assert types == [NotificationType.LOAN_DEDUCTION]

    @pytest.mark.asyncio
    async def test_unknown_override_id_is_rejected(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        unknown = uuid.uuid4()
        overrides = PayrollOverrides.from_lists(skipped_loan_ids=[unknown])

        with pytest.raises(InvalidOverrideException) as exc_info:
            await service.generate_payroll("January 2024", JAN_START, JAN_END, overrides)

        assert exc_info.value.details["unknown_ids"] == [str(unknown)]
        assert await _count(db_session, PayrollRun) == 0


# ===========================================
# RECURRING EVENTS
# ===========================================

class TestRecurringEvents:
    """Monthly templates created and ended through the event store."""

    @pytest.mark.asyncio
    async def test_created_template_recurs_each_month(self, db_session: AsyncSession, make_employee):
        employee = await make_employee(salary="500.00")
        await EventService(db_session).create_event(
            employee.id, EventType.ALLOWANCE, "Transport", Decimal("30"), date(2023, 12, 10),
            recurrence_type=RecurrenceType.MONTHLY,
        )
        service = PayrollService(db_session)

        january = await service.generate_payroll("January 2024", JAN_START, JAN_END)
        february = await service.generate_payroll("February 2024", date(2024, 2, 1), date(2024, 2, 29))

        assert january.entries[0].bonus_amount == Decimal("30.00")
        assert february.entries[0].gross_pay == Decimal("530.00")

    @pytest.mark.asyncio
    async def test_ended_template_stops_after_end_date(self, db_session: AsyncSession, payroll_data):
        ended = await EventService(db_session).end_recurrence(payroll_data["allowance"], JAN_END)
        assert ended.recurrence_end_date == JAN_END
        service = PayrollService(db_session)

        january = await service.generate_payroll("January 2024", JAN_START, JAN_END)
        february = await service.generate_payroll("February 2024", date(2024, 2, 1), date(2024, 2, 29))

        bob_january = next(e for e in january.entries if e.employee_id == payroll_data["bob"])
        bob_february = next(e for e in february.entries if e.employee_id == payroll_data["bob"])
        assert bob_january.bonus_amount == Decimal("120.00")
        assert bob_february.bonus_amount == Decimal("0.00")
        assert bob_february.gross_pay == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_only_monthly_events_can_be_ended(self, db_session: AsyncSession, payroll_data):
        events = EventService(db_session)

        with pytest.raises(InvalidDateRangeException):
            await events.end_recurrence(payroll_data["bonus"], date(2024, 2, 1))
        with pytest.raises(InvalidDateRangeException):
            await events.end_recurrence(payroll_data["allowance"], date(2023, 10, 31))

    @pytest.mark.asyncio
    async def test_negative_amount_is_rejected(self, db_session: AsyncSession, make_employee):
        employee = await make_employee()

        with pytest.raises(InvalidAmountException):
            await EventService(db_session).create_event(
                employee.id, EventType.BONUS, "Clawback", Decimal("-5"), date(2024, 1, 5),
            )
        assert await _count(db_session, EmployeeEvent) == 0


# ===========================================
# PREVIEW
# ===========================================

class TestPreview:
    """Preview shares every calculation with generation and writes nothing."""

    @pytest.mark.asyncio
    async def test_preview_matches_generation(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        plan = await service.preview_payroll("January 2024", JAN_START, JAN_END)
        assert await _count(db_session, PayrollRun) == 0
        assert await _count(db_session, LoanPayment) == 0
        assert await _count(db_session, Notification) == 0

        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)
        entries = {e.employee_id: e for e in run.entries}

        for result in plan.results:
            entry = entries[result.employee_id]
            for field, value in result.figures().items():
                assert getattr(entry, field) == value, field
        assert plan.totals.net_amount == run.net_amount

    @pytest.mark.asyncio
    async def test_preview_lists_considered_records(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)

        plan = await service.preview_payroll("January 2024", JAN_START, JAN_END)

        by_employee = {p.employee_id: p for p in plan.employees}
        alice = by_employee[payroll_data["alice"]]
        assert [v.days_in_period for v in alice.vacation.vacations] == [3]
        assert [(a.loan_id, a.installment, a.remaining_after) for a in alice.loans] == [
            (payroll_data["nearly_done"], Decimal("90.00"), Decimal("0.00")),
            (payroll_data["fresh"], Decimal("75.00"), Decimal("125.00")),
        ]

        bob = by_employee[payroll_data["bob"]]
        assert [a.source for a in bob.events.allowances] == ["recurring"]
        assert {e.event_id for e in bob.events.events} == {payroll_data["bonus"], payroll_data["allowance"]}

    @pytest.mark.asyncio
    async def test_preview_reports_conflict_as_data(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)

        plan = await service.preview_payroll("Mid January", date(2024, 1, 15), date(2024, 2, 14))

        assert plan.conflict is not None
        assert plan.conflict.id == run.id
        assert await _count(db_session, PayrollRun) == 1

    @pytest.mark.asyncio
    async def test_preview_without_employees_is_empty(self, db_session: AsyncSession):
        plan = await PayrollService(db_session).preview_payroll("January 2024", JAN_START, JAN_END)

        assert plan.employees == []
        assert plan.totals.net_amount == Decimal("0.00")


# ===========================================
# ATOMICITY
# ===========================================

class TestAtomicPersistence:
    """A failure anywhere in the write leaves no trace."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", ["_insert_entries", "_apply_loan_allocations"])
    async def test_failure_rolls_back_everything(self, db_session: AsyncSession, payroll_data, monkeypatch, step):
        original = getattr(PayrollPersister, step)

        def failing(self, run, plan):
            original(self, run, plan)
            raise IntegrityError("INSERT", {}, Exception("simulated failure"))

        monkeypatch.setattr(PayrollPersister, step, failing)
        service = PayrollService(db_session)

        with pytest.raises(PersistenceFailureException) as exc_info:
            await service.generate_payroll("January 2024", JAN_START, JAN_END)

        assert exc_info.value.details["retryable"] is True
        assert await _count(db_session, PayrollRun) == 0
        assert await _count(db_session, PayrollEntry) == 0
        assert await _count(db_session, LoanPayment) == 0
        assert await _count(db_session, Notification) == 0
        assert await _loan_state(db_session, payroll_data["nearly_done"]) == (
            Decimal("90.00"), LoanStatus.ACTIVE,
        )
        assert await _loan_state(db_session, payroll_data["fresh"]) == (
            Decimal("200.00"), LoanStatus.ACTIVE,
        )

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, db_session: AsyncSession, payroll_data, monkeypatch):
        original = PayrollPersister._apply_loan_allocations

        def failing(self, run, plan):
            original(self, run, plan)
            raise IntegrityError("INSERT", {}, Exception("simulated failure"))

        monkeypatch.setattr(PayrollPersister, "_apply_loan_allocations", failing)
        service = PayrollService(db_session)
        with pytest.raises(PersistenceFailureException):
            await service.generate_payroll("January 2024", JAN_START, JAN_END)

        monkeypatch.undo()
        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)

        assert run.total_deductions == Decimal("165.00")
        assert await _count(db_session, LoanPayment) == 2


# ===========================================
# NOTIFICATIONS
# ===========================================

class TestRunNotifications:
    """At most one notification of each type per employee per run."""

    @pytest.mark.asyncio
    async def test_one_notification_per_type_per_employee(
        self, db_session: AsyncSession, payroll_data, make_vacation,
    ):
        # Second vacation for alice: still one vacation notification
        alice_id = payroll_data["alice"]
        alice = await PayrollService(db_session).directory.get_employee(alice_id)
        await make_vacation(alice, date(2024, 1, 20), date(2024, 1, 21))

        run = await PayrollService(db_session).generate_payroll("January 2024", JAN_START, JAN_END)

        notifications = await NotificationService(db_session).get_employee_notifications(alice_id)
        by_type = {n.notification_type: n for n in notifications}
        assert len(notifications) == 2
        assert by_type[NotificationType.VACATION_APPROVED].title == "Vacation Deduction Applied"
        assert by_type[NotificationType.VACATION_APPROVED].message == (
            "5 vacation days deducted from January 2024 payroll"
        )
        assert by_type[NotificationType.LOAN_DEDUCTION].title == "Loan Deduction Applied"
        assert by_type[NotificationType.LOAN_DEDUCTION].message == (
            "165.00 KWD deducted for loan repayment in January 2024"
        )
        assert all(n.payroll_run_id == run.id for n in notifications)
        assert all(n.expiry_date == JAN_END for n in notifications)

        bob_notifications = await NotificationService(db_session).get_employee_notifications(payroll_data["bob"])
        assert bob_notifications == []

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_affect_run(
        self, db_session: AsyncSession, payroll_data, monkeypatch,
    ):
        async def failing(self, **kwargs):
            raise NotificationFailureException("sink unavailable")

        monkeypatch.setattr(NotificationService, "create_notification", failing)

        run = await PayrollService(db_session).generate_payroll("January 2024", JAN_START, JAN_END)

        assert run.net_amount == Decimal("1455.00")
        assert await _count(db_session, PayrollRun) == 1
        assert await _count(db_session, LoanPayment) == 2
        assert await _count(db_session, Notification) == 0


# ===========================================
# QUERIES
# ===========================================

class TestRunQueries:

    @pytest.mark.asyncio
    async def test_list_runs_newest_first(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        await service.generate_payroll("January 2024", JAN_START, JAN_END)
        await service.generate_payroll("February 2024", date(2024, 2, 1), date(2024, 2, 29))

        runs, total = await service.list_payroll_runs(page=1, per_page=1)

        assert total == 2
        assert [r.period for r in runs] == ["February 2024"]

    @pytest.mark.asyncio
    async def test_list_runs_by_year(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        await service.generate_payroll("January 2024", JAN_START, JAN_END)

        runs, total = await service.list_payroll_runs(year=2023)

        assert (runs, total) == ([], 0)

    @pytest.mark.asyncio
    async def test_allowance_breakdown_of_persisted_run(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        run = await service.generate_payroll("January 2024", JAN_START, JAN_END)

        breakdown = await service.allowance_breakdown(run)

        assert set(breakdown) == {payroll_data["bob"]}
        assert [(a.event_id, a.title, a.amount, a.source) for a in breakdown[payroll_data["bob"]]] == [
            (payroll_data["allowance"], "allowance event", Decimal("20.00"), "recurring"),
        ]

    @pytest.mark.asyncio
    async def test_allowance_breakdown_honors_stored_overrides(self, db_session: AsyncSession, payroll_data):
        service = PayrollService(db_session)
        overrides = PayrollOverrides.from_lists(skipped_event_ids=[payroll_data["allowance"]])
        run = await service.generate_payroll("January 2024", JAN_START, JAN_END, overrides)

        assert await service.allowance_breakdown(run) == {}
