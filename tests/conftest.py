"""
PayMaster - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Keep the application engine off the on-disk development database
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.event import EmployeeEvent, EventStatus, EventType, RecurrenceType
from app.models.leave import LeaveType, VacationRequest, VacationStatus
from app.models.loan import Loan, LoanStatus
from app.models.payroll import Employee, EmployeeStatus
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FACTORIES
# ===========================================

@pytest.fixture
def make_employee(db_session: AsyncSession):
    """Create and commit an employee."""
    counter = {"n": 0}

    async def _make(
        salary: str = "1000.00",
        code: Optional[str] = None,
        status: EmployeeStatus = EmployeeStatus.ACTIVE,
        standard_working_days: int = 26,
        first_name: str = "Test",
        last_name: str = "Employee",
    ) -> Employee:
        counter["n"] += 1
        employee = Employee(
            employee_code=code or f"EMP{counter['n']:03d}",
            first_name=first_name,
            last_name=last_name,
            salary=Decimal(salary),
            standard_working_days=standard_working_days,
            status=status,
        )
        db_session.add(employee)
        await db_session.commit()
        return employee

    return _make


@pytest.fixture
def make_loan(db_session: AsyncSession):
    """Create and commit a loan; created_at drives amortization order."""

    async def _make(
        employee: Employee,
        amount: str,
        monthly_deduction: str,
        remaining_amount: Optional[str] = None,
        start_date: date = date(2024, 1, 1),
        end_date: Optional[date] = None,
        status: LoanStatus = LoanStatus.ACTIVE,
        created_at: Optional[datetime] = None,
        interest_rate: str = "0",
    ) -> Loan:
        loan = Loan(
            employee_id=employee.id,
            amount=Decimal(amount),
            monthly_deduction=Decimal(monthly_deduction),
            remaining_amount=Decimal(remaining_amount if remaining_amount is not None else amount),
            interest_rate=Decimal(interest_rate),
            start_date=start_date,
            end_date=end_date,
            status=status,
        )
        if created_at is not None:
            loan.created_at = created_at
        db_session.add(loan)
        await db_session.commit()
        return loan

    return _make


@pytest.fixture
def make_vacation(db_session: AsyncSession):
    """Create and commit a vacation request (approved by default)."""

    async def _make(
        employee: Employee,
        start_date: date,
        end_date: date,
        status: VacationStatus = VacationStatus.APPROVED,
        deduct_from_salary: bool = False,
        leave_type: LeaveType = LeaveType.ANNUAL,
        reason: Optional[str] = None,
    ) -> VacationRequest:
        vacation = VacationRequest(
            employee_id=employee.id,
            start_date=start_date,
            end_date=end_date,
            days=(end_date - start_date).days + 1,
            leave_type=leave_type,
            deduct_from_salary=deduct_from_salary,
            status=status,
            reason=reason,
            audit_log=[],
        )
        db_session.add(vacation)
        await db_session.commit()
        return vacation

    return _make


@pytest.fixture
def make_event(db_session: AsyncSession):
    """Create and commit an employee event."""

    async def _make(
        employee: Employee,
        event_type: EventType,
        amount: str,
        event_date: date,
        recurrence_type: RecurrenceType = RecurrenceType.NONE,
        recurrence_end_date: Optional[date] = None,
        title: Optional[str] = None,
        affects_payroll: bool = True,
        status: EventStatus = EventStatus.ACTIVE,
    ) -> EmployeeEvent:
        event = EmployeeEvent(
            employee_id=employee.id,
            event_type=event_type,
            title=title or f"{event_type.value} event",
            amount=Decimal(amount),
            event_date=event_date,
            recurrence_type=recurrence_type,
            recurrence_end_date=recurrence_end_date,
            affects_payroll=affects_payroll,
            status=status,
        )
        db_session.add(event)
        await db_session.commit()
        return event

    return _make
