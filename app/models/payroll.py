"""
PayMaster - Payroll Models

Models for the payroll engine:
- Employee: salary and standard working days used by generation
- PayrollRun: one non-overlapping pay period with aggregate totals
- PayrollEntry: one employee's computed result within a run
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Date, ForeignKey, Integer, JSON, Numeric, String, Text, UniqueConstraint, Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


# ===========================================
# ENUMS
# ===========================================

class EmployeeStatus(str, Enum):
    """Employee lifecycle status."""
    ACTIVE = "active"
    ON_LEAVE = "on_leave"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class PayrollRunStatus(str, Enum):
    """Payroll run status."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ===========================================
# EMPLOYEE
# ===========================================

class Employee(BaseModel):
    """
    Employee record as consumed by payroll generation.

    Only the fields the engine reads are modelled here; general HR
    record keeping lives outside this service.
    """

    __tablename__ = "employees"

    employee_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Monthly contracted salary",
    )
    standard_working_days: Mapped[int] = mapped_column(
        Integer,
        default=26,
        nullable=False,
        comment="Standard working days per payroll period",
    )

    status: Mapped[EmployeeStatus] = mapped_column(
        SQLEnum(EmployeeStatus),
        default=EmployeeStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ===========================================
# PAYROLL RUN
# ===========================================

class PayrollRun(BaseModel):
    """
    A payroll run covering one pay period.

    Date ranges of runs never overlap; the unique start date backs the
    overlap guard at the database level.
    """

    __tablename__ = "payroll_runs"

    period: Mapped[str] = mapped_column(
        String(100), nullable=False,
        comment="Display label e.g. 'January 2024'",
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    gross_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    status: Mapped[PayrollRunStatus] = mapped_column(
        SQLEnum(PayrollRunStatus),
        default=PayrollRunStatus.COMPLETED,
        nullable=False,
    )

    overrides: Mapped[dict] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="Skip-lists applied when the run was generated",
    )

    entries: Mapped[List["PayrollEntry"]] = relationship(
        "PayrollEntry",
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="PayrollEntry.employee_id",
    )


# ===========================================
# PAYROLL ENTRY
# ===========================================

class PayrollEntry(BaseModel):
    """
    One employee's computed pay for a run.

    Written once by generation; afterwards only vacation figures change
    through attach/recalculate.
    """

    __tablename__ = "payroll_entries"

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_entry_run_employee"),
    )

    payroll_run_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Earnings
    contract_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Employee salary at generation time",
    )
    base_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Salary after vacation pay policy",
    )
    bonus_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Bonus and allowance total",
    )

    # Deductions
    tax_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    social_security_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    health_insurance_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    loan_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    other_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    # Days
    working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    actual_working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vacation_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Totals
    gross_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    adjustment_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payroll_run: Mapped["PayrollRun"] = relationship("PayrollRun", back_populates="entries")
    employee: Mapped["Employee"] = relationship("Employee", lazy="joined")

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.tax_deduction
            + self.social_security_deduction
            + self.health_insurance_deduction
            + self.loan_deduction
            + self.other_deductions
        )
