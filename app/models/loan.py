"""
PayMaster - Loan Models

Employee loans and the append-only repayment ledger.

Invariant: for every loan, sum(payments.amount) + remaining_amount == amount.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class LoanStatus(str, Enum):
    """Loan lifecycle status."""
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class LoanPaymentSource(str, Enum):
    """Where a loan payment came from."""
    PAYROLL = "payroll"
    MANUAL = "manual"


class Loan(BaseModel):
    """
    Employee loan repaid through payroll installments.

    remaining_amount and status are changed only by payroll amortization
    and manual payments; both paths append a LoanPayment.
    """

    __tablename__ = "loans"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Original loan amount",
    )
    monthly_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Annual interest rate percentage",
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[LoanStatus] = mapped_column(
        SQLEnum(LoanStatus),
        default=LoanStatus.PENDING,
        nullable=False,
        index=True,
    )

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payments: Mapped[List["LoanPayment"]] = relationship(
        "LoanPayment",
        back_populates="loan",
        order_by="LoanPayment.applied_date",
    )


class LoanPayment(BaseModel):
    """
    Immutable ledger row. Never updated or deleted.
    """

    __tablename__ = "loan_payments"

    loan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_runs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    applied_date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[LoanPaymentSource] = mapped_column(
        SQLEnum(LoanPaymentSource),
        default=LoanPaymentSource.PAYROLL,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    loan: Mapped["Loan"] = relationship("Loan", back_populates="payments")
