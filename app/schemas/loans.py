"""
PayMaster - Loan Schemas

Pydantic schemas for employee loans, repayments and schedules.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.loan import LoanPaymentSource, LoanStatus


class LoanCreate(BaseModel):
    """Create loan request."""
    employee_id: UUID
    amount: Decimal = Field(..., gt=0)
    monthly_deduction: Decimal = Field(..., gt=0)
    interest_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    start_date: date
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=500)


class LoanResponse(BaseModel):
    """Loan response; warnings come from the lending policy check."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    amount: Decimal
    monthly_deduction: Decimal
    remaining_amount: Decimal
    interest_rate: Decimal
    start_date: date
    end_date: Optional[date] = None
    status: LoanStatus
    reason: Optional[str] = None
    created_at: datetime
    warnings: List[str] = Field(default_factory=list)


class ManualPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    applied_date: date
    notes: Optional[str] = Field(None, max_length=500)


class LoanPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    employee_id: UUID
    payroll_run_id: Optional[UUID] = None
    amount: Decimal
    applied_date: date
    source: LoanPaymentSource
    notes: Optional[str] = None


class ScheduledInstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    payment_amount: Decimal
    remaining_balance: Decimal


class LoanScheduleResponse(BaseModel):
    loan_id: UUID
    installments: List[ScheduledInstallmentResponse]
    total_payment: Decimal
    total_interest: Decimal


class LoanReconciliationResponse(BaseModel):
    """Ledger total against the loan's stored balance."""
    loan_id: UUID
    amount: Decimal
    paid: Decimal
    remaining: Decimal
    balanced: bool
