"""
PayMaster - Loans Router

Employee loan creation, manual repayment, schedule and reconciliation.
"""

import uuid

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.services.loan_service import LoanService
from app.services.payroll_calculators import ZERO
from app.schemas.loans import (
    LoanCreate,
    LoanPaymentResponse,
    LoanReconciliationResponse,
    LoanResponse,
    LoanScheduleResponse,
    ManualPaymentRequest,
    ScheduledInstallmentResponse,
)


router = APIRouter()


@router.post(
    "",
    response_model=LoanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create employee loan",
)
async def create_loan(
    data: LoanCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Create an active loan.

    Lending policy violations are rejected with 422; warnings are returned
    alongside the created loan.
    """
    service = LoanService(db)
    loan, warnings = await service.create_loan(
        employee_id=data.employee_id,
        amount=data.amount,
        monthly_deduction=data.monthly_deduction,
        start_date=data.start_date,
        end_date=data.end_date,
        interest_rate=data.interest_rate,
        reason=data.reason,
    )
    response = LoanResponse.model_validate(loan)
    response.warnings = warnings
    return response


@router.get(
    "/{loan_id}/schedule",
    response_model=LoanScheduleResponse,
    summary="Loan amortization schedule",
)
async def get_loan_schedule(
    loan_id: uuid.UUID = Path(...),
    horizon_months: int = Query(120, ge=1, le=600),
    db: AsyncSession = Depends(get_async_session),
):
    """Forecast remaining installments, skipping paused months."""
    service = LoanService(db)
    schedule = await service.get_schedule(loan_id, horizon_months=horizon_months)

    return LoanScheduleResponse(
        loan_id=loan_id,
        installments=[ScheduledInstallmentResponse.model_validate(i) for i in schedule],
        total_payment=sum((i.payment_amount for i in schedule), ZERO),
        total_interest=sum((i.interest_amount for i in schedule), ZERO),
    )


@router.post(
    "/{loan_id}/payments",
    response_model=LoanPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record manual loan payment",
)
async def record_loan_payment(
    data: ManualPaymentRequest,
    loan_id: uuid.UUID = Path(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Record a repayment made outside payroll."""
    service = LoanService(db)
    payment = await service.record_manual_payment(
        loan_id=loan_id,
        amount=data.amount,
        applied_date=data.applied_date,
        notes=data.notes,
    )
    return LoanPaymentResponse.model_validate(payment)


@router.get(
    "/{loan_id}/reconciliation",
    response_model=LoanReconciliationResponse,
    summary="Loan ledger reconciliation",
)
async def get_loan_reconciliation(
    loan_id: uuid.UUID = Path(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Compare recorded payments with the loan's remaining balance."""
    service = LoanService(db)
    return LoanReconciliationResponse(**await service.get_reconciliation(loan_id))
