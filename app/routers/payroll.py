"""
PayMaster - Payroll Router

API endpoints for payroll generation, preview and post-run vacation
corrections.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.leave import LeaveType
from app.models.payroll import PayrollRun
from app.services.payroll_service import PayrollService
from app.schemas.payroll import (
    AttachVacationRequest,
    AttachVacationResponse,
    PayrollEntryResponse,
    PayrollGenerateRequest,
    PayrollPreviewResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayrollRunSummary,
    VacationRequestResponse,
)


router = APIRouter()


async def _run_response(service: PayrollService, run: PayrollRun) -> PayrollRunResponse:
    return PayrollRunResponse.from_run(run, await service.allowance_breakdown(run))


# ===========================================
# PAYROLL RUNS
# ===========================================

@router.get(
    "/runs",
    response_model=PayrollRunListResponse,
    summary="List payroll runs",
)
async def list_payroll_runs(
    year: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    """List payroll runs, newest period first."""
    service = PayrollService(db)
    runs, total = await service.list_payroll_runs(year=year, page=page, per_page=per_page)

    return PayrollRunListResponse(
        items=[PayrollRunSummary.model_validate(r) for r in runs],
        total=total,
        page=page,
        per_page=per_page,
        pages=(total + per_page - 1) // per_page,
    )


@router.get(
    "/runs/{run_id}",
    response_model=PayrollRunResponse,
    summary="Get payroll run",
)
async def get_payroll_run(
    run_id: uuid.UUID = Path(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Get payroll run with its entries."""
    service = PayrollService(db)
    run = await service.get_payroll_run(run_id)
    return await _run_response(service, run)


@router.post(
    "/runs/generate",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate payroll run",
    responses={409: {"description": "A run already covers part of this period"}},
)
async def generate_payroll_run(
    data: PayrollGenerateRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Generate and persist payroll for the period.

    Vacations, loans and events listed in overrides are left out entirely.
    """
    service = PayrollService(db)
    run = await service.generate_payroll(
        period=data.period,
        start_date=data.start_date,
        end_date=data.end_date,
        overrides=data.overrides.to_overrides(),
        deductions=data.deductions.model_dump() if data.deductions else None,
    )
    return await _run_response(service, run)


@router.post(
    "/runs/preview",
    response_model=PayrollPreviewResponse,
    summary="Preview payroll run",
)
async def preview_payroll_run(
    data: PayrollGenerateRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Compute payroll for the period without saving anything."""
    service = PayrollService(db)
    plan = await service.preview_payroll(
        period=data.period,
        start_date=data.start_date,
        end_date=data.end_date,
        overrides=data.overrides.to_overrides(),
        deductions=data.deductions.model_dump() if data.deductions else None,
    )
    return PayrollPreviewResponse.from_plan(plan)


@router.post(
    "/runs/{run_id}/recalculate",
    response_model=PayrollRunResponse,
    summary="Recalculate vacation days on a run",
)
async def recalculate_payroll_run(
    run_id: uuid.UUID = Path(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Re-derive vacation days for every entry from approved vacations."""
    service = PayrollService(db)
    run = await service.recalculate_run(run_id)
    return await _run_response(service, run)


# ===========================================
# PAYROLL ENTRIES
# ===========================================

@router.post(
    "/entries/{entry_id}/vacation",
    response_model=AttachVacationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach vacation to payroll entry",
)
async def attach_vacation(
    data: AttachVacationRequest,
    entry_id: uuid.UUID = Path(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Record an approved vacation against an already generated entry."""
    service = PayrollService(db)
    vacation, entry = await service.attach_vacation_to_entry(
        entry_id=entry_id,
        start_date=data.start_date,
        end_date=data.end_date,
        leave_type=LeaveType(data.leave_type),
        deduct_from_salary=data.deduct_from_salary,
        reason=data.reason,
    )
    return AttachVacationResponse(
        vacation=VacationRequestResponse.model_validate(vacation),
        entry=PayrollEntryResponse.model_validate(entry),
    )
