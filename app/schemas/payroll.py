"""
PayMaster - Payroll Schemas

Pydantic schemas for payroll generation, preview and corrections.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.leave import LeaveType, VacationStatus
from app.models.payroll import PayrollRun, PayrollRunStatus
from app.services.payroll_calculators import EventConsideration, PayrollOverrides
from app.services.payroll_plan import EmployeePlan, PayrollPlan


# ===========================================
# ENUMS AS LITERALS
# ===========================================

LeaveTypeEnum = Literal["annual", "sick", "emergency", "unpaid", "other"]


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class OverridesIn(BaseModel):
    """Records to leave out of a run entirely."""
    skipped_vacation_ids: List[UUID] = Field(default_factory=list)
    skipped_loan_ids: List[UUID] = Field(default_factory=list)
    skipped_event_ids: List[UUID] = Field(default_factory=list)

    def to_overrides(self) -> PayrollOverrides:
        return PayrollOverrides.from_lists(
            skipped_vacation_ids=self.skipped_vacation_ids,
            skipped_loan_ids=self.skipped_loan_ids,
            skipped_event_ids=self.skipped_event_ids,
        )


class DeductionsIn(BaseModel):
    """Flat statutory deductions applied to every entry."""
    tax_deduction: Decimal = Field(Decimal("0"), ge=0)
    social_security_deduction: Decimal = Field(Decimal("0"), ge=0)
    health_insurance_deduction: Decimal = Field(Decimal("0"), ge=0)


class PayrollGenerateRequest(BaseModel):
    """Generate or preview a payroll run."""
    period: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    overrides: OverridesIn = Field(default_factory=OverridesIn)
    deductions: Optional[DeductionsIn] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class AttachVacationRequest(BaseModel):
    """Vacation discovered after a run was generated."""
    start_date: date
    end_date: date
    leave_type: LeaveTypeEnum = "annual"
    deduct_from_salary: bool = False
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


# ===========================================
# RUN AND ENTRY RESPONSES
# ===========================================

class AllowanceLine(BaseModel):
    """One allowance behind an entry's bonus amount."""
    event_id: UUID
    title: str
    amount: Decimal
    source: str


class PayrollEntryResponse(BaseModel):
    """Persisted payroll entry."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    contract_salary: Decimal
    base_salary: Decimal
    bonus_amount: Decimal
    tax_deduction: Decimal
    social_security_deduction: Decimal
    health_insurance_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    working_days: int
    actual_working_days: int
    vacation_days: int
    gross_pay: Decimal
    net_pay: Decimal
    adjustment_reason: Optional[str] = None
    allowances: List[AllowanceLine] = Field(default_factory=list)


class PayrollRunSummary(BaseModel):
    """Run header without entries."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period: str
    start_date: date
    end_date: date
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal
    status: PayrollRunStatus
    created_at: datetime


class PayrollRunResponse(PayrollRunSummary):
    """Run with entries and the skip-list it was generated with."""
    overrides: dict = Field(default_factory=dict)
    entries: List[PayrollEntryResponse] = Field(default_factory=list)
    allowance_keys: List[str] = Field(default_factory=list)

    @classmethod
    def from_run(
        cls,
        run: PayrollRun,
        allowances: Optional[Dict[UUID, List[EventConsideration]]] = None,
    ) -> "PayrollRunResponse":
        """Run response with each entry's allowance breakdown attached."""
        allowances = allowances or {}
        response = cls.model_validate(run)
        for entry in response.entries:
            entry.allowances = [
                AllowanceLine(event_id=a.event_id, title=a.title, amount=a.amount, source=a.source)
                for a in allowances.get(entry.employee_id, [])
            ]
        response.allowance_keys = sorted({
            line.title for entry in response.entries for line in entry.allowances
        })
        return response


class PayrollRunListResponse(BaseModel):
    items: List[PayrollRunSummary]
    total: int
    page: int
    per_page: int
    pages: int


class ConflictingRun(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period: str
    start_date: date
    end_date: date


# ===========================================
# PREVIEW
# ===========================================

class VacationConsidered(BaseModel):
    vacation_id: UUID
    start_date: date
    end_date: date
    leave_type: str
    deduct_from_salary: bool
    days_in_period: int


class LoanConsidered(BaseModel):
    loan_id: UUID
    monthly_deduction: Decimal
    remaining_before: Decimal
    installment: Decimal
    remaining_after: Decimal
    resulting_status: str


class EventConsidered(BaseModel):
    event_id: UUID
    event_type: str
    title: str
    effect: str
    amount: Decimal
    occurrence_date: date
    source: str


class EmployeePreview(BaseModel):
    """Computed figures for one employee plus what went into them."""
    employee_id: UUID
    employee_code: str
    employee_name: str
    contract_salary: Decimal
    base_salary: Decimal
    bonus_amount: Decimal
    tax_deduction: Decimal
    social_security_deduction: Decimal
    health_insurance_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    working_days: int
    actual_working_days: int
    vacation_days: int
    gross_pay: Decimal
    net_pay: Decimal
    adjustment_reason: Optional[str] = None
    vacations: List[VacationConsidered] = Field(default_factory=list)
    loans: List[LoanConsidered] = Field(default_factory=list)
    events: List[EventConsidered] = Field(default_factory=list)
    allowances: List[EventConsidered] = Field(default_factory=list)

    @classmethod
    def from_plan(cls, plan: EmployeePlan) -> "EmployeePreview":
        result = plan.result
        return cls(
            **result.figures(),
            total_deductions=result.total_deductions,
            employee_code=plan.employee.employee_code,
            employee_name=plan.employee.full_name,
            vacations=[
                VacationConsidered(
                    vacation_id=v.vacation_id,
                    start_date=v.start_date,
                    end_date=v.end_date,
                    leave_type=v.leave_type.value,
                    deduct_from_salary=v.deduct_from_salary,
                    days_in_period=v.days_in_period,
                )
                for v in plan.vacation.vacations
            ],
            loans=[
                LoanConsidered(
                    loan_id=a.loan_id,
                    monthly_deduction=a.monthly_deduction,
                    remaining_before=a.remaining_before,
                    installment=a.installment,
                    remaining_after=a.remaining_after,
                    resulting_status=a.resulting_status.value,
                )
                for a in plan.loans
            ],
            events=[_event_considered(e) for e in plan.events.events],
            allowances=[_event_considered(e) for e in plan.events.allowances],
        )


def _event_considered(event) -> EventConsidered:
    return EventConsidered(
        event_id=event.event_id,
        event_type=event.event_type.value,
        title=event.title,
        effect=event.effect.value,
        amount=event.amount,
        occurrence_date=event.occurrence_date,
        source=event.source,
    )


class PayrollPreviewResponse(BaseModel):
    """Read-only payroll computation."""
    period: str
    start_date: date
    end_date: date
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal
    employees: List[EmployeePreview]
    conflict: Optional[ConflictingRun] = None

    @classmethod
    def from_plan(cls, plan: PayrollPlan) -> "PayrollPreviewResponse":
        return cls(
            period=plan.period_label,
            start_date=plan.period.start,
            end_date=plan.period.end,
            gross_amount=plan.totals.gross_amount,
            total_deductions=plan.totals.total_deductions,
            net_amount=plan.totals.net_amount,
            employees=[EmployeePreview.from_plan(e) for e in plan.employees],
            conflict=ConflictingRun.model_validate(plan.conflict) if plan.conflict else None,
        )


# ===========================================
# VACATION ATTACH
# ===========================================

class VacationRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    start_date: date
    end_date: date
    days: int
    leave_type: LeaveType
    deduct_from_salary: bool
    status: VacationStatus
    reason: Optional[str] = None
    linked_payroll_entry_id: Optional[UUID] = None


class AttachVacationResponse(BaseModel):
    vacation: VacationRequestResponse
    entry: PayrollEntryResponse
