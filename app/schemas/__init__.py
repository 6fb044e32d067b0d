"""
PayMaster - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.payroll import (
    OverridesIn,
    DeductionsIn,
    PayrollGenerateRequest,
    AttachVacationRequest,
    PayrollEntryResponse,
    PayrollRunSummary,
    PayrollRunResponse,
    PayrollRunListResponse,
    PayrollPreviewResponse,
    AttachVacationResponse,
)
from app.schemas.loans import (
    LoanCreate,
    LoanResponse,
    ManualPaymentRequest,
    LoanPaymentResponse,
    LoanScheduleResponse,
    LoanReconciliationResponse,
)
