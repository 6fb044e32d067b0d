"""
Error Handling Module for PayMaster

This module provides centralized error handling with:
- Custom exception hierarchy for the payroll engine
- Standardized error responses
- Error logging
- Database error translation
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("paymaster.errors")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_OVERRIDE = "INVALID_OVERRIDE"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    PAYROLL_RUN_NOT_FOUND = "PAYROLL_RUN_NOT_FOUND"
    PAYROLL_ENTRY_NOT_FOUND = "PAYROLL_ENTRY_NOT_FOUND"
    LOAN_NOT_FOUND = "LOAN_NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    AGGREGATION_ERROR = "AGGREGATION_ERROR"
    LOAN_POLICY_VIOLATION = "LOAN_POLICY_VIOLATION"
    LOAN_SCHEDULE_ERROR = "LOAN_SCHEDULE_ERROR"
    NO_ACTIVE_EMPLOYEES = "NO_ACTIVE_EMPLOYEES"
    TOTALS_UNBALANCED = "TOTALS_UNBALANCED"

    # Side-channel errors
    NOTIFICATION_FAILURE = "NOTIFICATION_FAILURE"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _utc_timestamp()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: date, end_date: date, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidOverrideException(ValidationException):
    """Override skip-list refers to records that do not exist"""

    def __init__(self, kind: str, unknown_ids: List[UUID]):
        super().__init__(
            message=f"Unknown {kind} ids in overrides: {', '.join(str(i) for i in unknown_ids)}",
            field=f"overrides.skipped_{kind}_ids",
            code=ErrorCode.INVALID_OVERRIDE,
            details={"kind": kind, "unknown_ids": [str(i) for i in unknown_ids]},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class PayrollRunNotFoundException(NotFoundException):
    """Payroll run not found"""

    def __init__(self, run_id: Union[str, UUID]):
        super().__init__(
            resource_type="PayrollRun",
            resource_id=run_id,
            code=ErrorCode.PAYROLL_RUN_NOT_FOUND,
        )


class PayrollEntryNotFoundException(NotFoundException):
    """Payroll entry not found"""

    def __init__(self, entry_id: Union[str, UUID]):
        super().__init__(
            resource_type="PayrollEntry",
            resource_id=entry_id,
            code=ErrorCode.PAYROLL_ENTRY_NOT_FOUND,
        )


class LoanNotFoundException(NotFoundException):
    """Loan not found"""

    def __init__(self, loan_id: Union[str, UUID]):
        super().__init__(
            resource_type="Loan",
            resource_id=loan_id,
            code=ErrorCode.LOAN_NOT_FOUND,
        )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""

    def __init__(self, employee_id: Union[str, UUID]):
        super().__init__(
            resource_type="Employee",
            resource_id=employee_id,
            code=ErrorCode.EMPLOYEE_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class PayrollPeriodConflictException(ConflictException):
    """A payroll run already covers part of the requested period"""

    def __init__(self, conflicting_run: Dict[str, Any]):
        super().__init__(
            message="Payroll run already exists for this period",
            resource_type="PayrollRun",
            code=ErrorCode.ALREADY_EXISTS,
            details={"conflicting_run": conflicting_run},
        )
        self.conflicting_run = conflicting_run


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class PayrollAggregationException(BusinessRuleException):
    """A single bad input record fails the whole run"""

    def __init__(
        self,
        message: str,
        record_type: str,
        record_id: Optional[Union[str, UUID]] = None,
        details: Optional[Dict[str, Any]] = None,
        rule: str = "AGGREGATION_INPUT_VALID",
        code: ErrorCode = ErrorCode.AGGREGATION_ERROR,
    ):
        _details = details or {}
        _details["record_type"] = record_type
        if record_id is not None:
            _details["record_id"] = str(record_id)
        super().__init__(
            message=message,
            rule=rule,
            code=code,
            details=_details,
        )


class NoActiveEmployeesException(BusinessRuleException):
    """Nothing to pay"""

    def __init__(self):
        super().__init__(
            message="No active employees found for payroll processing",
            rule="ACTIVE_EMPLOYEES_REQUIRED",
            code=ErrorCode.NO_ACTIVE_EMPLOYEES,
        )


class LoanPolicyException(BusinessRuleException):
    """Loan terms violate lending policy"""

    def __init__(self, violations: List[str], warnings: Optional[List[str]] = None):
        super().__init__(
            message="Loan violates lending policy: " + "; ".join(violations),
            rule="LOAN_POLICY",
            code=ErrorCode.LOAN_POLICY_VIOLATION,
            details={"violations": violations, "warnings": warnings or []},
        )


class LoanScheduleException(BusinessRuleException):
    """Amortization schedule cannot be produced"""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            rule="PAYMENT_COVERS_INTEREST",
            code=ErrorCode.LOAN_SCHEDULE_ERROR,
        )


# ============================================================================
# Side-channel Exceptions
# ============================================================================

class NotificationFailureException(AppException):
    """
    Notification record could not be created.

    Raised by the notification sink and caught by the payroll emitter;
    it never reaches an HTTP response.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            code=ErrorCode.NOTIFICATION_FAILURE,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
        )


# ============================================================================
# Database Exceptions
# ============================================================================

class DatabaseException(AppException):
    """Database error exception"""

    def __init__(
        self,
        message: str = "A database error occurred",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        original_error: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            original_error=original_error,
            details=details,
        )


class PersistenceFailureException(DatabaseException):
    """Transactional payroll write failed and was rolled back"""

    def __init__(self, operation: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Failed to persist {operation}; all changes were rolled back",
            code=ErrorCode.PERSISTENCE_FAILURE,
            original_error=original_error,
            details={"operation": operation, "retryable": True},
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": _utc_timestamp(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    # Map status codes to error codes
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    # Internal details stay in the log
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ValidationException",
    "InvalidDateRangeException",
    "InvalidAmountException",
    "InvalidOverrideException",

    # Resource
    "NotFoundException",
    "PayrollRunNotFoundException",
    "PayrollEntryNotFoundException",
    "LoanNotFoundException",
    "EmployeeNotFoundException",
    "ConflictException",
    "PayrollPeriodConflictException",

    # Business Logic
    "BusinessRuleException",
    "PayrollAggregationException",
    "NoActiveEmployeesException",
    "LoanPolicyException",
    "LoanScheduleException",

    # Side channel
    "NotificationFailureException",

    # Database
    "DatabaseException",
    "PersistenceFailureException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",
]
