"""
PayMaster - Database Models

All SQLAlchemy models for the application.
"""

from app.models.base import BaseModel, TimestampMixin
from app.models.payroll import (
    Employee,
    EmployeeStatus,
    PayrollRun,
    PayrollRunStatus,
    PayrollEntry,
)
from app.models.loan import Loan, LoanStatus, LoanPayment, LoanPaymentSource
from app.models.leave import VacationRequest, VacationStatus, LeaveType
from app.models.event import EmployeeEvent, EventType, EventStatus, RecurrenceType
from app.models.notification import Notification, NotificationType, NotificationPriority

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Employee",
    "EmployeeStatus",
    "PayrollRun",
    "PayrollRunStatus",
    "PayrollEntry",
    "Loan",
    "LoanStatus",
    "LoanPayment",
    "LoanPaymentSource",
    "VacationRequest",
    "VacationStatus",
    "LeaveType",
    "EmployeeEvent",
    "EventType",
    "EventStatus",
    "RecurrenceType",
    "Notification",
    "NotificationType",
    "NotificationPriority",
]
