"""
PayMaster - Services Package

Business logic services.
"""

from app.services.employee_directory import EmployeeDirectory
from app.services.leave_service import VacationStore
from app.services.loan_service import LoanService
from app.services.event_service import EventService
from app.services.notification_service import NotificationService
from app.services.payroll_service import PayrollService
