"""
PayMaster - Payroll Notification Emitter

Runs after a payroll run commits. Emits at most one vacation_approved
and one loan_deduction notification per employee per run, however many
vacations or loans contributed. Failures are logged and swallowed; the
committed run is never affected.
"""

import uuid
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import NotificationType
from app.services.notification_service import NotificationService
from app.services.payroll_plan import PayrollPlan
from app.utils.error_handling import NotificationFailureException

logger = logging.getLogger(__name__)


class PayrollNotificationEmitter:

    def __init__(self, db: AsyncSession, currency: str = "KWD"):
        self.sink = NotificationService(db)
        self.currency = currency

    async def emit_for_run(self, run_id: uuid.UUID, plan: PayrollPlan) -> int:
        """Returns the number of notifications created."""
        created = 0
        for employee_plan in plan.employees:
            employee_id = employee_plan.employee_id
            base = {
                "payroll_run_id": run_id,
                "period": plan.period_label,
                "expiry_date": plan.period.end,
            }

            if employee_plan.notify_vacation:
                payload = {
                    **base,
                    "vacation_days": employee_plan.result.vacation_days,
                    "vacation_ids": [v.vacation_id for v in employee_plan.vacation.vacations],
                }
                created += await self._emit(NotificationType.VACATION_APPROVED, employee_id, payload)

            if employee_plan.notify_loan:
                payload = {
                    **base,
                    "amount": employee_plan.result.loan_deduction,
                    "currency": self.currency,
                    "loan_ids": [a.loan_id for a in employee_plan.loans if a.has_installment],
                }
                created += await self._emit(NotificationType.LOAN_DEDUCTION, employee_id, payload)

        return created

    async def _emit(self, notification_type: NotificationType, employee_id: uuid.UUID, payload: dict) -> int:
        try:
            await self.sink.emit(notification_type, employee_id, payload)
            return 1
        except NotificationFailureException as e:
            logger.error(
                f"Notification {notification_type.value} for employee {employee_id} failed: {e.message}",
                exc_info=e.original_error,
            )
            return 0
