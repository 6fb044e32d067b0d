"""
PayMaster - Notification Service

Notification sink for payroll. Creates persistent notification records;
delivery transport is out of scope.
"""

import uuid
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import (
    Notification as NotificationModel,
    NotificationType,
    NotificationPriority,
)
from app.utils.error_handling import NotificationFailureException

logger = logging.getLogger(__name__)


# Title, message template and priority per notification type
NOTIFICATION_TEMPLATES = {
    NotificationType.VACATION_APPROVED: (
        "Vacation Deduction Applied",
        "{vacation_days} vacation days deducted from {period} payroll",
        NotificationPriority.MEDIUM,
    ),
    NotificationType.LOAN_DEDUCTION: (
        "Loan Deduction Applied",
        "{amount} {currency} deducted for loan repayment in {period}",
        NotificationPriority.LOW,
    ),
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class NotificationService:
    """Service for creating notification records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(
        self,
        employee_id: uuid.UUID,
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        payroll_run_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        expiry_date: Optional[date] = None,
    ) -> NotificationModel:
        """
        Create and commit a notification.

        Raises:
            NotificationFailureException: the record could not be stored;
                the session is rolled back first
        """
        notification = NotificationModel(
            employee_id=employee_id,
            payroll_run_id=payroll_run_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            payload=_json_safe(payload or {}),
            expiry_date=expiry_date,
            is_read=False,
        )

        try:
            self.db.add(notification)
            await self.db.flush()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise NotificationFailureException(
                f"Failed to create {notification_type.value} notification for employee {employee_id}",
                original_error=e,
            ) from e

        logger.info(f"Notification created for employee {employee_id}: {title}")
        return notification

    async def emit(
        self,
        notification_type: NotificationType,
        employee_id: uuid.UUID,
        payload: Dict[str, Any],
    ) -> NotificationModel:
        """
        Sink entry point: render the type's template from ``payload``.

        ``payload`` must carry the template fields; ``payroll_run_id`` and
        ``expiry_date`` are lifted onto the record when present.
        """
        title, template, priority = NOTIFICATION_TEMPLATES[notification_type]
        try:
            message = template.format(**payload)
        except KeyError as e:
            raise NotificationFailureException(
                f"Missing field {e} for {notification_type.value} notification",
                original_error=e,
            ) from e

        return await self.create_notification(
            employee_id=employee_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            payroll_run_id=payload.get("payroll_run_id"),
            payload=payload,
            expiry_date=payload.get("expiry_date"),
        )

    async def get_employee_notifications(
        self,
        employee_id: uuid.UUID,
        notification_type: Optional[NotificationType] = None,
    ) -> List[NotificationModel]:
        query = select(NotificationModel).where(NotificationModel.employee_id == employee_id)
        if notification_type:
            query = query.where(NotificationModel.notification_type == notification_type)
        result = await self.db.execute(query.order_by(NotificationModel.created_at))
        return list(result.scalars().all())
