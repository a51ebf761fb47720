"""Celery task reminding approvers of overdue approvals"""
from __future__ import annotations

import logging
from collections import defaultdict

from celery import shared_task

from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.workflows.models import Approval, overdue_days

logger = logging.getLogger(__name__)


@shared_task(bind=True, name='workflows.remind_overdue_approvals')
def remind_overdue_approvals_task(self):
    """One reminder per approver listing how many items are overdue. Advisory only."""
    overdue = Approval.objects.overdue().select_related('approver')
    per_approver = defaultdict(list)
    for approval in overdue:
        per_approver[approval.approver].append(approval)

    for approver, approvals in per_approver.items():
        NotificationService.notify(
            recipient=approver,
            notification_type=Notification.Type.REMINDER,
            title=f"{len(approvals)} approval(s) overdue",
            message=f"You have {len(approvals)} approval(s) pending for more than {overdue_days()} days.",
            priority=Notification.Priority.HIGH,
            action_url='/approvals',
            metadata={'approvals': [str(approval.id) for approval in approvals]},
        )

    logger.info("Overdue approval reminders sent to %s approver(s)", len(per_approver))
    return {'approvers': len(per_approver), 'overdue': sum(len(items) for items in per_approver.values())}
