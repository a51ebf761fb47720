"""Celery task to deliver notifications"""
from __future__ import annotations

from celery import shared_task

from apps.notifications.models import Notification
from apps.notifications.services.notification_service import NotificationService


@shared_task(bind=True, name='notifications.send_notification')
def send_notification_task(self, notification_id: str):
    notification = (
        Notification.objects.select_related('recipient')
        .filter(id=notification_id)
        .first()
    )
    if not notification:
        return False
    return NotificationService.dispatch_immediately(notification)
