"""Notification orchestration services"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction
from django.utils import timezone

from apps.notifications.models import Notification
from .notification_router import NotificationRouter

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Fire-and-forget notifications for workflow events.

    ``notify`` never raises: a failure to record or queue a notification is
    logged and the calling workflow carries on.
    """

    router = NotificationRouter()

    @classmethod
    def notify(
        cls,
        *,
        recipient,
        notification_type: str = Notification.Type.SYSTEM,
        title: str,
        message: str = '',
        priority: str = Notification.Priority.MEDIUM,
        channel: str = Notification.Channel.IN_APP,
        action_url: str = '',
        entity_type: str = '',
        entity_id=None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        if recipient is None:
            return None
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    type=notification_type,
                    title=title[:255],
                    message=message,
                    priority=priority,
                    channel=channel,
                    action_url=action_url,
                    entity_type=entity_type or '',
                    entity_id=entity_id,
                    metadata=metadata or {},
                )
        except Exception:
            logger.exception("Failed to record %s notification for %s", notification_type, getattr(recipient, 'email', recipient))
            return None

        transaction.on_commit(lambda: cls._queue_delivery(notification))
        return notification

    @classmethod
    def notify_many(cls, recipients: Iterable, **payload) -> List[Notification]:
        created = []
        seen = set()
        for recipient in recipients:
            if recipient is None or recipient.pk in seen:
                continue
            seen.add(recipient.pk)
            result = cls.notify(recipient=recipient, **payload)
            if result:
                created.append(result)
        return created

    @classmethod
    def mark_as_read(cls, notification_id, user) -> bool:
        notification = cls.for_user(user).filter(id=notification_id).first()
        if not notification:
            return False
        notification.mark_read()
        return True

    @classmethod
    def mark_all_as_read(cls, user) -> int:
        return cls.for_user(user).filter(status=Notification.Status.UNREAD).update(
            status=Notification.Status.READ,
            read_at=timezone.now(),
            updated_at=timezone.now(),
        )

    @classmethod
    def unread_count(cls, user) -> int:
        return cls.for_user(user).filter(status=Notification.Status.UNREAD).count()

    @classmethod
    def dispatch_immediately(cls, notification: Notification) -> bool:
        return cls.router.dispatch(notification)

    @staticmethod
    def for_user(user):
        if not user or not user.is_authenticated:
            return Notification.objects.none()
        return Notification.objects.filter(recipient=user)

    @classmethod
    def _queue_delivery(cls, notification: Notification) -> None:
        from apps.notifications.tasks.send_notification_task import send_notification_task

        try:
            send_notification_task.delay(notification_id=str(notification.id))
        except Exception:
            logger.exception("Could not queue delivery of notification %s", notification.id)
