"""Channel routing for notifications"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from apps.notifications.consumers import user_group
from apps.notifications.models import Notification

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Route notifications to appropriate delivery channels."""

    def __init__(self) -> None:
        self.channel_handlers: Dict[str, Callable[[Notification], None]] = {
            Notification.Channel.IN_APP: self._send_in_app,
            Notification.Channel.EMAIL: self._send_email,
        }

    def dispatch(self, notification: Notification) -> bool:
        handler = self.channel_handlers.get(notification.channel, self._send_in_app)
        notification.delivery_attempts += 1
        notification.save(update_fields=['delivery_attempts'])
        try:
            handler(notification)
        except Exception as exc:
            logger.warning(
                "Notification %s delivery over %s failed: %s",
                notification.id,
                notification.channel,
                exc,
            )
            notification.mark_failed(str(exc))
            return False
        notification.mark_sent()
        self._push_realtime(notification)
        return True

    def _send_in_app(self, notification: Notification) -> None:
        # Stored row is the in-app notification; realtime push covers UX.
        return None

    def _send_email(self, notification: Notification) -> None:
        if not getattr(settings, 'DEFAULT_FROM_EMAIL', None):
            return
        recipient_email = notification.recipient.email
        if not recipient_email:
            raise ValueError('Recipient has no email address')
        send_mail(
            subject=notification.title,
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            fail_silently=False,
        )

    def _push_realtime(self, notification: Notification) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(
            user_group(notification.recipient_id),
            {
                'type': 'broadcast.notification',
                'event': 'notification.created',
                'payload': self._serialize(notification),
            },
        )

    def _serialize(self, notification: Notification) -> Dict[str, Any]:
        return {
            'id': str(notification.id),
            'type': notification.type,
            'title': notification.title,
            'message': notification.message,
            'priority': notification.priority,
            'status': notification.status,
            'action_url': notification.action_url,
            'entity_type': notification.entity_type,
            'entity_id': str(notification.entity_id) if notification.entity_id else None,
            'recipient_id': str(notification.recipient_id),
            'timestamp': timezone.now().isoformat(),
        }
