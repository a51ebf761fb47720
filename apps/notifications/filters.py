"""Notifications app filters."""
import django_filters

from .models import Notification


class NotificationFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Notification.Status.choices)
    type = django_filters.ChoiceFilter(choices=Notification.Type.choices)
    priority = django_filters.ChoiceFilter(choices=Notification.Priority.choices)
    entity_type = django_filters.CharFilter()
    entity_id = django_filters.UUIDFilter()

    class Meta:
        model = Notification
        fields = ['status', 'type', 'priority']
