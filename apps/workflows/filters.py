"""Workflows app filters."""
import django_filters

from .models import ENTITY_TYPE_CHOICES, Approval, ChangeRequest, ProxyAction


class ApprovalFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Approval.Status.choices)
    entity_type = django_filters.ChoiceFilter(choices=ENTITY_TYPE_CHOICES)
    entity_id = django_filters.UUIDFilter()
    level = django_filters.NumberFilter()
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Approval
        fields = ['status', 'entity_type', 'entity_id', 'level']


class ProxyActionFilter(django_filters.FilterSet):
    action_type = django_filters.ChoiceFilter(choices=ProxyAction.ActionType.choices)
    entity_type = django_filters.ChoiceFilter(choices=ENTITY_TYPE_CHOICES)
    entity_id = django_filters.UUIDFilter()
    performed_by = django_filters.UUIDFilter()

    class Meta:
        model = ProxyAction
        fields = ['action_type', 'entity_type', 'entity_id', 'performed_by']


class ChangeRequestFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=ChangeRequest.Status.choices)
    change_type = django_filters.ChoiceFilter(choices=ChangeRequest.ChangeType.choices)
    kpi = django_filters.UUIDFilter()

    class Meta:
        model = ChangeRequest
        fields = ['status', 'change_type', 'kpi']
