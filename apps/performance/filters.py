"""Performance app filters."""
import django_filters

from apps.workflows.states import ACTUAL_STATUS_CHOICES, KPI_STATUS_CHOICES
from .models import Cycle, KpiActual, KpiDefinition


class CycleFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Cycle.Status.choices)
    type = django_filters.ChoiceFilter(choices=Cycle.CycleType.choices)
    name = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = Cycle
        fields = ['status', 'type']


class KpiDefinitionFilter(django_filters.FilterSet):
    cycle = django_filters.UUIDFilter()
    owner = django_filters.UUIDFilter()
    status = django_filters.ChoiceFilter(choices=KPI_STATUS_CHOICES)
    type = django_filters.ChoiceFilter(choices=KpiDefinition.KpiType.choices)
    department = django_filters.CharFilter(field_name='owner__department', lookup_expr='iexact')
    title = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = KpiDefinition
        fields = ['cycle', 'owner', 'status', 'type']


class KpiActualFilter(django_filters.FilterSet):
    kpi = django_filters.UUIDFilter()
    cycle = django_filters.UUIDFilter(field_name='kpi__cycle')
    owner = django_filters.UUIDFilter()
    period = django_filters.CharFilter()
    status = django_filters.ChoiceFilter(choices=ACTUAL_STATUS_CHOICES)
    ai_verification_status = django_filters.ChoiceFilter(choices=KpiActual.AiVerification.choices)

    class Meta:
        model = KpiActual
        fields = ['kpi', 'owner', 'period', 'status']
