"""Organisation filters"""
import django_filters

from .models import OrgUnit


class OrgUnitFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(choices=OrgUnit.UnitType.choices)
    parent = django_filters.UUIDFilter()
    root = django_filters.BooleanFilter(field_name='parent', lookup_expr='isnull')
    name = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = OrgUnit
        fields = ['type', 'parent', 'manager']
