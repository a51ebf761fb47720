"""Authentication app filters."""
import django_filters
from django.db.models import Q

from .models import User


class UserFilter(django_filters.FilterSet):
    role = django_filters.ChoiceFilter(choices=User.Role.choices)
    status = django_filters.ChoiceFilter(choices=User.Status.choices)
    department = django_filters.CharFilter(lookup_expr='iexact')
    manager = django_filters.UUIDFilter()
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = User
        fields = ['role', 'status', 'department', 'org_unit', 'manager']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(email__icontains=value) | Q(employee_id__icontains=value)
        )
