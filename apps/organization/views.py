"""Organisation views"""
import logging

from rest_framework import viewsets
from rest_framework.exceptions import ValidationError

from apps.core.permissions import IsAdminOrReadOnly

from .filters import OrgUnitFilter
from .models import OrgUnit
from .serializers import OrgUnitSerializer

logger = logging.getLogger(__name__)


class OrgUnitViewSet(viewsets.ModelViewSet):
    """Org units; reads for everyone signed in, writes for admins."""
    queryset = OrgUnit.objects.select_related('parent', 'manager')
    serializer_class = OrgUnitSerializer
    permission_classes = [IsAdminOrReadOnly]
    filterset_class = OrgUnitFilter
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'type', 'created_at']

    def perform_create(self, serializer):
        unit = serializer.save()
        logger.info('Org unit %s (%s) created by %s', unit.id, unit.type, self.request.user.id)

    def perform_destroy(self, instance):
        if instance.children.exists():
            raise ValidationError('Remove or move child units first')
        instance.delete()
