"""Notification ViewSets"""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, permissions, viewsets
from rest_framework.decorators import action

from apps.core.exceptions import ResourceNotFoundException
from apps.core.response import success_response

from .filters import NotificationFilter
from .serializers import NotificationSerializer, UnreadCountSerializer
from .services import NotificationService


class NotificationViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """The signed-in user's own notifications"""
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_class = NotificationFilter
    search_fields = ['title', 'message']
    ordering_fields = ['created_at', 'priority', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        return NotificationService.for_user(self.request.user).order_by('-created_at')

    @action(detail=True, methods=['post'], url_path='read')
    def mark_read(self, request, pk=None):
        if not NotificationService.mark_as_read(pk, request.user):
            raise ResourceNotFoundException('Notification', pk)
        return success_response(message='Notification marked as read')

    @action(detail=False, methods=['post'], url_path='mark-all-read')
    def mark_all_read(self, request):
        updated = NotificationService.mark_all_as_read(request.user)
        return success_response(data={'updated': updated}, message=f'{updated} notification(s) marked as read')

    @extend_schema(responses=UnreadCountSerializer)
    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return success_response(data={'unread_count': NotificationService.unread_count(request.user)})
