"""Notification Serializers"""

from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    is_read = serializers.BooleanField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'type', 'title', 'message', 'priority', 'status', 'is_read',
            'channel', 'action_url', 'entity_type', 'entity_id', 'metadata',
            'delivery_status', 'sent_at', 'read_at', 'created_at',
        ]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    unread_count = serializers.IntegerField()
