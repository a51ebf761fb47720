from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'type', 'title', 'priority', 'status', 'delivery_status', 'created_at']
    list_filter = ['type', 'status', 'priority', 'channel', 'delivery_status']
    search_fields = ['recipient__email', 'title']
    raw_id_fields = ['recipient']
    readonly_fields = ['metadata', 'delivery_attempts', 'sent_at', 'read_at']
