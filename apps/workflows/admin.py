"""Workflows Admin"""
from django.contrib import admin

from .models import Approval, ChangeRequest, ProxyAction


@admin.register(Approval)
class ApprovalAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_id', 'level', 'approver', 'status', 'is_proxy', 'created_at', 'decided_at']
    list_filter = ['entity_type', 'status', 'level', 'is_proxy']
    search_fields = ['entity_id', 'approver__email', 'approver__name', 'comment']
    raw_id_fields = ['approver', 'submitted_by', 'decided_by', 'created_by', 'updated_by']
    readonly_fields = ['created_at', 'updated_at', 'decided_at']
    date_hierarchy = 'created_at'


@admin.register(ProxyAction)
class ProxyActionAdmin(admin.ModelAdmin):
    list_display = ['action_type', 'entity_type', 'entity_id', 'performed_by', 'created_at']
    list_filter = ['action_type', 'entity_type']
    search_fields = ['entity_id', 'performed_by__email', 'reason']
    raw_id_fields = ['performed_by', 'created_by', 'updated_by']
    readonly_fields = ['created_at', 'updated_at', 'metadata']

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ChangeRequest)
class ChangeRequestAdmin(admin.ModelAdmin):
    list_display = ['kpi', 'change_type', 'status', 'requested_by', 'created_at', 'resolved_at']
    list_filter = ['status', 'change_type']
    search_fields = ['kpi__title', 'requested_by__email', 'reason']
    raw_id_fields = ['kpi', 'requested_by', 'resolved_by', 'created_by', 'updated_by']
    readonly_fields = ['created_at', 'updated_at', 'resolved_at']
