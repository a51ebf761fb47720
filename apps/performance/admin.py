from django.contrib import admin

from .models import Cycle, Evidence, KpiActual, KpiDefinition


@admin.register(Cycle)
class CycleAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'period_start', 'period_end', 'status']
    list_filter = ['status', 'type']
    search_fields = ['name']


@admin.register(KpiDefinition)
class KpiDefinitionAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'cycle', 'type', 'weight', 'status']
    list_filter = ['status', 'type', 'cycle']
    search_fields = ['title', 'owner__email', 'owner__name']
    raw_id_fields = ['owner', 'approved_by', 'created_by', 'updated_by']
    readonly_fields = ['status', 'submitted_at', 'approved_at']


class EvidenceInline(admin.TabularInline):
    model = Evidence
    extra = 0
    readonly_fields = ['file_name', 'mime_type', 'size', 'uploaded_by', 'created_at']


@admin.register(KpiActual)
class KpiActualAdmin(admin.ModelAdmin):
    list_display = ['kpi', 'owner', 'period', 'actual_value', 'percentage', 'score', 'status', 'ai_verification_status']
    list_filter = ['status', 'period', 'ai_verification_status']
    search_fields = ['kpi__title', 'owner__email']
    raw_id_fields = ['kpi', 'owner', 'approved_by', 'created_by', 'updated_by']
    readonly_fields = ['percentage', 'score', 'band', 'status', 'submitted_at', 'approved_at']
    inlines = [EvidenceInline]
