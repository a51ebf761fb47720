from django.contrib import admin

from .models import OrgUnit


@admin.register(OrgUnit)
class OrgUnitAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'parent', 'manager', 'is_deleted']
    list_filter = ['type', 'is_deleted']
    search_fields = ['name']
    raw_id_fields = ['parent', 'manager']
