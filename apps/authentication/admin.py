"""
Authentication Admin
"""

from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'name', 'employee_id', 'role', 'department', 'manager', 'hod', 'status', 'last_login']
    list_filter = ['role', 'status', 'department', 'is_staff', 'is_superuser']
    search_fields = ['email', 'name', 'employee_id']
    ordering = ['email']
    raw_id_fields = ['manager', 'hod', 'org_unit']
    readonly_fields = ['date_joined', 'last_login', 'updated_at']
    fieldsets = (
        (None, {'fields': ('email', 'name', 'employee_id')}),
        ('Organisation', {'fields': ('role', 'department', 'org_unit', 'manager', 'hod', 'status')}),
        ('Permissions', {'fields': ('is_staff', 'is_superuser')}),
        ('Important dates', {'fields': ('last_login', 'date_joined', 'updated_at')}),
    )
