# core/admin.py

from django.contrib import admin
from .models import Campus


@admin.register(Campus)
class CampusAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'city', 'country', 'campus_admin', 'is_active', 'created_at')
    list_filter = ('is_active', 'country', 'city')
    search_fields = ('code', 'name', 'city', 'email')
    ordering = ('code',)
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('Campus', {
            'fields': ('name', 'code', 'campus_admin', 'is_active')
        }),
        ('Location', {
            'fields': ('address', 'city', 'country', 'latitude', 'longitude')
        }),
        ('Contact', {
            'fields': ('phone', 'email')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
