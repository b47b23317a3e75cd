# accounts/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from django.urls import reverse

from .models import User


@admin.register(User)
class SchoolUserAdmin(BaseUserAdmin):
    list_display = ('email', 'username', 'display_name', 'role', 'campus_link', 'is_active', 'last_login')
    list_filter = ('role', 'is_active', 'campus')
    list_select_related = ('campus',)
    search_fields = ('email', 'username', 'first_name', 'last_name', 'contact')
    ordering = ('role', 'email')
    readonly_fields = ('last_login', 'date_joined')

    fieldsets = (
        (None, {'fields': ('email', 'username', 'password')}),
        ('Role', {'fields': ('role', 'campus')}),
        ('Profile', {'fields': ('first_name', 'last_name', 'gender', 'date_of_birth', 'contact', 'address')}),
        ('Access', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        ('History', {'fields': ('last_login', 'date_joined'), 'classes': ('collapse',)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Role', {'fields': ('email', 'role', 'campus')}),
    )

    @admin.display(description='Name')
    def display_name(self, obj):
        return obj.display_name

    @admin.display(description='Campus', ordering='campus__code')
    def campus_link(self, obj):
        # campus admins are linked from the campus side
        campus = obj.get_scope_campus() if obj.is_campus_admin else obj.campus
        if campus is None:
            return '-'
        return format_html('<a href="{}">{}</a>', reverse('admin:core_campus_change', args=[campus.pk]), campus.code)
