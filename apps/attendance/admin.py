# attendance/admin.py

from django.contrib import admin
from .models import StudentAttendance, TeacherAttendance


@admin.register(StudentAttendance)
class StudentAttendanceAdmin(admin.ModelAdmin):
    list_display = ('enrollment', 'date', 'status', 'class_instance', 'marked_by')
    list_filter = ('campus', 'status', 'date')
    date_hierarchy = 'date'
    raw_id_fields = ('enrollment', 'class_instance', 'marked_by')


@admin.register(TeacherAttendance)
class TeacherAttendanceAdmin(admin.ModelAdmin):
    list_display = ('teacher', 'date', 'status', 'check_in', 'check_out')
    list_filter = ('campus', 'status', 'date')
    date_hierarchy = 'date'
    raw_id_fields = ('teacher', 'marked_by')
