# academics/admin.py

from django.contrib import admin
from .models import Subject, Class, StudentEnrollment, TeachingAssignment, TeacherAssignment


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'code')


@admin.register(Class)
class ClassAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'campus', 'class_teacher', 'is_active')
    list_filter = ('campus', 'grade', 'section', 'is_active')
    filter_horizontal = ('subjects',)
    raw_id_fields = ('class_teacher',)


@admin.register(StudentEnrollment)
class StudentEnrollmentAdmin(admin.ModelAdmin):
    list_display = ('student', 'class_instance', 'roll_number', 'academic_session', 'is_active')
    list_filter = ('campus', 'academic_session', 'is_active')
    search_fields = ('student__username', 'student__email', 'roll_number')
    raw_id_fields = ('student', 'class_instance')


class TeacherAssignmentInline(admin.TabularInline):
    model = TeacherAssignment
    extra = 0
    raw_id_fields = ('teacher',)


@admin.register(TeachingAssignment)
class TeachingAssignmentAdmin(admin.ModelAdmin):
    list_display = ('class_instance', 'subject', 'campus', 'is_active')
    list_filter = ('campus', 'is_active')
    inlines = (TeacherAssignmentInline,)
