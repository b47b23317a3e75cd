# exams/admin.py

from django.contrib import admin
from .forms import ExamForm
from .models import Exam, Score, Marksheet, MarksheetSubject


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    form = ExamForm
    list_display = ('name', 'exam_type', 'class_instance', 'subject', 'term', 'academic_session', 'total_marks')
    list_filter = ('campus', 'term', 'academic_session', 'exam_type')
    search_fields = ('name',)


@admin.register(Score)
class ScoreAdmin(admin.ModelAdmin):
    list_display = ('student', 'exam', 'marks_obtained', 'is_present', 'entered_by')
    list_filter = ('campus', 'subject', 'is_present')
    search_fields = ('student__username', 'student__email', 'exam__name')
    raw_id_fields = ('student', 'exam', 'entered_by')
    readonly_fields = ('class_instance', 'subject', 'campus')

    def get_readonly_fields(self, request, obj=None):
        # a saved score stays with its exam and student
        if obj is not None:
            return self.readonly_fields + ('student', 'exam')
        return self.readonly_fields


class MarksheetSubjectInline(admin.TabularInline):
    model = MarksheetSubject
    extra = 0
    can_delete = False
    readonly_fields = ('subject', 'marks_obtained', 'total_marks', 'percentage', 'grade', 'position')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Marksheet)
class MarksheetAdmin(admin.ModelAdmin):
    """Marksheets are derived from scores and never edited by hand"""

    list_display = (
        'student', 'class_instance', 'term', 'academic_session',
        'overall_percentage', 'overall_grade', 'rank',
    )
    list_filter = ('campus', 'term', 'academic_session', 'overall_grade', 'remark_source')
    search_fields = ('student__username', 'student__email')
    inlines = (MarksheetSubjectInline,)

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False
