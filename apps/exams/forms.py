# exams/forms.py
from django import forms
from django.db.models import Max
from decimal import Decimal

from academics.models import Class, Subject
from core.models import Campus
from .models import Exam, TERM_CHOICES


class ExamForm(forms.ModelForm):

    IDENTITY_FIELDS = ('term', 'academic_session', 'class_instance', 'subject', 'campus', 'exam_type')

    total_marks = forms.DecimalField(max_digits=7, decimal_places=2, min_value=Decimal('0.01'))

    class Meta:
        model = Exam
        fields = ['name', 'term', 'academic_session', 'class_instance', 'subject', 'campus', 'total_marks', 'exam_type']

    def __init__(self, *args, admin_campus=None, **kwargs):
        self.admin_campus = admin_campus
        super().__init__(*args, **kwargs)
        self.fields['campus'].queryset = Campus.objects.filter(is_active=True)
        self.fields['class_instance'].queryset = Class.objects.filter(is_active=True)
        self.fields['subject'].queryset = Subject.objects.all()

    def clean(self):
        cleaned_data = super().clean()
        campus = cleaned_data.get('campus')
        class_instance = cleaned_data.get('class_instance')
        subject = cleaned_data.get('subject')

        if self.admin_campus is not None and campus is not None and campus.pk != self.admin_campus.pk:
            self.add_error('campus', "You can only manage exams of your own campus.")

        if campus is not None and class_instance is not None and class_instance.campus_id != campus.pk:
            self.add_error('class_instance', "Class does not belong to this campus.")

        if class_instance is not None and subject is not None:
            if not class_instance.subjects.filter(pk=subject.pk).exists():
                self.add_error('subject', "Subject is not part of the class curriculum.")

        if self.instance.pk and self.instance.scores.exists():
            changed = [name for name in self.IDENTITY_FIELDS if name in self.changed_data]
            if changed:
                raise forms.ValidationError(
                    f"Exam already has scores; {', '.join(changed)} can no longer change."
                )

            total_marks = cleaned_data.get('total_marks')
            highest = self.instance.scores.aggregate(highest=Max('marks_obtained'))['highest']
            if total_marks is not None and highest is not None and total_marks < highest:
                self.add_error('total_marks', f"Total marks cannot be below the highest recorded score ({highest}).")

        return cleaned_data


class ScoreUpdateForm(forms.Form):
    marks_obtained = forms.DecimalField(max_digits=7, decimal_places=2, min_value=0, required=False)
    remarks = forms.CharField(max_length=255, required=False)
    is_present = forms.NullBooleanField(required=False)


class CohortForm(forms.Form):
    """Selects one class/term/session cohort"""
    class_instance = forms.ModelChoiceField(queryset=Class.objects.all())
    term = forms.ChoiceField(choices=TERM_CHOICES)
    academic_session = forms.CharField(max_length=9)
