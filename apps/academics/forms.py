# academics/forms.py
from django import forms
from django.contrib.auth import get_user_model

from core.models import Campus
from .models import Subject, Class, academic_session_validator

User = get_user_model()


class SubjectForm(forms.ModelForm):

    class Meta:
        model = Subject
        fields = ['name', 'code', 'description', 'is_active']


class ClassForm(forms.ModelForm):

    class Meta:
        model = Class
        fields = ['grade', 'section', 'campus', 'subjects', 'class_teacher']

    def __init__(self, *args, admin_campus=None, **kwargs):
        self.admin_campus = admin_campus
        super().__init__(*args, **kwargs)
        self.fields['campus'].queryset = Campus.objects.filter(is_active=True)
        self.fields['class_teacher'].required = False
        self.fields['subjects'].required = False

    def clean_section(self):
        return self.cleaned_data['section'].strip().upper()

    def clean(self):
        cleaned_data = super().clean()
        campus = cleaned_data.get('campus')

        if self.admin_campus is not None and campus is not None and campus.pk != self.admin_campus.pk:
            self.add_error('campus', "You can only manage classes of your own campus.")

        grade, section = cleaned_data.get('grade'), cleaned_data.get('section')
        if campus is not None and grade and section:
            clash = Class.objects.filter(campus=campus, grade=grade, section=section, is_active=True)
            if self.instance.pk:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise forms.ValidationError(f"Grade {grade}-{section} already exists on this campus.")

        teacher = cleaned_data.get('class_teacher')
        if teacher is not None:
            if teacher.role != User.TEACHER:
                self.add_error('class_teacher', "Class teacher must have the teacher role.")
            elif campus is not None and teacher.campus_id and teacher.campus_id != campus.pk:
                self.add_error('class_teacher', "Class teacher belongs to another campus.")

        return cleaned_data


class EnrollmentForm(forms.Form):
    student = forms.ModelChoiceField(queryset=User.objects.filter(role=User.STUDENT, is_active=True))
    class_instance = forms.ModelChoiceField(queryset=Class.objects.filter(is_active=True))
    roll_number = forms.CharField(max_length=20)
    academic_session = forms.CharField(max_length=9, validators=[academic_session_validator])


class TeacherAssignmentForm(forms.Form):
    teacher = forms.ModelChoiceField(queryset=User.objects.filter(role=User.TEACHER))
    campus = forms.ModelChoiceField(queryset=Campus.objects.filter(is_active=True))
    class_instance = forms.ModelChoiceField(queryset=Class.objects.all())
    subject = forms.ModelChoiceField(queryset=Subject.objects.all())

    def clean(self):
        cleaned_data = super().clean()
        campus = cleaned_data.get('campus')
        class_instance = cleaned_data.get('class_instance')
        if campus and class_instance and class_instance.campus_id != campus.pk:
            raise forms.ValidationError("Class does not belong to this campus.")
        return cleaned_data


class TeacherCampusForm(forms.Form):
    teacher = forms.ModelChoiceField(queryset=User.objects.filter(role=User.TEACHER))
    campus = forms.ModelChoiceField(queryset=Campus.objects.all())
