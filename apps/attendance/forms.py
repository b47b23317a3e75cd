# attendance/forms.py
from django import forms

from academics.models import Class
from accounts.models import User
from core.utils import get_school_today
from .models import StudentAttendance, TeacherAttendance, STATUS_CHOICES


class BulkAttendanceForm(forms.Form):
    class_instance = forms.ModelChoiceField(queryset=Class.objects.filter(is_active=True))
    date = forms.DateField(required=False)

    def clean_date(self):
        value = self.cleaned_data.get('date')
        if value and value > get_school_today():
            raise forms.ValidationError("Attendance cannot be marked for a future date.")
        return value


class StudentAttendanceForm(forms.ModelForm):
    class Meta:
        model = StudentAttendance
        fields = ['status']


class TeacherCheckInForm(forms.Form):
    teacher = forms.ModelChoiceField(
        queryset=User.objects.filter(role=User.TEACHER, is_active=True),
        required=False
    )
    status = forms.ChoiceField(choices=STATUS_CHOICES, required=False)


class TeacherAttendanceForm(forms.ModelForm):
    class Meta:
        model = TeacherAttendance
        fields = ['status', 'check_in', 'check_out']

    def clean(self):
        cleaned_data = super().clean()
        check_in = cleaned_data.get('check_in')
        check_out = cleaned_data.get('check_out')
        if check_in and check_out and check_out < check_in:
            self.add_error('check_out', "Check-out cannot be before check-in.")
        return cleaned_data


class MonthForm(forms.Form):
    """?year=&month= of a report, defaulting to the current month"""
    year = forms.IntegerField(min_value=2000, max_value=2100, required=False)
    month = forms.IntegerField(min_value=1, max_value=12, required=False)
    class_instance = forms.ModelChoiceField(queryset=Class.objects.all(), required=False)

    def clean(self):
        cleaned_data = super().clean()
        today = get_school_today()
        cleaned_data['year'] = cleaned_data.get('year') or today.year
        cleaned_data['month'] = cleaned_data.get('month') or today.month
        return cleaned_data
