# core/forms.py
from django import forms
from django.contrib.auth import get_user_model

from .models import Campus

User = get_user_model()


class CampusForm(forms.ModelForm):

    class Meta:
        model = Campus
        fields = [
            'name', 'code', 'address', 'city', 'country',
            'latitude', 'longitude', 'phone', 'email', 'campus_admin',
        ]

    latitude = forms.DecimalField(max_digits=9, decimal_places=6, required=False)
    longitude = forms.DecimalField(max_digits=9, decimal_places=6, required=False)

    def clean_latitude(self):
        value = self.cleaned_data.get('latitude')
        return 0 if value is None else value

    def clean_longitude(self):
        value = self.cleaned_data.get('longitude')
        return 0 if value is None else value

    def clean_code(self):
        code = self.cleaned_data['code'].strip().upper()
        clash = Campus.objects.filter(code=code, is_active=True)
        if self.instance.pk:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise forms.ValidationError("Campus with this code already exists")
        return code

    def clean_campus_admin(self):
        admin = self.cleaned_data.get('campus_admin')
        if admin is None:
            return admin
        if admin.role != User.CAMPUS_ADMIN:
            raise forms.ValidationError("Selected user is not a campus admin")
        other = Campus.objects.filter(campus_admin=admin, is_active=True)
        if self.instance.pk:
            other = other.exclude(pk=self.instance.pk)
        if other.exists():
            raise forms.ValidationError("This admin already runs another campus")
        return admin
