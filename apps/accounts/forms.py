# accounts/forms.py
from django import forms
from django.contrib.auth import get_user_model

User = get_user_model()


class LoginForm(forms.Form):
    email = forms.CharField(max_length=254, help_text="Email address or username")
    password = forms.CharField(strip=False)


class UserCreateForm(forms.ModelForm):
    """Account creation by an administrator"""

    password = forms.CharField(min_length=8, strip=False)

    class Meta:
        model = User
        fields = [
            'username', 'email', 'first_name', 'last_name', 'role',
            'gender', 'contact', 'address', 'date_of_birth', 'campus',
        ]

    def __init__(self, *args, creator=None, **kwargs):
        self.creator = creator
        super().__init__(*args, **kwargs)

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("A user with this email already exists.")
        return email

    def clean(self):
        cleaned_data = super().clean()
        role = cleaned_data.get('role')
        campus = cleaned_data.get('campus')

        if campus is not None and not campus.is_active:
            self.add_error('campus', "Campus is not active.")

        if self.creator is not None and self.creator.is_campus_admin:
            # Campus admins only staff their own campus with teachers and students
            if role not in (User.TEACHER, User.STUDENT):
                self.add_error('role', "Campus admins can only create teachers and students.")
            admin_campus = self.creator.get_scope_campus()
            if admin_campus is None:
                raise forms.ValidationError("No campus assigned to this admin.")
            cleaned_data['campus'] = admin_campus

        if role in (User.TEACHER, User.STUDENT) and cleaned_data.get('campus') is None:
            self.add_error('campus', "Teachers and students must belong to a campus.")

        return cleaned_data

    def save(self, commit=True):
        user = super().save(commit=False)
        user.campus = self.cleaned_data.get('campus')
        user.set_password(self.cleaned_data['password'])
        if commit:
            user.save()
        return user
