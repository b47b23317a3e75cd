# accounts/models.py

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.core.validators import RegexValidator
import uuid
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
)


# =============================================================================
# USER MODEL
# =============================================================================

class User(AbstractUser):
    """
    Single user table for every actor in the system.

    The role decides what a user may do:
    - super-admin:  everything, across campuses
    - campus-admin: everything inside the campus they administer
    - teacher:      grading and attendance for their class / assignments
    - student:      read access to their own results
    """

    SUPER_ADMIN = 'super-admin'
    CAMPUS_ADMIN = 'campus-admin'
    TEACHER = 'teacher'
    STUDENT = 'student'

    ROLE_CHOICES = [
        (SUPER_ADMIN, 'Super Admin'),
        (CAMPUS_ADMIN, 'Campus Admin'),
        (TEACHER, 'Teacher'),
        (STUDENT, 'Student'),
    ]

    ADMIN_ROLES = (SUPER_ADMIN, CAMPUS_ADMIN)
    STAFF_ROLES = (SUPER_ADMIN, CAMPUS_ADMIN, TEACHER)

    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    email = models.EmailField("Email Address", unique=True)

    role = models.CharField(
        "Role",
        max_length=20,
        choices=ROLE_CHOICES,
        default=STUDENT,
        db_index=True
    )

    gender = models.CharField("Gender", max_length=10, choices=GENDER_CHOICES, blank=True)
    contact = models.CharField("Contact Number", max_length=20, blank=True, validators=[phone_validator])
    address = models.CharField("Address", max_length=255, blank=True)
    date_of_birth = models.DateField("Date of Birth", null=True, blank=True)

    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.SET_NULL,
        related_name='members',
        null=True,
        blank=True,
        help_text="Campus of a teacher or student (campus admins are linked from Campus.campus_admin)"
    )

    objects = UserManager()

    class Meta:
        ordering = ['first_name', 'last_name', 'username']
        verbose_name = "User"
        verbose_name_plural = "Users"
        indexes = [
            models.Index(fields=['role', 'is_active']),
            models.Index(fields=['campus', 'role']),
        ]

    def __str__(self):
        return self.get_full_name() or self.username

    # -------------------------------------------------------------------------
    # ROLE HELPERS
    # -------------------------------------------------------------------------

    @property
    def is_super_admin(self):
        return self.role == self.SUPER_ADMIN or self.is_superuser

    @property
    def is_campus_admin(self):
        return self.role == self.CAMPUS_ADMIN

    @property
    def is_teacher(self):
        return self.role == self.TEACHER

    @property
    def is_student(self):
        return self.role == self.STUDENT

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def get_scope_campus(self):
        """
        The campus this user works in.

        Campus admins own their campus through Campus.campus_admin; everyone
        else carries it on the user row. Super admins have no single campus.
        """
        if self.is_super_admin:
            return None
        if self.is_campus_admin:
            from core.models import Campus
            return Campus.objects.filter(campus_admin=self, is_active=True).first()
        return self.campus

    def to_dict(self):
        return {
            'id': str(self.pk),
            'username': self.username,
            'name': self.display_name,
            'email': self.email,
            'role': self.role,
            'campus': str(self.campus_id) if self.campus_id else None,
            'is_active': self.is_active,
        }
