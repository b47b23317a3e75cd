# core/models.py

"""
Core models for the school network

A Campus is the tenant boundary: classes, enrollments, exams and attendance
all hang off exactly one campus.
"""

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django_countries.fields import CountryField
from utils.models import BaseModel
from accounts.models import phone_validator
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# CAMPUS MODEL
# =============================================================================

class Campus(BaseModel):
    """One physical school of the network, run by a campus admin"""

    name = models.CharField("Campus Name", max_length=200)
    code = models.CharField(
        "Campus Code",
        max_length=20,
        help_text="Short code, unique among active campuses (e.g. 'LHR-01')"
    )

    # -------------------------------------------------------------------------
    # LOCATION
    # -------------------------------------------------------------------------

    address = models.CharField("Address", max_length=255)
    city = models.CharField("City", max_length=100)
    country = CountryField("Country", blank=True, default='PK')
    latitude = models.DecimalField(
        "Latitude",
        max_digits=9,
        decimal_places=6,
        default=0,
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    longitude = models.DecimalField(
        "Longitude",
        max_digits=9,
        decimal_places=6,
        default=0,
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )

    # -------------------------------------------------------------------------
    # CONTACT
    # -------------------------------------------------------------------------

    phone = models.CharField("Phone", max_length=20, validators=[phone_validator])
    email = models.EmailField("Email")

    campus_admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Campus Admin",
        on_delete=models.SET_NULL,
        related_name="administered_campuses",
        null=True,
        blank=True,
        limit_choices_to={'role': 'campus-admin'}
    )

    is_active = models.BooleanField("Active", default=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Campus"
        verbose_name_plural = "Campuses"
        constraints = [
            # Deactivated campuses free up their code for reuse
            models.UniqueConstraint(
                fields=['code'],
                condition=Q(is_active=True),
                name='unique_active_campus_code'
            ),
        ]
        indexes = [
            models.Index(fields=['campus_admin', 'is_active']),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def get_member_counts(self):
        """Counts of active classes, teachers and students on this campus"""
        from academics.models import Class
        members = self.members.filter(is_active=True)
        return {
            'classes': Class.objects.filter(campus=self, is_active=True).count(),
            'teachers': members.filter(role='teacher').count(),
            'students': members.filter(role='student').count(),
        }

    def to_dict(self, with_counts=False):
        data = {
            'id': str(self.pk),
            'name': self.name,
            'code': self.code,
            'address': self.address,
            'city': self.city,
            'country': str(self.country) if self.country else None,
            'location': {
                'latitude': str(self.latitude),
                'longitude': str(self.longitude),
            },
            'contact': {'phone': self.phone, 'email': self.email},
            'campus_admin': str(self.campus_admin_id) if self.campus_admin_id else None,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if with_counts:
            data['counts'] = self.get_member_counts()
        return data
