# attendance/models.py

from django.db import models
from django.conf import settings
from utils.models import BaseModel
from schoolnet.managers import CampusManager
import logging

logger = logging.getLogger(__name__)


STATUS_CHOICES = [
    ('present', 'Present'),
    ('absent', 'Absent'),
    ('leave', 'On Leave'),
]

STATUSES = [status for status, _ in STATUS_CHOICES]


# =============================================================================
# STUDENT ATTENDANCE
# =============================================================================

class StudentAttendance(BaseModel):
    """Daily attendance of one enrolled student"""

    enrollment = models.ForeignKey(
        'academics.StudentEnrollment',
        on_delete=models.CASCADE,
        related_name='attendance_records'
    )
    class_instance = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name='attendance_records'
    )
    campus = models.ForeignKey(
        'core.Campus',
        on_delete=models.CASCADE,
        related_name='student_attendance'
    )

    date = models.DateField("Date", db_index=True)
    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, db_index=True)

    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    objects = CampusManager()

    class Meta:
        verbose_name = "Student Attendance"
        verbose_name_plural = "Student Attendance"
        ordering = ['-date', 'enrollment__roll_number']
        constraints = [
            models.UniqueConstraint(fields=['enrollment', 'date'], name='unique_student_attendance_per_day'),
        ]
        indexes = [
            models.Index(fields=['class_instance', 'date']),
            models.Index(fields=['campus', 'date']),
        ]

    def __str__(self):
        return f"{self.enrollment.student} - {self.date} - {self.get_status_display()}"

    def to_dict(self):
        return {
            'id': str(self.pk),
            'enrollment': str(self.enrollment_id),
            'student': {
                'id': str(self.enrollment.student_id),
                'name': self.enrollment.student.display_name,
                'roll_number': self.enrollment.roll_number,
            },
            'class': str(self.class_instance_id),
            'campus': str(self.campus_id),
            'date': self.date.isoformat(),
            'status': self.status,
            'marked_by': str(self.marked_by_id) if self.marked_by_id else None,
        }


# =============================================================================
# TEACHER ATTENDANCE
# =============================================================================

class TeacherAttendance(BaseModel):
    """Daily check-in / check-out of a teacher"""

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='attendance_records',
        limit_choices_to={'role': 'teacher'}
    )
    campus = models.ForeignKey(
        'core.Campus',
        on_delete=models.CASCADE,
        related_name='teacher_attendance'
    )

    date = models.DateField("Date", db_index=True)
    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, db_index=True)

    check_in = models.DateTimeField("Check In", null=True, blank=True)
    check_out = models.DateTimeField("Check Out", null=True, blank=True)

    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    objects = CampusManager()

    class Meta:
        verbose_name = "Teacher Attendance"
        verbose_name_plural = "Teacher Attendance"
        ordering = ['-date', 'teacher']
        constraints = [
            models.UniqueConstraint(fields=['teacher', 'date'], name='unique_teacher_attendance_per_day'),
        ]

    def __str__(self):
        return f"{self.teacher} - {self.date} - {self.get_status_display()}"

    @property
    def work_hours(self):
        """Hours between check-in and check-out, None until checked out"""
        if self.check_in and self.check_out:
            return round((self.check_out - self.check_in).total_seconds() / 3600, 2)
        return None

    def to_dict(self):
        return {
            'id': str(self.pk),
            'teacher': {
                'id': str(self.teacher_id),
                'name': self.teacher.display_name,
            },
            'campus': str(self.campus_id),
            'date': self.date.isoformat(),
            'status': self.status,
            'check_in': self.check_in.isoformat() if self.check_in else None,
            'check_out': self.check_out.isoformat() if self.check_out else None,
            'work_hours': self.work_hours,
        }
