# academics/models.py

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from utils.models import BaseModel
from schoolnet.managers import CampusManager
import logging

logger = logging.getLogger(__name__)


academic_session_validator = RegexValidator(
    regex=r'^\d{4}-\d{4}$',
    message="Academic session must look like '2025-2026'."
)


# =============================================================================
# SUBJECT MODEL
# =============================================================================

class Subject(BaseModel):
    """A subject that can be part of a class curriculum"""

    name = models.CharField("Subject Name", max_length=100)
    code = models.CharField(
        "Subject Code",
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text="Optional short code (e.g. 'MATH')"
    )
    description = models.TextField("Description", blank=True)
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Subject"
        verbose_name_plural = "Subjects"

    def __str__(self):
        return f"{self.name} ({self.code})" if self.code else self.name

    def save(self, *args, **kwargs):
        # Empty codes stay NULL so they do not collide on the unique index
        self.code = self.code.strip().upper() if self.code and self.code.strip() else None
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            'id': str(self.pk),
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'is_active': self.is_active,
        }


# =============================================================================
# CLASS MODEL
# =============================================================================

class Class(BaseModel):
    """
    A grade/section of one campus.

    ``subjects`` is the curriculum: a marksheet is only produced once every
    one of them has a score for the term.
    """

    SECTION_CHOICES = [(section, section) for section in 'ABCDEF']

    grade = models.PositiveSmallIntegerField(
        "Grade",
        validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    section = models.CharField("Section", max_length=1, choices=SECTION_CHOICES)

    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="classes"
    )

    subjects = models.ManyToManyField(
        Subject,
        verbose_name="Subjects",
        related_name="classes",
        blank=True,
        help_text="Subjects every student of this class must be scored in"
    )

    # One class per class teacher
    class_teacher = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        verbose_name="Class Teacher",
        on_delete=models.SET_NULL,
        related_name="led_class",
        null=True,
        blank=True,
        limit_choices_to={'role': 'teacher'}
    )

    is_active = models.BooleanField("Active", default=True)

    objects = CampusManager()

    class Meta:
        ordering = ['campus', 'grade', 'section']
        verbose_name = "Class"
        verbose_name_plural = "Classes"
        constraints = [
            models.UniqueConstraint(
                fields=['campus', 'grade', 'section'],
                condition=Q(is_active=True),
                name='unique_active_class_per_campus'
            ),
        ]
        indexes = [
            models.Index(fields=['campus', 'is_active']),
        ]

    def __str__(self):
        return f"Grade {self.grade}-{self.section}"

    def clean(self):
        super().clean()
        if self.class_teacher_id and self.campus_id:
            teacher = self.class_teacher
            if teacher.role != 'teacher':
                raise ValidationError({'class_teacher': "Class teacher must have the teacher role."})
            if teacher.campus_id and teacher.campus_id != self.campus_id:
                raise ValidationError({'class_teacher': "Class teacher belongs to another campus."})

    def get_required_subject_ids(self):
        """Curriculum as a set of subject ids, read fresh from the database"""
        return set(self.subjects.values_list('pk', flat=True))

    def get_active_enrollments(self):
        return self.enrollments.filter(is_active=True).select_related('student')

    def to_dict(self, with_subjects=True):
        data = {
            'id': str(self.pk),
            'name': str(self),
            'grade': self.grade,
            'section': self.section,
            'campus': str(self.campus_id),
            'class_teacher': str(self.class_teacher_id) if self.class_teacher_id else None,
            'is_active': self.is_active,
        }
        if with_subjects:
            data['subjects'] = [
                {'id': str(s.pk), 'name': s.name, 'code': s.code}
                for s in self.subjects.all()
            ]
        return data


# =============================================================================
# STUDENT ENROLLMENT MODEL
# =============================================================================

class StudentEnrollment(BaseModel):
    """A student's place (and roll number) in a class for a session"""

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="enrollments",
        limit_choices_to={'role': 'student'}
    )
    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="enrollments"
    )
    class_instance = models.ForeignKey(
        Class,
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="enrollments"
    )
    roll_number = models.CharField("Roll Number", max_length=20)
    academic_session = models.CharField(
        "Academic Session",
        max_length=9,
        validators=[academic_session_validator]
    )
    is_active = models.BooleanField("Active", default=True)

    objects = CampusManager()

    class Meta:
        ordering = ['class_instance', 'roll_number']
        verbose_name = "Student Enrollment"
        verbose_name_plural = "Student Enrollments"
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'campus', 'class_instance'],
                name='unique_student_campus_class'
            ),
            models.UniqueConstraint(
                fields=['class_instance', 'roll_number'],
                condition=Q(is_active=True),
                name='unique_roll_number_per_class'
            ),
        ]
        indexes = [
            models.Index(fields=['class_instance', 'is_active']),
            models.Index(fields=['student', 'is_active']),
        ]

    def __str__(self):
        return f"{self.student} - {self.class_instance} (Roll {self.roll_number})"

    def clean(self):
        super().clean()
        if self.class_instance_id and self.campus_id and self.class_instance.campus_id != self.campus_id:
            raise ValidationError({'class_instance': "Class does not belong to this campus."})
        if self.student_id and self.student.role != 'student':
            raise ValidationError({'student': "Only students can be enrolled."})

    def to_dict(self):
        return {
            'id': str(self.pk),
            'student': {
                'id': str(self.student_id),
                'name': self.student.display_name,
                'email': self.student.email,
            },
            'campus': str(self.campus_id),
            'class': str(self.class_instance_id),
            'roll_number': self.roll_number,
            'academic_session': self.academic_session,
            'is_active': self.is_active,
        }


# =============================================================================
# TEACHING ASSIGNMENTS
# =============================================================================

class TeachingAssignment(BaseModel):
    """One campus + class + subject combination that can be taught"""

    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="teaching_assignments"
    )
    class_instance = models.ForeignKey(
        Class,
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="teaching_assignments"
    )
    subject = models.ForeignKey(
        Subject,
        verbose_name="Subject",
        on_delete=models.CASCADE,
        related_name="teaching_assignments"
    )
    is_active = models.BooleanField("Active", default=True)

    objects = CampusManager()

    class Meta:
        verbose_name = "Teaching Assignment"
        verbose_name_plural = "Teaching Assignments"
        constraints = [
            models.UniqueConstraint(
                fields=['campus', 'class_instance', 'subject'],
                name='unique_campus_class_subject'
            ),
        ]

    def __str__(self):
        return f"{self.class_instance} {self.subject.name}"

    def to_dict(self):
        return {
            'id': str(self.pk),
            'campus': str(self.campus_id),
            'class': str(self.class_instance_id),
            'subject': str(self.subject_id),
            'is_active': self.is_active,
        }


class TeacherAssignment(BaseModel):
    """Links a teacher to a teaching assignment"""

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Teacher",
        on_delete=models.CASCADE,
        related_name="teacher_assignments",
        limit_choices_to={'role': 'teacher'}
    )
    teaching_assignment = models.ForeignKey(
        TeachingAssignment,
        verbose_name="Teaching Assignment",
        on_delete=models.CASCADE,
        related_name="teacher_links"
    )
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Teacher Assignment"
        verbose_name_plural = "Teacher Assignments"
        constraints = [
            models.UniqueConstraint(
                fields=['teacher', 'teaching_assignment'],
                name='unique_teacher_teaching_assignment'
            ),
        ]
        indexes = [
            models.Index(fields=['teacher', 'is_active']),
        ]

    def __str__(self):
        return f"{self.teacher} -> {self.teaching_assignment}"
