# exams/models.py

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from decimal import Decimal
from utils.models import BaseModel
from academics.models import academic_session_validator
from schoolnet.managers import CampusManager
import logging

logger = logging.getLogger(__name__)


TERM_CHOICES = [
    ('FirstTerm', 'First Term'),
    ('SecondTerm', 'Second Term'),
]

TERMS = [term for term, _ in TERM_CHOICES]


# =============================================================================
# EXAM MODEL
# =============================================================================

class Exam(BaseModel):
    """
    One evaluation of a class in a subject for a term, e.g. the
    "Assessment 1" of Grade 5-A Mathematics, FirstTerm 2025-2026.
    """

    name = models.CharField("Exam Name", max_length=150)
    term = models.CharField("Term", max_length=10, choices=TERM_CHOICES)
    academic_session = models.CharField(
        "Academic Session",
        max_length=9,
        validators=[academic_session_validator]
    )

    class_instance = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="exams"
    )
    subject = models.ForeignKey(
        'academics.Subject',
        verbose_name="Subject",
        on_delete=models.PROTECT,
        related_name="exams"
    )
    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="exams"
    )

    total_marks = models.DecimalField(
        "Total Marks",
        max_digits=7,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    exam_type = models.CharField(
        "Type",
        max_length=50,
        default='Examination',
        help_text="E.g. Examination, Assessment 1, Homework"
    )

    objects = CampusManager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Exam"
        verbose_name_plural = "Exams"
        constraints = [
            models.UniqueConstraint(
                fields=['term', 'academic_session', 'class_instance', 'subject', 'campus', 'exam_type'],
                name='unique_exam_definition'
            ),
            models.CheckConstraint(
                condition=Q(total_marks__gt=0),
                name='exam_total_marks_positive'
            ),
        ]
        indexes = [
            models.Index(fields=['class_instance', 'term', 'academic_session']),
            models.Index(fields=['campus', 'academic_session']),
        ]

    def __str__(self):
        return f"{self.name} ({self.exam_type}) - {self.term} {self.academic_session}"

    def clean(self):
        super().clean()
        if not self.class_instance_id:
            return
        if self.campus_id and self.class_instance.campus_id != self.campus_id:
            raise ValidationError({'class_instance': "Class does not belong to the exam's campus."})
        if self.subject_id and not self.class_instance.subjects.filter(pk=self.subject_id).exists():
            raise ValidationError({'subject': "Subject is not part of the class curriculum."})

    def to_dict(self):
        return {
            'id': str(self.pk),
            'name': self.name,
            'term': self.term,
            'academic_session': self.academic_session,
            'class': str(self.class_instance_id),
            'subject': str(self.subject_id),
            'campus': str(self.campus_id),
            'total_marks': str(self.total_marks),
            'type': self.exam_type,
        }


# =============================================================================
# SCORE MODEL
# =============================================================================

class Score(BaseModel):
    """
    A student's marks in one exam.

    Class, subject and campus are copied from the exam on save so that
    completion checks can filter scores without joining through exams.
    """

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="scores"
    )
    exam = models.ForeignKey(
        Exam,
        verbose_name="Exam",
        on_delete=models.CASCADE,
        related_name="scores"
    )
    class_instance = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="scores"
    )
    subject = models.ForeignKey(
        'academics.Subject',
        verbose_name="Subject",
        on_delete=models.PROTECT,
        related_name="scores"
    )
    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="scores"
    )

    marks_obtained = models.DecimalField(
        "Marks Obtained",
        max_digits=7,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    is_present = models.BooleanField("Present", default=True)
    remarks = models.CharField("Remarks", max_length=255, blank=True)
    entered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Entered By",
        on_delete=models.SET_NULL,
        related_name="entered_scores",
        null=True,
        blank=True
    )

    objects = CampusManager()

    class Meta:
        ordering = ['exam', 'student']
        verbose_name = "Score"
        verbose_name_plural = "Scores"
        constraints = [
            models.UniqueConstraint(fields=['student', 'exam'], name='unique_score_per_student_exam'),
            models.CheckConstraint(condition=Q(marks_obtained__gte=0), name='score_marks_non_negative'),
        ]
        indexes = [
            models.Index(fields=['student', 'class_instance']),
            models.Index(fields=['class_instance', 'subject']),
        ]

    def __str__(self):
        return f"{self.student} - {self.exam.name}: {self.marks_obtained}"

    def save(self, *args, **kwargs):
        if self.exam_id:
            exam = self.exam
            self.class_instance_id = exam.class_instance_id
            self.subject_id = exam.subject_id
            self.campus_id = exam.campus_id
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'class_instance', 'subject', 'campus'}
        super().save(*args, **kwargs)

    def clean(self):
        super().clean()
        if self.exam_id and self.marks_obtained is not None and self.marks_obtained > self.exam.total_marks:
            raise ValidationError({
                'marks_obtained': f"Marks cannot exceed the exam total of {self.exam.total_marks}."
            })

    @property
    def term_key(self):
        """(student, class, term, session) this score contributes to"""
        return (self.student_id, self.class_instance_id, self.exam.term, self.exam.academic_session)

    def to_dict(self):
        return {
            'id': str(self.pk),
            'student': str(self.student_id),
            'exam': str(self.exam_id),
            'class': str(self.class_instance_id),
            'subject': str(self.subject_id),
            'campus': str(self.campus_id),
            'marks_obtained': str(self.marks_obtained),
            'is_present': self.is_present,
            'remarks': self.remarks,
            'entered_by': str(self.entered_by_id) if self.entered_by_id else None,
        }


# =============================================================================
# MARKSHEET MODELS
# =============================================================================

class Marksheet(BaseModel):
    """
    Per student, per class, per term report card.

    Rows are materialised by MarksheetService from the student's scores and
    replaced wholesale whenever those scores change. Nothing else writes them.
    """

    REMARK_SOURCE_CHOICES = [
        ('generated', 'Generated'),
        ('fallback', 'Grade based'),
    ]

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name="marksheets"
    )
    class_instance = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="marksheets"
    )
    campus = models.ForeignKey(
        'core.Campus',
        verbose_name="Campus",
        on_delete=models.CASCADE,
        related_name="marksheets"
    )
    term = models.CharField("Term", max_length=10, choices=TERM_CHOICES)
    academic_session = models.CharField("Academic Session", max_length=9)

    grand_obtained = models.DecimalField("Grand Obtained", max_digits=9, decimal_places=2)
    grand_total = models.DecimalField("Grand Total", max_digits=9, decimal_places=2)
    overall_percentage = models.DecimalField("Overall Percentage", max_digits=5, decimal_places=2)
    overall_grade = models.CharField("Overall Grade", max_length=2)
    rank = models.PositiveIntegerField("Rank", null=True, blank=True)

    final_remarks = models.TextField("Final Remarks", blank=True)
    remark_source = models.CharField(
        "Remark Source",
        max_length=10,
        choices=REMARK_SOURCE_CHOICES,
        default='fallback'
    )

    objects = CampusManager()

    class Meta:
        ordering = ['-overall_percentage', 'student__first_name']
        verbose_name = "Marksheet"
        verbose_name_plural = "Marksheets"
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'class_instance', 'term', 'academic_session'],
                name='unique_marksheet_per_student_term'
            ),
        ]
        indexes = [
            models.Index(fields=['class_instance', 'term', 'academic_session']),
            models.Index(fields=['campus', 'academic_session']),
        ]

    def __str__(self):
        return f"{self.student} - {self.class_instance} {self.term} {self.academic_session}"

    def to_dict(self, with_subjects=True):
        data = {
            'id': str(self.pk),
            'student': {
                'id': str(self.student_id),
                'name': self.student.display_name,
                'email': self.student.email,
            },
            'class': {
                'id': str(self.class_instance_id),
                'grade': self.class_instance.grade,
                'section': self.class_instance.section,
            },
            'campus': str(self.campus_id),
            'term': self.term,
            'academic_session': self.academic_session,
            'grand_obtained': str(self.grand_obtained),
            'grand_total': str(self.grand_total),
            'overall_percentage': str(self.overall_percentage),
            'overall_grade': self.overall_grade,
            'rank': self.rank,
            'final_remarks': self.final_remarks,
            'remark_source': self.remark_source,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_subjects:
            data['subjects'] = [row.to_dict() for row in self.subject_rows.select_related('subject')]
        return data


class MarksheetSubject(models.Model):
    """One folded subject line of a marksheet"""

    marksheet = models.ForeignKey(
        Marksheet,
        on_delete=models.CASCADE,
        related_name="subject_rows"
    )
    subject = models.ForeignKey(
        'academics.Subject',
        on_delete=models.PROTECT,
        related_name="marksheet_rows"
    )
    marks_obtained = models.DecimalField(max_digits=9, decimal_places=2)
    total_marks = models.DecimalField(max_digits=9, decimal_places=2)
    percentage = models.DecimalField(max_digits=5, decimal_places=2)
    grade = models.CharField(max_length=2)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['marksheet', 'position']
        constraints = [
            models.UniqueConstraint(fields=['marksheet', 'subject'], name='unique_marksheet_subject'),
        ]

    def __str__(self):
        return f"{self.subject.name}: {self.marks_obtained}/{self.total_marks} ({self.grade})"

    def to_dict(self):
        return {
            'subject': {'id': str(self.subject_id), 'name': self.subject.name},
            'marks_obtained': str(self.marks_obtained),
            'total_marks': str(self.total_marks),
            'percentage': str(self.percentage),
            'grade': self.grade,
        }
