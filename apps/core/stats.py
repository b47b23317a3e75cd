# core/stats.py
"""
Dashboard statistics across campuses

Every function takes an optional ``campus``; None means the whole network.
"""

from django.db.models import Count, Q, Avg, Sum
from django.db.models.functions import TruncMonth
from django.contrib.auth import get_user_model
from decimal import Decimal
from collections import defaultdict
import logging

from .utils import calculate_percentage, TWO_PLACES

logger = logging.getLogger(__name__)

User = get_user_model()

TOP_PERFORMERS_PER_CAMPUS = 3


def _round(value):
    return Decimal(str(value or 0)).quantize(TWO_PLACES)


# =============================================================================
# OVERVIEW
# =============================================================================

def get_overview_statistics(campus=None):
    """Campus, active student and active teacher counts"""
    from .models import Campus

    users = User.objects.filter(is_active=True)
    campuses = Campus.objects.filter(is_active=True)
    if campus is not None:
        users = users.filter(campus=campus)
        campuses = campuses.filter(pk=campus.pk)

    counts = users.aggregate(
        students=Count('id', filter=Q(role=User.STUDENT)),
        teachers=Count('id', filter=Q(role=User.TEACHER)),
    )
    return {
        'campus_count': campuses.count(),
        'student_count': counts['students'],
        'teacher_count': counts['teachers'],
    }


# =============================================================================
# EXAM PERFORMANCE
# =============================================================================

def get_top_performers(campus=None, limit=TOP_PERFORMERS_PER_CAMPUS):
    """
    Best students of every campus by average marks obtained.

    Returns:
        list: [{'campus': {...}, 'top_students': [{id, name, average_marks}]}]
    """
    from exams.models import Score

    scores = Score.objects.all()
    if campus is not None:
        scores = scores.filter(campus=campus)

    rows = scores.values(
        'campus_id', 'campus__name',
        'student_id', 'student__first_name', 'student__last_name', 'student__username',
    ).annotate(average_marks=Avg('marks_obtained')).order_by('campus__name', '-average_marks', 'student__username')

    grouped = defaultdict(list)
    names = {}
    for row in rows:
        campus_id = row['campus_id']
        names[campus_id] = row['campus__name']
        if len(grouped[campus_id]) >= limit:
            continue
        name = f"{row['student__first_name']} {row['student__last_name']}".strip()
        grouped[campus_id].append({
            'id': str(row['student_id']),
            'name': name or row['student__username'],
            'average_marks': _round(row['average_marks']),
        })

    return [
        {'campus': {'id': str(campus_id), 'name': names[campus_id]}, 'top_students': students}
        for campus_id, students in grouped.items()
    ]


def get_campus_comparison():
    """Average marks and number of scores per campus, best first"""
    from exams.models import Score

    rows = Score.objects.values('campus_id', 'campus__name').annotate(
        average_marks=Avg('marks_obtained'),
        score_count=Count('id'),
    ).order_by('-average_marks')

    return [
        {
            'campus_id': str(row['campus_id']),
            'campus_name': row['campus__name'],
            'average_marks': _round(row['average_marks']),
            'score_count': row['score_count'],
        }
        for row in rows
    ]


def get_subject_performance(campus=None):
    """Percentage of available marks obtained, per subject"""
    from exams.models import Score

    scores = Score.objects.filter(exam__total_marks__gt=0)
    if campus is not None:
        scores = scores.filter(campus=campus)

    rows = scores.values('subject_id', 'subject__name').annotate(
        obtained=Sum('marks_obtained'),
        available=Sum('exam__total_marks'),
        score_count=Count('id'),
    )

    performance = [
        {
            'subject_id': str(row['subject_id']),
            'subject': row['subject__name'],
            'average_percentage': calculate_percentage(row['obtained'], row['available']),
            'score_count': row['score_count'],
        }
        for row in rows
    ]
    performance.sort(key=lambda r: r['average_percentage'], reverse=True)
    return performance


# =============================================================================
# STUDENT RETENTION
# =============================================================================

def get_drop_ratio(campus=None, start_date=None, end_date=None):
    """
    Share of students who are no longer active.

    The optional date range applies to when the student accounts were created.
    """
    students = User.objects.filter(role=User.STUDENT)
    if campus is not None:
        students = students.filter(campus=campus)
    if start_date:
        students = students.filter(date_joined__date__gte=start_date)
    if end_date:
        students = students.filter(date_joined__date__lte=end_date)

    counts = students.aggregate(
        total=Count('id'),
        inactive=Count('id', filter=Q(is_active=False)),
    )
    return {
        'total_students': counts['total'],
        'inactive_students': counts['inactive'],
        'drop_ratio': calculate_percentage(counts['inactive'], counts['total']),
    }


# =============================================================================
# ATTENDANCE TREND
# =============================================================================

def get_attendance_trend(campus=None, year=None):
    """Monthly share of present marks across student attendance"""
    from attendance.models import StudentAttendance

    records = StudentAttendance.objects.all()
    if campus is not None:
        records = records.filter(campus=campus)
    if year:
        records = records.filter(date__year=year)

    rows = records.annotate(month=TruncMonth('date')).values('month').annotate(
        total=Count('id'),
        present=Count('id', filter=Q(status='present')),
    ).order_by('month')

    return [
        {
            'month': row['month'].strftime('%Y-%m'),
            'total': row['total'],
            'present': row['present'],
            'attendance_percentage': calculate_percentage(row['present'], row['total']),
        }
        for row in rows
    ]
