# attendance/services.py

"""
Attendance Services Module

- Bulk student marking by roll number
- Teacher check-in / check-out
- Monthly summaries and the low-attendance report

All writes use @transaction.atomic
"""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.db.models import Count, Q
from django.utils import timezone
import logging

from academics.models import StudentEnrollment
from core.utils import calculate_percentage, get_school_today, is_school_day, month_bounds
from .models import StudentAttendance, TeacherAttendance, STATUSES

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT ATTENDANCE SERVICE
# =============================================================================

class StudentAttendanceService:

    @staticmethod
    @transaction.atomic
    def mark_bulk(class_instance, records, marked_by, date=None):
        """
        Mark a class's attendance for one day from roll numbers.

        Args:
            class_instance: Class being marked
            records: list of {'roll_number' (or 'rollNo'), 'status'}
            marked_by: User doing the marking
            date: defaults to today (school time zone)

        Returns:
            list: one result per record with a 'message' of
                  Marked / Already marked / Student not found / Invalid status

        Raises:
            ValidationError: the day is a Sunday or the class is inactive
        """
        date = date or get_school_today()
        if not is_school_day(date):
            raise ValidationError("Attendance cannot be marked on Sundays")
        if not class_instance.is_active:
            raise ValidationError(f"{class_instance} is not active.")

        enrollments = {
            e.roll_number: e
            for e in StudentEnrollment.objects.filter(class_instance=class_instance, is_active=True)
        }
        already_marked = set(
            StudentAttendance.objects.filter(
                class_instance=class_instance, date=date
            ).values_list('enrollment_id', flat=True)
        )

        results = []
        for record in records:
            roll_number = str(record.get('roll_number', record.get('rollNo', ''))).strip()
            status = str(record.get('status', '')).strip().lower()
            result = {'roll_number': roll_number, 'status': status}

            enrollment = enrollments.get(roll_number)
            if enrollment is None:
                result['message'] = "Student not found"
            elif status not in STATUSES:
                result['message'] = "Invalid status"
            elif enrollment.pk in already_marked:
                result['message'] = "Already marked"
            else:
                attendance = StudentAttendance.objects.create(
                    enrollment=enrollment,
                    class_instance=class_instance,
                    campus_id=class_instance.campus_id,
                    date=date,
                    status=status,
                    marked_by=marked_by,
                )
                already_marked.add(enrollment.pk)
                result['message'] = "Marked"
                result['id'] = str(attendance.pk)
            results.append(result)

        marked = sum(1 for r in results if r['message'] == "Marked")
        logger.info(
            f"Attendance for {class_instance} on {date}: {marked}/{len(records)} marked by {marked_by.username}"
        )
        return results

    @staticmethod
    def history(student, start_date=None, end_date=None):
        """Attendance records of a student across its enrollments, newest first"""
        records = StudentAttendance.objects.filter(
            enrollment__student=student
        ).select_related('enrollment__student')
        if start_date:
            records = records.filter(date__gte=start_date)
        if end_date:
            records = records.filter(date__lte=end_date)
        return records.order_by('-date')


# =============================================================================
# TEACHER ATTENDANCE SERVICE
# =============================================================================

class TeacherAttendanceService:

    @staticmethod
    @transaction.atomic
    def check_in(teacher, marked_by, status='present', campus=None):
        """
        Record today's attendance for a teacher.

        Raises:
            ValidationError: Sunday, no campus, bad status or already checked in
        """
        today = get_school_today()
        if not is_school_day(today):
            raise ValidationError("Attendance cannot be marked on Sundays")
        if status not in STATUSES:
            raise ValidationError(f"Invalid status '{status}'")

        campus = campus or teacher.campus
        if campus is None:
            raise ValidationError("Teacher has no campus.")

        if TeacherAttendance.objects.filter(teacher=teacher, date=today).exists():
            raise ValidationError("Already checked in today")

        try:
            with transaction.atomic():
                attendance = TeacherAttendance.objects.create(
                    teacher=teacher,
                    campus=campus,
                    date=today,
                    status=status,
                    check_in=timezone.now(),
                    marked_by=marked_by,
                )
        except IntegrityError:
            raise ValidationError("Already checked in today")

        logger.info(f"Teacher {teacher.username} checked in ({status}) on {today}")
        return attendance

    @staticmethod
    @transaction.atomic
    def check_out(teacher):
        """
        Close today's attendance for a teacher.

        Raises:
            TeacherAttendance.DoesNotExist: no check-in today
            ValidationError: already checked out
        """
        today = get_school_today()
        attendance = TeacherAttendance.objects.select_for_update().get(teacher=teacher, date=today)

        if attendance.check_out:
            raise ValidationError("Already checked out today")

        attendance.check_out = timezone.now()
        attendance.save(update_fields=['check_out', 'updated_at'])

        logger.info(f"Teacher {teacher.username} checked out on {today}")
        return attendance


# =============================================================================
# REPORTS
# =============================================================================

class AttendanceReportService:

    @staticmethod
    def monthly_summary(year, month, campus=None, class_instance=None):
        """
        Per-student attendance counts for one calendar month.

        Returns:
            list of dicts sorted by percentage ascending:
            enrollment_id, student_id, name, roll_number, class, campus,
            present, absent, leave, total_days, percentage
        """
        start, end = month_bounds(year, month)

        records = StudentAttendance.objects.filter(date__range=(start, end))
        if campus is not None:
            records = records.filter(campus=campus)
        if class_instance is not None:
            records = records.filter(class_instance=class_instance)

        rows = records.values(
            'enrollment_id',
            'enrollment__student_id',
            'enrollment__student__first_name',
            'enrollment__student__last_name',
            'enrollment__student__username',
            'enrollment__roll_number',
            'class_instance_id',
            'campus_id',
        ).annotate(
            present=Count('id', filter=Q(status='present')),
            absent=Count('id', filter=Q(status='absent')),
            leave=Count('id', filter=Q(status='leave')),
            total_days=Count('id'),
        )

        summary = []
        for row in rows:
            name = f"{row['enrollment__student__first_name']} {row['enrollment__student__last_name']}".strip()
            summary.append({
                'enrollment_id': str(row['enrollment_id']),
                'student_id': str(row['enrollment__student_id']),
                'name': name or row['enrollment__student__username'],
                'roll_number': row['enrollment__roll_number'],
                'class': str(row['class_instance_id']),
                'campus': str(row['campus_id']),
                'present': row['present'],
                'absent': row['absent'],
                'leave': row['leave'],
                'total_days': row['total_days'],
                'percentage': calculate_percentage(row['present'], row['total_days']),
            })

        summary.sort(key=lambda r: (r['percentage'], r['name']))
        return summary

    @staticmethod
    def low_attendance(year, month, campus=None, threshold=None):
        """Students whose monthly attendance is below the threshold (percent)"""
        if threshold is None:
            threshold = getattr(settings, 'LOW_ATTENDANCE_THRESHOLD', 75)
        return [
            row for row in AttendanceReportService.monthly_summary(year, month, campus=campus)
            if row['percentage'] < threshold
        ]
