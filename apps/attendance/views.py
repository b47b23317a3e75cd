# attendance/views.py

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_GET, require_POST
from django.core.exceptions import ValidationError
import logging

from accounts.decorators import role_required
from accounts.models import User
from accounts.permissions import can_manage_campus, can_view_class, get_admin_campus, get_teacher_scopes
from core.utils import parse_date
from utils.utils import (
    parse_filters, paginate_queryset, pagination_meta, parse_json_body, InvalidPayload,
    json_error, form_errors_response, validation_error_response, merge_form_data,
)
from .forms import (
    BulkAttendanceForm, StudentAttendanceForm, TeacherCheckInForm, TeacherAttendanceForm, MonthForm,
)
from .models import StudentAttendance, TeacherAttendance
from .services import StudentAttendanceService, TeacherAttendanceService, AttendanceReportService

logger = logging.getLogger(__name__)

ADMINS = (User.SUPER_ADMIN, User.CAMPUS_ADMIN)


def _payload_or_error(request):
    try:
        return parse_json_body(request), None
    except InvalidPayload as e:
        return None, json_error(str(e))


def _visible_student_attendance(user):
    records = StudentAttendance.objects.select_related('enrollment__student')
    if user.is_super_admin:
        return records
    if user.is_campus_admin:
        campus = get_admin_campus(user)
        return records.filter(campus=campus) if campus else records.none()
    if user.is_teacher:
        class_ids = {class_id for _, class_id, _ in get_teacher_scopes(user)}
        return records.filter(class_instance_id__in=class_ids)
    return records.filter(enrollment__student=user)


def _date_filters(records, filters):
    try:
        if filters.get('date'):
            records = records.filter(date=parse_date(filters['date']))
        if filters.get('start_date'):
            records = records.filter(date__gte=parse_date(filters['start_date']))
        if filters.get('end_date'):
            records = records.filter(date__lte=parse_date(filters['end_date']))
    except ValueError:
        raise ValidationError("Dates must be YYYY-MM-DD")
    return records


# =============================================================================
# STUDENT ATTENDANCE
# =============================================================================

@require_POST
@role_required(*ADMINS, User.TEACHER)
def mark_student_attendance(request):
    """
    Bulk mark one class by roll number.

    Body: {"class_instance": uuid, "date": "YYYY-MM-DD"?, "records": [{"roll_number", "status"}]}
    """
    payload, error = _payload_or_error(request)
    if error:
        return error

    records = payload.get('records')
    if not isinstance(records, list) or not records:
        return json_error("Class and records are required")

    form = BulkAttendanceForm(payload)
    if not form.is_valid():
        return form_errors_response(form)
    class_instance = form.cleaned_data['class_instance']

    if not can_view_class(request.user, class_instance):
        return json_error("You are not authorized to mark attendance for this class", status=403)

    try:
        results = StudentAttendanceService.mark_bulk(
            class_instance, records, request.user, date=form.cleaned_data.get('date')
        )
    except ValidationError as e:
        return validation_error_response(e)

    return JsonResponse({
        'success': True,
        'message': "Bulk student attendance processed",
        'results': results,
    }, status=201)


@require_GET
@role_required()
def student_attendance_list(request):
    filters = parse_filters(request, ['campus', 'class', 'status', 'date', 'start_date', 'end_date'])
    records = _visible_student_attendance(request.user)

    if filters['campus']:
        records = records.filter(campus_id=filters['campus'])
    if filters['class']:
        records = records.filter(class_instance_id=filters['class'])
    if filters['status']:
        records = records.filter(status=filters['status'])
    try:
        records = _date_filters(records, filters)
    except ValidationError as e:
        return validation_error_response(e)

    page_obj, paginator = paginate_queryset(request, records)
    return JsonResponse({
        'success': True,
        'records': [r.to_dict() for r in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required()
def student_attendance_detail(request, pk):
    record = get_object_or_404(_visible_student_attendance(request.user), pk=pk)

    if request.method == 'GET':
        return JsonResponse({'success': True, 'record': record.to_dict()})

    if request.method == 'DELETE':
        if not can_manage_campus(request.user, record.campus_id):
            return json_error("You're not allowed to perform this action", status=403)
        record.delete()
        logger.info(f"Student attendance {pk} deleted by {request.user.username}")
        return JsonResponse({'success': True, 'message': "Student attendance deleted"})

    if request.user.is_student:
        return json_error("You're not allowed to perform this action", status=403)

    payload, error = _payload_or_error(request)
    if error:
        return error
    form = StudentAttendanceForm(merge_form_data(record, payload, StudentAttendanceForm.Meta.fields), instance=record)
    if not form.is_valid():
        return form_errors_response(form)
    record = form.save()
    return JsonResponse({'success': True, 'message': "Student attendance updated", 'record': record.to_dict()})


@require_GET
@role_required()
def student_attendance_history(request, student_id):
    """All attendance of one student, optionally within a date range"""
    user = request.user
    student = get_object_or_404(User, pk=student_id, role=User.STUDENT)

    if user.is_student and user.pk != student.pk:
        return json_error("You can only view your own attendance", status=403)

    records = _visible_student_attendance(user).filter(enrollment__student=student).order_by('-date')
    try:
        records = _date_filters(records, parse_filters(request, ['date', 'start_date', 'end_date']))
    except ValidationError as e:
        return validation_error_response(e)

    counts = {'present': 0, 'absent': 0, 'leave': 0}
    for status in records.values_list('status', flat=True):
        counts[status] += 1

    page_obj, paginator = paginate_queryset(request, records)
    return JsonResponse({
        'success': True,
        'student': {'id': str(student.pk), 'name': student.display_name},
        'counts': counts,
        'records': [r.to_dict() for r in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


# =============================================================================
# TEACHER ATTENDANCE
# =============================================================================

def _resolve_teacher(request, form):
    """Teachers act for themselves, admins name the teacher"""
    if request.user.is_teacher:
        return request.user, None
    teacher = form.cleaned_data.get('teacher')
    if teacher is None:
        return None, json_error("Teacher is required")
    if not can_manage_campus(request.user, teacher.campus_id):
        return None, json_error("You're not allowed to perform this action", status=403)
    return teacher, None


@require_POST
@role_required(*ADMINS, User.TEACHER)
def teacher_check_in(request):
    payload, error = _payload_or_error(request)
    if error:
        return error
    form = TeacherCheckInForm(payload)
    if not form.is_valid():
        return form_errors_response(form)

    teacher, error = _resolve_teacher(request, form)
    if error:
        return error

    try:
        attendance = TeacherAttendanceService.check_in(
            teacher, request.user, status=form.cleaned_data.get('status') or 'present'
        )
    except ValidationError as e:
        return validation_error_response(e)

    return JsonResponse({
        'success': True,
        'message': "Check-in successful",
        'attendance': attendance.to_dict(),
    }, status=201)


@require_POST
@role_required(*ADMINS, User.TEACHER)
def teacher_check_out(request):
    payload, error = _payload_or_error(request)
    if error:
        return error
    form = TeacherCheckInForm(payload)
    if not form.is_valid():
        return form_errors_response(form)

    teacher, error = _resolve_teacher(request, form)
    if error:
        return error

    try:
        attendance = TeacherAttendanceService.check_out(teacher)
    except TeacherAttendance.DoesNotExist:
        return json_error("No check-in found for today", status=404)
    except ValidationError as e:
        return validation_error_response(e)

    return JsonResponse({'success': True, 'message': "Check-out successful", 'attendance': attendance.to_dict()})


@require_GET
@role_required(*ADMINS, User.TEACHER)
def teacher_attendance_list(request):
    filters = parse_filters(request, ['campus', 'teacher', 'status', 'date', 'start_date', 'end_date'])
    user = request.user

    records = TeacherAttendance.objects.select_related('teacher')
    if user.is_teacher:
        records = records.filter(teacher=user)
    elif not user.is_super_admin:
        campus = get_admin_campus(user)
        records = records.for_campus(campus) if campus else records.none()

    if filters['campus']:
        records = records.filter(campus_id=filters['campus'])
    if filters['teacher']:
        records = records.filter(teacher_id=filters['teacher'])
    if filters['status']:
        records = records.filter(status=filters['status'])
    try:
        records = _date_filters(records, filters)
    except ValidationError as e:
        return validation_error_response(e)

    page_obj, paginator = paginate_queryset(request, records)
    return JsonResponse({
        'success': True,
        'records': [r.to_dict() for r in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["PATCH", "DELETE"])
@role_required(*ADMINS)
def teacher_attendance_detail(request, pk):
    record = get_object_or_404(TeacherAttendance, pk=pk)
    if not can_manage_campus(request.user, record.campus_id):
        return json_error("You're not allowed to perform this action", status=403)

    if request.method == 'DELETE':
        record.delete()
        logger.info(f"Teacher attendance {pk} deleted by {request.user.username}")
        return JsonResponse({'success': True, 'message': "Teacher attendance deleted"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    form = TeacherAttendanceForm(merge_form_data(record, payload, TeacherAttendanceForm.Meta.fields), instance=record)
    if not form.is_valid():
        return form_errors_response(form)
    record = form.save()
    return JsonResponse({'success': True, 'message': "Teacher attendance updated", 'attendance': record.to_dict()})


# =============================================================================
# REPORTS
# =============================================================================

def _report_scope(request):
    """(form, campus, error) for the monthly reports"""
    form = MonthForm(request.GET)
    if not form.is_valid():
        return None, None, form_errors_response(form)

    campus = None
    if not request.user.is_super_admin:
        campus = get_admin_campus(request.user)
        if campus is None:
            return None, None, json_error("No campus assigned to this admin", status=404)

    class_instance = form.cleaned_data.get('class_instance')
    if class_instance is not None and campus is not None and class_instance.campus_id != campus.pk:
        return None, None, json_error("You're not allowed to perform this action", status=403)
    return form, campus, None


@require_GET
@role_required(*ADMINS)
def monthly_attendance_report(request):
    form, campus, error = _report_scope(request)
    if error:
        return error

    year, month = form.cleaned_data['year'], form.cleaned_data['month']
    summary = AttendanceReportService.monthly_summary(
        year, month, campus=campus, class_instance=form.cleaned_data.get('class_instance')
    )
    return JsonResponse({'success': True, 'year': year, 'month': month, 'students': summary})


@require_GET
@role_required(*ADMINS)
def low_attendance_report(request):
    form, campus, error = _report_scope(request)
    if error:
        return error

    year, month = form.cleaned_data['year'], form.cleaned_data['month']
    students = AttendanceReportService.low_attendance(year, month, campus=campus)
    return JsonResponse({'success': True, 'year': year, 'month': month, 'students': students})
