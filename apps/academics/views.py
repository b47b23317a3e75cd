# academics/views.py

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST
from django.core.exceptions import ValidationError
from django.db.models import Q
import logging

from accounts.decorators import role_required
from accounts.models import User
from accounts.permissions import can_manage_campus, get_admin_campus, get_teacher_scopes
from utils.utils import (
    parse_filters, parse_bool, paginate_queryset, pagination_meta,
    parse_json_body, InvalidPayload, json_error, form_errors_response,
    validation_error_response, merge_form_data,
)
from .forms import SubjectForm, ClassForm, EnrollmentForm, TeacherAssignmentForm, TeacherCampusForm
from .models import Subject, Class, StudentEnrollment, TeachingAssignment
from .services import ClassEnrollmentService, TeacherAssignmentService

logger = logging.getLogger(__name__)

ADMINS = (User.SUPER_ADMIN, User.CAMPUS_ADMIN)


def _payload_or_error(request):
    try:
        return parse_json_body(request), None
    except InvalidPayload as e:
        return None, json_error(str(e))


# =============================================================================
# SUBJECTS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required()
def subject_collection(request):
    """List subjects (anyone signed in) or create one (super admin)"""
    if request.method == 'POST':
        if not request.user.is_super_admin:
            return json_error("You're not allowed to perform this action", status=403)
        payload, error = _payload_or_error(request)
        if error:
            return error
        form = SubjectForm(payload)
        if not form.is_valid():
            return form_errors_response(form)
        subject = form.save()
        logger.info(f"Subject {subject} created by {request.user.username}")
        return JsonResponse({'success': True, 'subject': subject.to_dict()}, status=201)

    filters = parse_filters(request, ['q', 'is_active'])
    subjects = Subject.objects.all()
    if filters['q']:
        subjects = subjects.filter(Q(name__icontains=filters['q']) | Q(code__icontains=filters['q']))
    if filters['is_active'] is not None:
        subjects = subjects.filter(is_active=parse_bool(filters['is_active']))

    page_obj, paginator = paginate_queryset(request, subjects)
    return JsonResponse({
        'success': True,
        'subjects': [s.to_dict() for s in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required()
def subject_detail(request, pk):
    subject = get_object_or_404(Subject, pk=pk)

    if request.method == 'GET':
        return JsonResponse({'success': True, 'subject': subject.to_dict()})

    if not request.user.is_super_admin:
        return json_error("You're not allowed to perform this action", status=403)

    if request.method == 'DELETE':
        subject.is_active = False
        subject.save(update_fields=['is_active'])
        return JsonResponse({'success': True, 'message': "Subject deactivated"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    form = SubjectForm(merge_form_data(subject, payload, SubjectForm.Meta.fields), instance=subject)
    if not form.is_valid():
        return form_errors_response(form)
    subject = form.save()
    return JsonResponse({'success': True, 'subject': subject.to_dict()})


# =============================================================================
# CLASSES
# =============================================================================

def _visible_classes(user):
    """Classes a user may list"""
    classes = Class.objects.select_related('campus').prefetch_related('subjects')
    if user.is_super_admin:
        return classes
    if user.is_campus_admin:
        campus = get_admin_campus(user)
        return classes.filter(campus=campus, is_active=True) if campus else classes.none()
    if user.is_teacher:
        class_ids = {class_id for _, class_id, _ in get_teacher_scopes(user)}
        return classes.filter(pk__in=class_ids, is_active=True)
    return classes.filter(
        enrollments__student=user, enrollments__is_active=True, is_active=True
    ).distinct()


@require_http_methods(["GET", "POST"])
@role_required()
def class_collection(request):
    user = request.user

    if request.method == 'POST':
        if not (user.is_super_admin or user.is_campus_admin):
            return json_error("You're not allowed to perform this action", status=403)
        payload, error = _payload_or_error(request)
        if error:
            return error

        admin_campus = None
        if not user.is_super_admin:
            admin_campus = get_admin_campus(user)
            if admin_campus is None:
                return json_error("No campus assigned to this admin", status=404)
            payload.setdefault('campus', str(admin_campus.pk))

        form = ClassForm(payload, admin_campus=admin_campus)
        if not form.is_valid():
            return form_errors_response(form)
        class_instance = form.save()
        logger.info(f"Class {class_instance} created on {class_instance.campus.code} by {user.username}")
        return JsonResponse({'success': True, 'class': class_instance.to_dict()}, status=201)

    filters = parse_filters(request, ['campus', 'grade', 'include_inactive'])
    classes = _visible_classes(user)

    if user.is_super_admin and not parse_bool(filters['include_inactive']):
        classes = classes.filter(is_active=True)
    if filters['campus']:
        classes = classes.filter(campus_id=filters['campus'])
    if filters['grade']:
        classes = classes.filter(grade=filters['grade'])

    page_obj, paginator = paginate_queryset(request, classes)
    return JsonResponse({
        'success': True,
        'role': user.role,
        'classes': [c.to_dict() for c in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required()
def class_detail(request, pk):
    class_instance = get_object_or_404(_visible_classes(request.user), pk=pk)

    if request.method == 'GET':
        data = class_instance.to_dict()
        data['student_count'] = class_instance.enrollments.filter(is_active=True).count()
        return JsonResponse({'success': True, 'class': data})

    if not can_manage_campus(request.user, class_instance.campus_id):
        return json_error("You're not allowed to perform this action", status=403)

    if request.method == 'DELETE':
        class_instance.is_active = False
        class_instance.save(update_fields=['is_active'])
        logger.info(f"Class {class_instance} deactivated by {request.user.username}")
        return JsonResponse({'success': True, 'message': "Class deleted (soft)"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    admin_campus = None if request.user.is_super_admin else get_admin_campus(request.user)
    form = ClassForm(
        merge_form_data(class_instance, payload, ClassForm.Meta.fields),
        instance=class_instance,
        admin_campus=admin_campus,
    )
    if not form.is_valid():
        return form_errors_response(form)
    class_instance = form.save()
    return JsonResponse({'success': True, 'class': class_instance.to_dict()})


# =============================================================================
# ENROLLMENTS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*ADMINS, User.TEACHER)
def enrollment_collection(request):
    user = request.user

    if request.method == 'POST':
        if user.is_teacher:
            return json_error("You're not allowed to perform this action", status=403)
        payload, error = _payload_or_error(request)
        if error:
            return error
        form = EnrollmentForm(payload)
        if not form.is_valid():
            return form_errors_response(form)

        class_instance = form.cleaned_data['class_instance']
        if not can_manage_campus(user, class_instance.campus_id):
            return json_error("You can only enroll students on your own campus", status=403)

        try:
            enrollment, created = ClassEnrollmentService.enroll_student(
                student=form.cleaned_data['student'],
                class_instance=class_instance,
                roll_number=form.cleaned_data['roll_number'],
                academic_session=form.cleaned_data['academic_session'],
            )
        except ValidationError as e:
            return validation_error_response(e)

        return JsonResponse({
            'success': True,
            'message': "Student enrolled successfully",
            'enrollment': enrollment.to_dict(),
        }, status=201 if created else 200)

    filters = parse_filters(request, ['class', 'campus', 'academic_session', 'q', 'is_active'])
    enrollments = StudentEnrollment.objects.for_user(user).select_related('student', 'class_instance')

    if user.is_teacher:
        class_ids = {class_id for _, class_id, _ in get_teacher_scopes(user)}
        enrollments = enrollments.filter(class_instance_id__in=class_ids)
    if filters['class']:
        enrollments = enrollments.filter(class_instance_id=filters['class'])
    if filters['campus']:
        enrollments = enrollments.filter(campus_id=filters['campus'])
    if filters['academic_session']:
        enrollments = enrollments.filter(academic_session=filters['academic_session'])
    if filters['q']:
        enrollments = enrollments.filter(
            Q(student__first_name__icontains=filters['q']) |
            Q(student__last_name__icontains=filters['q']) |
            Q(roll_number__iexact=filters['q'])
        )
    is_active = parse_bool(filters['is_active'])
    enrollments = enrollments.filter(is_active=True if is_active is None else is_active)

    page_obj, paginator = paginate_queryset(request, enrollments)
    return JsonResponse({
        'success': True,
        'enrollments': [e.to_dict() for e in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required(*ADMINS)
def enrollment_detail(request, pk):
    enrollment = get_object_or_404(
        StudentEnrollment.objects.for_user(request.user).select_related('student', 'class_instance'),
        pk=pk
    )

    if request.method == 'GET':
        return JsonResponse({'success': True, 'enrollment': enrollment.to_dict()})

    if request.method == 'DELETE':
        ClassEnrollmentService.withdraw_student(enrollment)
        return JsonResponse({'success': True, 'message': "Enrollment deactivated"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    try:
        enrollment = ClassEnrollmentService.update_enrollment(
            enrollment,
            roll_number=payload.get('roll_number'),
            academic_session=payload.get('academic_session'),
            is_active=payload.get('is_active'),
        )
    except ValidationError as e:
        return validation_error_response(e)
    return JsonResponse({'success': True, 'enrollment': enrollment.to_dict()})


# =============================================================================
# TEACHER ASSIGNMENTS
# =============================================================================

def _assignment_form(request):
    payload, error = _payload_or_error(request)
    if error:
        return None, None, error
    form = TeacherAssignmentForm(payload)
    if not form.is_valid():
        return None, None, form_errors_response(form)
    if not can_manage_campus(request.user, form.cleaned_data['campus'].pk):
        return None, None, json_error("You can only manage assignments on your own campus", status=403)
    return form, payload, None


@require_POST
@role_required(*ADMINS)
def assign_teacher(request):
    form, _, error = _assignment_form(request)
    if error:
        return error
    data = form.cleaned_data
    try:
        link = TeacherAssignmentService.assign(
            data['teacher'], data['campus'], data['class_instance'], data['subject']
        )
    except ValidationError as e:
        return validation_error_response(e)
    return JsonResponse({
        'success': True,
        'message': f"{data['teacher'].display_name} assigned to {data['campus'].name}",
        'assignment': link.teaching_assignment.to_dict(),
    }, status=201)


@require_POST
@role_required(*ADMINS)
def update_teacher_assignment(request):
    """``action`` is either 'unassign' or 'reassign'"""
    form, payload, error = _assignment_form(request)
    if error:
        return error
    data = form.cleaned_data
    action = str(payload.get('action') or '').strip()

    try:
        if action == 'unassign':
            TeacherAssignmentService.unassign(
                data['teacher'], data['campus'], data['class_instance'], data['subject']
            )
        elif action == 'reassign':
            TeacherAssignmentService.reassign(
                data['teacher'], data['campus'], data['class_instance'], data['subject']
            )
        else:
            return json_error("action must be 'unassign' or 'reassign'")
    except TeachingAssignment.DoesNotExist:
        return json_error("Assignment of campus, class & subject not found", status=404)
    except ValidationError as e:
        return validation_error_response(e)

    return JsonResponse({'success': True, 'message': f"Teacher {action} successfully"})


@require_POST
@role_required(*ADMINS)
def remove_teacher_from_campus(request):
    payload, error = _payload_or_error(request)
    if error:
        return error
    form = TeacherCampusForm(payload)
    if not form.is_valid():
        return form_errors_response(form)

    teacher, campus = form.cleaned_data['teacher'], form.cleaned_data['campus']
    if not can_manage_campus(request.user, campus.pk):
        return json_error("You can only manage assignments on your own campus", status=403)

    try:
        count = TeacherAssignmentService.remove_from_campus(teacher, campus)
    except ValidationError as e:
        return json_error("; ".join(e.messages), status=404)

    return JsonResponse({
        'success': True,
        'message': "Teacher unassigned from the campus",
        'deactivated': count,
    })


@require_http_methods(["GET"])
@role_required(*ADMINS, User.TEACHER)
def teacher_assignments(request, teacher_id):
    """Active assignments of one teacher (teachers may only read their own)"""
    if request.user.is_teacher and str(request.user.pk) != str(teacher_id):
        return json_error("You're not allowed to perform this action", status=403)

    teacher = get_object_or_404(User, pk=teacher_id, role=User.TEACHER)
    links = TeacherAssignmentService.get_assignments(teacher)
    if request.user.is_campus_admin:
        campus = get_admin_campus(request.user)
        links = links.filter(teaching_assignment__campus=campus)

    return JsonResponse({
        'success': True,
        'teacher': teacher.to_dict(),
        'assignments': [
            {
                'campus': {'id': str(link.teaching_assignment.campus_id), 'name': link.teaching_assignment.campus.name},
                'class': {'id': str(link.teaching_assignment.class_instance_id), 'name': str(link.teaching_assignment.class_instance)},
                'subject': {'id': str(link.teaching_assignment.subject_id), 'name': link.teaching_assignment.subject.name},
            }
            for link in links
        ],
    })
