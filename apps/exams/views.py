# exams/views.py

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_GET, require_POST
from django.core.exceptions import ValidationError
import logging

from accounts.decorators import role_required
from accounts.models import User
from accounts.permissions import (
    can_grade, can_manage_campus, can_view_class, get_admin_campus, get_teacher_scopes, teacher_covers,
)
from academics.models import Class
from utils.utils import (
    parse_filters, paginate_queryset, pagination_meta, parse_json_body, InvalidPayload,
    json_error, form_errors_response, validation_error_response, merge_form_data,
)
from .exports import marksheet_pdf_response, exam_scores_excel_response, cohort_marksheets_csv_response
from .forms import ExamForm, ScoreUpdateForm, CohortForm
from .models import Exam, Score, Marksheet
from .services import (
    ExamService, ScoreService, MarksheetService, MarksheetRankingService, StudyRecommendationService,
)

logger = logging.getLogger(__name__)

ADMINS = (User.SUPER_ADMIN, User.CAMPUS_ADMIN)
FORBIDDEN = "You're not allowed to perform this action"


def _payload_or_error(request):
    try:
        return parse_json_body(request), None
    except InvalidPayload as e:
        return None, json_error(str(e))


def _visible_exams(user):
    exams = Exam.objects.select_related('class_instance', 'subject', 'campus')
    if user.is_teacher:
        scopes = get_teacher_scopes(user)
        exam_ids = [
            exam.pk for exam in exams.filter(class_instance_id__in={c for _, c, _ in scopes})
            if teacher_covers(scopes, exam.campus_id, exam.class_instance_id, exam.subject_id)
        ]
        return exams.filter(pk__in=exam_ids)
    if user.is_student:
        return exams.none()
    return exams.for_user(user)


# =============================================================================
# EXAMS
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*ADMINS, User.TEACHER)
def exam_collection(request):
    user = request.user

    if request.method == 'POST':
        if user.is_teacher:
            return json_error(FORBIDDEN, status=403)
        payload, error = _payload_or_error(request)
        if error:
            return error

        admin_campus = None
        if not user.is_super_admin:
            admin_campus = get_admin_campus(user)
            if admin_campus is None:
                return json_error("No campus assigned to this admin", status=404)
            payload.setdefault('campus', str(admin_campus.pk))

        form = ExamForm(payload, admin_campus=admin_campus)
        if not form.is_valid():
            return form_errors_response(form)
        exam = form.save()
        logger.info(f"Exam {exam} created by {user.username}")
        return JsonResponse({'success': True, 'message': "Exam created successfully", 'exam': exam.to_dict()}, status=201)

    filters = parse_filters(request, ['campus', 'class', 'subject', 'term', 'academic_session', 'type'])
    exams = _visible_exams(user)
    if filters['campus']:
        exams = exams.filter(campus_id=filters['campus'])
    if filters['class']:
        exams = exams.filter(class_instance_id=filters['class'])
    if filters['subject']:
        exams = exams.filter(subject_id=filters['subject'])
    if filters['term']:
        exams = exams.filter(term=filters['term'])
    if filters['academic_session']:
        exams = exams.filter(academic_session=filters['academic_session'])
    if filters['type']:
        exams = exams.filter(exam_type__iexact=filters['type'])

    page_obj, paginator = paginate_queryset(request, exams)
    return JsonResponse({
        'success': True,
        'exams': [e.to_dict() for e in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required(*ADMINS, User.TEACHER)
def exam_detail(request, pk):
    exam = get_object_or_404(_visible_exams(request.user), pk=pk)

    if request.method == 'GET':
        data = exam.to_dict()
        data['statistics'] = ExamService.get_statistics(exam)
        return JsonResponse({'success': True, 'exam': data})

    if request.user.is_teacher or not can_manage_campus(request.user, exam.campus_id):
        return json_error(FORBIDDEN, status=403)

    if request.method == 'DELETE':
        logger.info(f"Exam {exam} deleted by {request.user.username}")
        exam.delete()
        return JsonResponse({'success': True, 'message': "Exam deleted"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    admin_campus = None if request.user.is_super_admin else get_admin_campus(request.user)
    form = ExamForm(merge_form_data(exam, payload, ExamForm.Meta.fields), instance=exam, admin_campus=admin_campus)
    if not form.is_valid():
        return form_errors_response(form)
    exam = form.save()
    return JsonResponse({'success': True, 'message': "Exam updated successfully", 'exam': exam.to_dict()})


# =============================================================================
# SCORES
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*ADMINS, User.TEACHER)
def exam_scores(request, exam_id):
    """
    GET:  every active enrollment of the exam's class with its score
    POST: {"scores": [{"student": id, "marks_obtained": n}, ...]}
    """
    exam = get_object_or_404(Exam.objects.select_related('class_instance'), pk=exam_id)
    if not can_grade(request.user, exam):
        return json_error(FORBIDDEN, status=403)

    if request.method == 'GET':
        rows = ScoreService.merged_listing(exam)
        page_obj, paginator = paginate_queryset(request, rows)
        return JsonResponse({
            'success': True,
            'exam': exam.to_dict(),
            'scores': list(page_obj),
            'pagination': pagination_meta(page_obj, paginator),
        })

    payload, error = _payload_or_error(request)
    if error:
        return error
    rows = payload.get('scores')
    if not isinstance(rows, list) or not rows:
        return json_error("scores must be a non-empty list")

    outcome = ScoreService.record_scores(exam, rows, entered_by=request.user)
    saved = len(outcome['created']) + len(outcome['updated'])
    return JsonResponse({
        'success': saved > 0,
        'message': f"{saved} score(s) saved",
        'created': [s.to_dict() for s in outcome['created']],
        'updated': [s.to_dict() for s in outcome['updated']],
        'errors': outcome['errors'],
    }, status=201 if outcome['created'] else (200 if saved else 400))


@require_GET
@role_required(*ADMINS, User.TEACHER)
def exam_scores_export(request, exam_id):
    exam = get_object_or_404(Exam, pk=exam_id)
    if not can_grade(request.user, exam):
        return json_error(FORBIDDEN, status=403)
    return exam_scores_excel_response(exam, ScoreService.merged_listing(exam))


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required(*ADMINS, User.TEACHER)
def score_detail(request, pk):
    score = get_object_or_404(Score.objects.select_related('exam', 'student'), pk=pk)
    if not can_grade(request.user, score.exam):
        return json_error(FORBIDDEN, status=403)

    if request.method == 'GET':
        return JsonResponse({'success': True, 'score': score.to_dict()})

    if request.method == 'DELETE':
        if request.user.is_teacher:
            return json_error(FORBIDDEN, status=403)
        ScoreService.delete_score(score)
        return JsonResponse({'success': True, 'message': "Score deleted"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    if 'marksObtained' in payload:
        payload.setdefault('marks_obtained', payload['marksObtained'])
    if 'isPresent' in payload:
        payload.setdefault('is_present', payload['isPresent'])

    form = ScoreUpdateForm(payload)
    if not form.is_valid():
        return form_errors_response(form)

    try:
        score = ScoreService.update_score(
            score,
            marks_obtained=form.cleaned_data['marks_obtained'] if 'marks_obtained' in payload else None,
            remarks=form.cleaned_data['remarks'] if 'remarks' in payload else None,
            is_present=form.cleaned_data['is_present'] if 'is_present' in payload else None,
        )
    except ValidationError as e:
        return validation_error_response(e)
    return JsonResponse({'success': True, 'message': "Score updated", 'score': score.to_dict()})


# =============================================================================
# MARKSHEETS
# =============================================================================

def _scoped_marksheets(request):
    """
    Marksheets the caller may read, narrowed by query filters.

    Returns:
        tuple: (queryset, error response or None)
    """
    user = request.user
    filters = parse_filters(request, ['student', 'class', 'campus', 'term', 'academic_session'])
    marksheets = Marksheet.objects.select_related('student', 'class_instance', 'campus')

    if user.is_student:
        marksheets = marksheets.filter(student=user)
    elif user.is_teacher:
        led_class = Class.objects.filter(class_teacher=user, is_active=True).first()
        if led_class is None:
            return None, json_error("You are not assigned as class teacher to any class", status=403)
        if filters['class'] and filters['class'] != str(led_class.pk):
            return None, json_error("You can only access marksheets of your class", status=403)
        marksheets = marksheets.filter(class_instance=led_class)
    elif user.is_campus_admin:
        campus = get_admin_campus(user)
        if campus is None:
            return None, json_error("You are not assigned as campus admin to any campus", status=403)
        if filters['campus'] and filters['campus'] != str(campus.pk):
            return None, json_error("You can only access marksheets of your campus", status=403)
        marksheets = marksheets.filter(campus=campus)
    elif filters['campus']:
        marksheets = marksheets.filter(campus_id=filters['campus'])

    if filters['class']:
        marksheets = marksheets.filter(class_instance_id=filters['class'])
    if filters['student'] and not user.is_student:
        marksheets = marksheets.filter(student_id=filters['student'])
    if filters['term']:
        marksheets = marksheets.filter(term=filters['term'])
    if filters['academic_session']:
        marksheets = marksheets.filter(academic_session=filters['academic_session'])

    return marksheets.order_by('-overall_percentage', 'student__first_name', 'pk'), None


@require_GET
@role_required()
def marksheet_list(request):
    marksheets, error = _scoped_marksheets(request)
    if error:
        return error
    page_obj, paginator = paginate_queryset(request, marksheets)
    return JsonResponse({
        'success': True,
        'marksheets': [m.to_dict() for m in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


def _get_visible_marksheet(request, pk):
    marksheets, error = _scoped_marksheets(request)
    if error:
        return None, error
    marksheet = marksheets.filter(pk=pk).first()
    if marksheet is None:
        return None, json_error("Marksheet not found", status=404)
    return marksheet, None


@require_GET
@role_required()
def marksheet_detail(request, pk):
    marksheet, error = _get_visible_marksheet(request, pk)
    if error:
        return error
    return JsonResponse({'success': True, 'marksheet': marksheet.to_dict()})


@require_GET
@role_required()
def marksheet_pdf(request, pk):
    marksheet, error = _get_visible_marksheet(request, pk)
    if error:
        return error
    return marksheet_pdf_response(marksheet)


def _cohort_or_error(request, data):
    form = CohortForm(data)
    if not form.is_valid():
        return None, form_errors_response(form)
    class_instance = form.cleaned_data['class_instance']
    if not can_view_class(request.user, class_instance):
        return None, json_error(FORBIDDEN, status=403)
    return form.cleaned_data, None


@require_POST
@role_required(*ADMINS)
def marksheet_rank(request):
    """Rank a class/term/session cohort by overall percentage"""
    payload, error = _payload_or_error(request)
    if error:
        return error
    cohort, error = _cohort_or_error(request, payload)
    if error:
        return error

    ranks = MarksheetRankingService.rank_cohort(
        cohort['class_instance'].pk, cohort['term'], cohort['academic_session']
    )
    return JsonResponse({
        'success': True,
        'ranked': len(ranks),
        'ranks': [{'marksheet': str(pk), 'rank': rank} for pk, rank in ranks],
    })


@require_POST
@role_required(*ADMINS)
def marksheet_rebuild(request):
    """Re-run the pipeline for every scored student of a cohort"""
    payload, error = _payload_or_error(request)
    if error:
        return error
    cohort, error = _cohort_or_error(request, payload)
    if error:
        return error

    summary = MarksheetService.rebuild_cohort(
        cohort['class_instance'].pk, cohort['term'], cohort['academic_session']
    )
    return JsonResponse({'success': True, **summary})


@require_GET
@role_required(*ADMINS, User.TEACHER)
def marksheet_cohort_export(request):
    cohort, error = _cohort_or_error(request, {
        'class_instance': request.GET.get('class'),
        'term': request.GET.get('term'),
        'academic_session': request.GET.get('academic_session'),
    })
    if error:
        return error

    class_instance = cohort['class_instance']
    marksheets = Marksheet.objects.filter(
        class_instance=class_instance,
        term=cohort['term'],
        academic_session=cohort['academic_session'],
    ).select_related('student').order_by('-overall_percentage', 'student__first_name')

    filename = f"marksheets_{class_instance.grade}{class_instance.section}_{cohort['term']}_{cohort['academic_session']}.csv"
    return cohort_marksheets_csv_response(marksheets, filename)


# =============================================================================
# STUDY RECOMMENDATIONS
# =============================================================================

@require_GET
@role_required()
def study_recommendations(request, student_id):
    user = request.user
    student = get_object_or_404(User, pk=student_id, role=User.STUDENT)

    if user.is_student and user.pk != student.pk:
        return json_error(FORBIDDEN, status=403)
    if user.is_campus_admin and not can_manage_campus(user, student.campus_id):
        return json_error(FORBIDDEN, status=403)
    if user.is_teacher:
        class_ids = {class_id for _, class_id, _ in get_teacher_scopes(user)}
        if not student.enrollments.filter(class_instance_id__in=class_ids, is_active=True).exists():
            return json_error(FORBIDDEN, status=403)

    result = StudyRecommendationService.recommend(student)
    if result is None:
        return json_error("No scores found for this student", status=404)
    return JsonResponse({'success': True, **result})
