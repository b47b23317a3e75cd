# core/views.py

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_GET
from django.db.models import Q
from django.utils import timezone
import logging

from accounts.decorators import role_required
from accounts.models import User
from accounts.permissions import get_admin_campus
from schoolnet.middleware import clear_campus_cache
from utils.utils import (
    parse_filters, parse_bool, paginate_queryset, pagination_meta, parse_json_body,
    InvalidPayload, json_error, form_errors_response, merge_form_data,
)
from . import stats
from .forms import CampusForm
from .models import Campus
from .utils import parse_date, validate_date_range, log_user_action

logger = logging.getLogger(__name__)

ADMINS = (User.SUPER_ADMIN, User.CAMPUS_ADMIN)


def _payload_or_error(request):
    try:
        return parse_json_body(request), None
    except InvalidPayload as e:
        return None, json_error(str(e))


def _link_campus_admin(campus):
    """A campus admin belongs to the campus it runs"""
    admin = campus.campus_admin
    if admin is not None and admin.campus_id != campus.pk:
        admin.campus = campus
        admin.save(update_fields=['campus'])
        clear_campus_cache(admin)


@require_GET
def health_check(request):
    return JsonResponse({'status': 'ok', 'timestamp': timezone.now().isoformat()})


# =============================================================================
# CAMPUSES
# =============================================================================

@require_http_methods(["GET", "POST"])
@role_required(*ADMINS)
def campus_collection(request):
    """List campuses or create one (super admin)"""
    user = request.user

    if request.method == 'POST':
        if not user.is_super_admin:
            return json_error("You're not allowed to perform this action", status=403)
        payload, error = _payload_or_error(request)
        if error:
            return error
        form = CampusForm(payload)
        if not form.is_valid():
            return form_errors_response(form)
        campus = form.save()
        _link_campus_admin(campus)
        log_user_action(user, 'Campus Created', {'campus': campus.code})
        return JsonResponse({'success': True, 'campus': campus.to_dict()}, status=201)

    if not user.is_super_admin:
        campus = get_admin_campus(user)
        if campus is None:
            return json_error("No campus assigned to this admin", status=404)
        return JsonResponse({'success': True, 'campuses': [campus.to_dict(with_counts=True)]})

    filters = parse_filters(request, ['q', 'city', 'is_active'])
    campuses = Campus.objects.select_related('campus_admin')
    if filters['q']:
        campuses = campuses.filter(Q(name__icontains=filters['q']) | Q(code__icontains=filters['q']))
    if filters['city']:
        campuses = campuses.filter(city__iexact=filters['city'])
    if filters['is_active'] is not None:
        campuses = campuses.filter(is_active=parse_bool(filters['is_active']))

    page_obj, paginator = paginate_queryset(request, campuses)
    return JsonResponse({
        'success': True,
        'campuses': [c.to_dict() for c in page_obj],
        'pagination': pagination_meta(page_obj, paginator),
    })


@require_http_methods(["GET", "PATCH", "DELETE"])
@role_required(*ADMINS)
def campus_detail(request, pk):
    user = request.user
    campus = get_object_or_404(Campus, pk=pk)

    if not user.is_super_admin:
        own = get_admin_campus(user)
        if own is None or own.pk != campus.pk or request.method != 'GET':
            return json_error("You're not allowed to perform this action", status=403)

    if request.method == 'GET':
        return JsonResponse({'success': True, 'campus': campus.to_dict(with_counts=True)})

    if request.method == 'DELETE':
        # Soft delete; the post_save handler deactivates the campus's members
        campus.is_active = False
        campus.save()
        log_user_action(user, 'Campus Deactivated', {'campus': campus.code}, level='WARNING')
        return JsonResponse({'success': True, 'message': "Campus deleted (soft)"})

    payload, error = _payload_or_error(request)
    if error:
        return error
    form = CampusForm(merge_form_data(campus, payload, CampusForm.Meta.fields), instance=campus)
    if not form.is_valid():
        return form_errors_response(form)
    campus = form.save()
    _link_campus_admin(campus)
    return JsonResponse({'success': True, 'campus': campus.to_dict()})


# =============================================================================
# DASHBOARD
# =============================================================================

def _dashboard_campus(request):
    """(campus, error): campus admins are pinned to their campus, super admins may pass ?campus="""
    if request.user.is_super_admin:
        campus_id = request.GET.get('campus')
        if not campus_id:
            return None, None
        return get_object_or_404(Campus, pk=campus_id), None

    campus = get_admin_campus(request.user)
    if campus is None:
        return None, json_error("Campus not found", status=404)
    return campus, None


@require_GET
@role_required(User.SUPER_ADMIN)
def dashboard_overview(request):
    return JsonResponse({'success': True, 'data': stats.get_overview_statistics()})


@require_GET
@role_required(*ADMINS)
def dashboard_top_performers(request):
    campus, error = _dashboard_campus(request)
    if error:
        return error
    return JsonResponse({'success': True, 'data': stats.get_top_performers(campus)})


@require_GET
@role_required(User.SUPER_ADMIN)
def dashboard_campus_comparison(request):
    return JsonResponse({'success': True, 'data': stats.get_campus_comparison()})


@require_GET
@role_required(*ADMINS)
def dashboard_drop_ratio(request):
    campus, error = _dashboard_campus(request)
    if error:
        return error

    filters = parse_filters(request, ['from', 'to'])
    start_date = end_date = None
    if filters['from'] and filters['to']:
        try:
            start_date, end_date = parse_date(filters['from']), parse_date(filters['to'])
        except ValueError:
            return json_error("Dates must be YYYY-MM-DD")
        is_valid, message = validate_date_range(start_date, end_date)
        if not is_valid:
            return json_error(message)

    return JsonResponse({'success': True, 'data': stats.get_drop_ratio(campus, start_date, end_date)})


@require_GET
@role_required(*ADMINS)
def dashboard_trends(request):
    """Monthly attendance trend and subject performance"""
    campus, error = _dashboard_campus(request)
    if error:
        return error

    year = request.GET.get('year')
    return JsonResponse({
        'success': True,
        'data': {
            'attendance_trend': stats.get_attendance_trend(campus, year=int(year) if year and year.isdigit() else None),
            'subject_performance': stats.get_subject_performance(campus),
        },
    })
