# utils/utils.py

import json

from django.core.paginator import Paginator, EmptyPage, PageNotAnInteger
from django.http import JsonResponse

# =============================================================================
# CORE UTILITY HELPER FUNCTIONS
# =============================================================================

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def paginate_queryset(request, queryset, per_page=DEFAULT_PAGE_SIZE):
    """
    Paginate a queryset (or list) from ?page= and ?limit=.

    Returns:
        tuple: (page_obj, paginator)
    """
    try:
        per_page = int(request.GET.get('limit', per_page))
    except (TypeError, ValueError):
        per_page = DEFAULT_PAGE_SIZE
    per_page = max(1, min(per_page, MAX_PAGE_SIZE))

    paginator = Paginator(queryset, per_page)
    page = request.GET.get('page', 1)
    try:
        page_obj = paginator.page(page)
    except PageNotAnInteger:
        page_obj = paginator.page(1)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages)
    return page_obj, paginator


def pagination_meta(page_obj, paginator):
    """Pagination block shared by every list endpoint"""
    return {
        'page': page_obj.number,
        'limit': paginator.per_page,
        'total_pages': paginator.num_pages,
        'total_count': paginator.count,
        'has_previous': page_obj.has_previous(),
        'has_next': page_obj.has_next(),
    }


def parse_filters(request, filter_keys):
    """
    Extract filter values from request.GET.
    filter_keys: list of filter names to extract
    Returns dict: {key: value or None}
    """
    filters = {}
    for key in filter_keys:
        value = request.GET.get(key, '').strip()
        filters[key] = value if value else None
    return filters


def parse_bool(value):
    if value is None:
        return None
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


# =============================================================================
# JSON REQUEST / RESPONSE HELPERS
# =============================================================================

class InvalidPayload(Exception):
    """Request body is not a JSON object"""


def parse_json_body(request):
    """
    Decode a JSON object from the request body.

    Raises:
        InvalidPayload: body is not valid JSON or not an object
    """
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidPayload("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise InvalidPayload("Request body must be a JSON object")
    return payload


def json_error(message, status=400, **extra):
    body = {'success': False, 'error': message}
    body.update(extra)
    return JsonResponse(body, status=status)


def form_errors_response(form, status=400):
    """400 response carrying a form's field errors"""
    return json_error(
        "Validation failed",
        status=status,
        errors={field: [str(e) for e in errors] for field, errors in form.errors.items()},
    )


def validation_error_response(exc, status=400):
    """400 response for a django ValidationError"""
    if hasattr(exc, 'message_dict'):
        return json_error("Validation failed", status=status, errors=exc.message_dict)
    return json_error("; ".join(exc.messages), status=status)


def merge_form_data(instance, payload, fields):
    """
    Form data for a partial update: current values of ``fields`` overlaid
    with whatever the payload provides.
    """
    from django.forms.models import model_to_dict

    data = model_to_dict(instance, fields=fields)
    for key, value in list(data.items()):
        if hasattr(value, 'pk'):
            data[key] = value.pk
        elif isinstance(value, (list, tuple)):
            data[key] = [getattr(item, 'pk', item) for item in value]
    data.update({key: value for key, value in payload.items() if key in fields})
    return data
