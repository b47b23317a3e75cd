# accounts/views.py
from django.http import JsonResponse
from django.views.decorators.http import require_POST, require_GET
from django.views.decorators.cache import never_cache
from django.views.decorators.csrf import ensure_csrf_cookie
from django.contrib.auth import login, logout, authenticate
import logging

from schoolnet.middleware import clear_campus_cache
from utils.utils import parse_json_body, InvalidPayload, json_error, form_errors_response
from .decorators import role_required
from .forms import LoginForm, UserCreateForm
from .models import User

logger = logging.getLogger(__name__)


@never_cache
@require_POST
def login_view(request):
    """Session login with email (or username) and password"""
    try:
        payload = parse_json_body(request)
    except InvalidPayload as e:
        return json_error(str(e))

    form = LoginForm(payload)
    if not form.is_valid():
        return form_errors_response(form)

    user = authenticate(
        request,
        email=form.cleaned_data['email'],
        password=form.cleaned_data['password'],
    )
    if user is None:
        return json_error("Invalid email or password", status=401)

    login(request, user)
    clear_campus_cache(user)
    return JsonResponse({
        'success': True,
        'message': f"Welcome back, {user.display_name}!",
        'user': user.to_dict(),
    })


@require_POST
def logout_view(request):
    """Handle user logout"""
    if request.user.is_authenticated:
        clear_campus_cache(request.user)
        logger.info(f"User logged out: {request.user.email}")
    logout(request)
    return JsonResponse({'success': True, 'message': "You have been successfully logged out."})


@ensure_csrf_cookie
@require_GET
def csrf_view(request):
    """Sets the CSRF cookie for API clients"""
    return JsonResponse({'success': True})


@require_GET
@role_required()
def me_view(request):
    user = request.user
    campus = user.get_scope_campus()
    data = user.to_dict()
    data['scope_campus'] = {'id': str(campus.pk), 'name': campus.name} if campus else None
    return JsonResponse({'success': True, 'user': data})


@require_POST
@role_required(User.SUPER_ADMIN, User.CAMPUS_ADMIN)
def create_user_view(request):
    """
    Create an account.

    Super admins may create any role; campus admins create teachers and
    students, always on their own campus.
    """
    try:
        payload = parse_json_body(request)
    except InvalidPayload as e:
        return json_error(str(e))

    form = UserCreateForm(payload, creator=request.user)
    if not form.is_valid():
        return form_errors_response(form)

    user = form.save()
    logger.info(f"User {user.username} ({user.role}) created by {request.user.username}")
    return JsonResponse({
        'success': True,
        'message': "User registered successfully",
        'user': user.to_dict(),
    }, status=201)
