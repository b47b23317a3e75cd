# accounts/decorators.py

from functools import wraps
import logging

from utils.utils import json_error

logger = logging.getLogger(__name__)


def role_required(*roles):
    """
    Restrict a JSON view to authenticated users holding one of ``roles``.

    Anonymous callers get 401, authenticated callers with another role 403.
    Django superusers are treated as super-admins.

    Example:
        @role_required(User.SUPER_ADMIN, User.CAMPUS_ADMIN)
        def exam_create(request): ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = request.user
            if not user.is_authenticated:
                return json_error("Authentication required", status=401)

            role = user.SUPER_ADMIN if user.is_super_admin else user.role
            if roles and role not in roles:
                logger.warning(
                    f"Forbidden: {user.username} ({user.role}) tried {request.method} {request.path}"
                )
                return json_error("You're not allowed to perform this action", status=403)

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
