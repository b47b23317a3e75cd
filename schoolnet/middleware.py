# schoolnet/middleware.py

"""
Campus scope middleware.

Resolves the campus an authenticated user works in and attaches it to the
request as ``request.campus``:

- super-admin   -> None (all campuses)
- campus-admin  -> the active campus they administer
- teacher       -> user.campus
- student       -> user.campus

Views use ``request.campus`` to narrow querysets and to reject writes that
target another campus. The lookup is cached per user because campus
assignments change rarely.
"""

import logging
from django.core.cache import cache

logger = logging.getLogger(__name__)


class CampusScopeMiddleware:
    """Attach the caller's campus to every request"""

    # Paths that never need a campus
    SYSTEM_PATHS = ['/admin/', '/static/', '/health/']

    # Cache timeout (5 minutes)
    CACHE_TIMEOUT = 300

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.campus = None

        if not self.is_system_path(request.path):
            try:
                request.campus = self.determine_campus(request)
            except Exception:
                # A broken scope lookup must not take the API down; views
                # treat a missing campus as "no access" for scoped roles.
                logger.exception("CampusScopeMiddleware failure - continuing without campus")
                request.campus = None

        return self.get_response(request)

    def is_system_path(self, path):
        """Check if path is a system path that never carries a campus."""
        return any(path.startswith(p) for p in self.SYSTEM_PATHS)

    def determine_campus(self, request):
        """
        Determine the campus for the current user.

        Returns:
            Campus or None
        """
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return None

        if user.is_super_admin:
            return None

        cache_key = f"user_campus_{user.pk}"
        campus_id = cache.get(cache_key)

        if campus_id is None:
            campus = user.get_scope_campus()
            if campus is None:
                logger.warning(f"User {user.username} ({user.role}) has no campus assigned")
                return None
            cache.set(cache_key, campus.pk, self.CACHE_TIMEOUT)
            return campus

        from core.models import Campus
        campus = Campus.objects.filter(pk=campus_id, is_active=True).first()
        if campus is None:
            cache.delete(cache_key)
        return campus


def clear_campus_cache(user):
    """Drop the cached campus of a user (call after reassignment)."""
    cache.delete(f"user_campus_{user.pk}")
