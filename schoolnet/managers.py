# managers.py

"""
Campus-scoped querysets.

Every campus owns its classes, exams, scores and attendance. Rows carry a
campus foreign key and requests are narrowed to the caller's campus through
these helpers instead of being filtered by hand in every view.
"""

from django.db import models
import logging

logger = logging.getLogger(__name__)


class CampusQuerySet(models.QuerySet):
    """QuerySet with campus and activity helpers"""

    campus_field = 'campus'

    def for_campus(self, campus):
        """Restrict to a single campus. ``None`` means no restriction."""
        if campus is None:
            return self
        return self.filter(**{self.campus_field: campus})

    def active(self):
        return self.filter(is_active=True)

    def for_user(self, user):
        """
        Restrict to what the user may see by campus.

        Super-admins see everything, everyone else is pinned to their campus.
        Users with no campus at all see nothing.
        """
        if user is None or not user.is_authenticated:
            return self.none()

        if user.is_super_admin:
            return self

        campus = user.get_scope_campus()
        if campus is None:
            logger.debug(f"User {user.username} has no campus, returning empty queryset")
            return self.none()

        return self.for_campus(campus)


class CampusManager(models.Manager.from_queryset(CampusQuerySet)):
    """Default manager for campus-owned models"""
    pass
