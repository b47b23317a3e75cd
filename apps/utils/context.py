# utils/context.py

"""
Who is acting, and from where.

The actor is kept per thread for the lifetime of a request (or of a
management command run) so that BaseModel.save() can stamp audit fields on
every record written meanwhile, including the marksheets and attendance
rows that signal handlers write on the actor's behalf.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_state = local()


def get_request_context():
    """The active actor dict, or None outside any request or command"""
    return getattr(_state, 'actor', None)


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        # first hop is the client
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class RequestContext:
    """
    Makes ``user`` the actor for the enclosed block.

    AuditContextMiddleware wraps every request in one; management commands
    that rebuild derived records use it to name the admin behind the run:

        with RequestContext(user=admin, request_path='manage.py rebuild_marksheets'):
            MarksheetService.rebuild_cohort(...)

    Blocks nest; leaving one restores the outer actor.
    """

    def __init__(self, user=None, ip_address=None, request_path=None):
        if user is not None and not user.is_authenticated:
            user = None
        self.actor = {'user': user, 'ip_address': ip_address, 'request_path': request_path or ''}
        self._outer = None

    def __enter__(self):
        self._outer = get_request_context()
        _state.actor = self.actor
        logger.debug(f"Acting as {self.actor['user']} from {self.actor['ip_address']}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _state.actor = self._outer
        return False
