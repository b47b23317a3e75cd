# utils/middleware.py

from utils.context import RequestContext, get_client_ip


class AuditContextMiddleware:
    """Runs each request with its authenticated user as the audit actor"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        with RequestContext(
            user=getattr(request, 'user', None),
            ip_address=get_client_ip(request),
            request_path=request.path,
        ):
            return self.get_response(request)
