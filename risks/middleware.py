"""
Request logging for the API.
"""

import json
import logging
import time

logger = logging.getLogger(__name__)

API_PREFIX = '/api/'
# Bodies sent to these paths are never logged
SENSITIVE_PATHS = ('/auth/', '/login', '/register', '/token')
SENSITIVE_FIELDS = {'password', 'password_confirmation', 'token', 'secret'}


def _user_id(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user.pk
    return None


def _request_data(request):
    """Query params and JSON body, minus anything sensitive."""
    data = {key: value for key, value in request.GET.items()}
    if any(marker in request.path for marker in SENSITIVE_PATHS):
        return data
    if request.method in ('POST', 'PUT', 'PATCH') and request.content_type == 'application/json':
        try:
            body = json.loads(request.body or b'{}')
        except ValueError:
            body = None
        if isinstance(body, dict):
            data.update({key: value for key, value in body.items() if key not in SENSITIVE_FIELDS})
    return data


class RequestLoggingMiddleware:
    """Log each API request and its response with the time it took."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.path.startswith(API_PREFIX):
            return self.get_response(request)

        start = time.monotonic()
        logger.info(
            f"API Request: {request.method} {request.get_full_path()} "
            f"user={_user_id(request)} ip={request.META.get('REMOTE_ADDR')} "
            f"data={_request_data(request)}"
        )

        response = self.get_response(request)

        duration = round((time.monotonic() - start) * 1000, 2)
        logger.info(
            f"API Response: {request.method} {request.get_full_path()} "
            f"status={response.status_code} duration_ms={duration} user={_user_id(request)}"
        )
        return response
