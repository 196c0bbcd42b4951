"""
Request tracing middleware and the log filter that reads its context.
"""
import logging
import threading
import uuid

from django.utils.deprecation import MiddlewareMixin

_log_context = threading.local()


def set_log_context(**values):
    """Attach values (request_id, tenant_id, user_id) to the current thread's log context."""
    for key, value in values.items():
        setattr(_log_context, key, None if value is None else str(value))


def clear_log_context():
    _log_context.__dict__.clear()


def get_log_context():
    return dict(_log_context.__dict__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Give every request an id.

    The id is taken from X-Request-ID when the caller supplies one, stored
    on request.request_id, pushed into the log context and echoed back in
    the X-Request-ID response header.
    """

    def process_request(self, request):
        clear_log_context()
        request.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        set_log_context(request_id=request.request_id)

    def process_response(self, request, response):
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response['X-Request-ID'] = request_id
        clear_log_context()
        return response


class LoggingFilter(logging.Filter):
    """Copy request_id, tenant_id and user_id from the log context onto records."""

    def filter(self, record):
        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
