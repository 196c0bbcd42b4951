"""
Error taxonomy and the JSON error envelope used by every endpoint.

All failures leave the API in the same shape:

    {
        "error": "Human readable message",
        "status": 404,
        "details": {"code": "NOT_FOUND", ...},
        "timestamp": "2024-01-01T00:00:00+00:00",
        "request_id": "..."
    }

Views either raise a PlatformException (picked up by
custom_exception_handler) or return one of the APIErrorHandler helpers
directly.
"""
import logging
from enum import Enum

from django.http import Http404, JsonResponse
from django.utils import timezone
from django_ratelimit.exceptions import Ratelimited
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine readable error codes placed in details.code."""
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    BAD_REQUEST = 'BAD_REQUEST'
    NOT_FOUND = 'NOT_FOUND'
    RESOURCE_EXISTS = 'RESOURCE_EXISTS'
    RATE_LIMIT_EXCEEDED = 'RATE_LIMIT_EXCEEDED'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
    SERVICE_UNAVAILABLE = 'SERVICE_UNAVAILABLE'
    TENANT_SUSPENDED = 'TENANT_SUSPENDED'
    MODEL_NOT_AVAILABLE = 'MODEL_NOT_AVAILABLE'


STATUS_TO_CODE = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.BAD_REQUEST,
    409: ErrorCode.RESOURCE_EXISTS,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def build_error_payload(message, status_code, code=None, details=None, request_id=None):
    """
    Build the error envelope as a plain dict.

    Shared by DRF responses and the plain Django JsonResponse returned from
    middleware, where no DRF machinery is available.
    """
    if code is None:
        code = STATUS_TO_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)
    payload_details = {'code': code.value if isinstance(code, ErrorCode) else code}
    if details:
        payload_details.update(details)

    return {
        'error': message,
        'status': status_code,
        'details': payload_details,
        'timestamp': timezone.now().isoformat(),
        'request_id': request_id,
    }


class APIErrorHandler:
    """
    Factory for error responses.

    Each helper returns a DRF Response carrying the standard envelope. Pass
    the current request to stamp request_id onto the payload.
    """

    @staticmethod
    def create_error(message, status_code, code=None, details=None, request=None):
        request_id = getattr(request, 'request_id', None) if request is not None else None
        return Response(
            build_error_payload(message, status_code, code, details, request_id),
            status=status_code,
        )

    @classmethod
    def unauthorized(cls, message='Unauthorized', request=None):
        return cls.create_error(message, status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED, request=request)

    @classmethod
    def forbidden(cls, message='Forbidden', request=None, details=None):
        return cls.create_error(message, status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, details, request)

    @classmethod
    def not_found(cls, resource='Resource', request=None):
        return cls.create_error(
            f'{resource} not found',
            status.HTTP_404_NOT_FOUND,
            ErrorCode.NOT_FOUND,
            {'resource': resource},
            request,
        )

    @classmethod
    def validation_error(cls, message='Validation failed', field=None, errors=None, request=None):
        details = {}
        if field:
            details['field'] = field
        if errors:
            details['fields'] = errors
        return cls.create_error(message, status.HTTP_400_BAD_REQUEST, ErrorCode.VALIDATION_ERROR, details, request)

    @classmethod
    def bad_request(cls, message, request=None, details=None):
        return cls.create_error(message, status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, details, request)

    @classmethod
    def conflict(cls, message, field=None, request=None):
        details = {'field': field} if field else None
        return cls.create_error(message, status.HTTP_409_CONFLICT, ErrorCode.RESOURCE_EXISTS, details, request)

    @classmethod
    def rate_limit_exceeded(cls, retry_after=60, request=None):
        response = cls.create_error(
            'Rate limit exceeded. Please try again later.',
            status.HTTP_429_TOO_MANY_REQUESTS,
            ErrorCode.RATE_LIMIT_EXCEEDED,
            {'retry_after': retry_after},
            request,
        )
        response['Retry-After'] = str(retry_after)
        return response

    @classmethod
    def internal_error(cls, message='Internal server error', request=None):
        return cls.create_error(message, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, request=request)

    @classmethod
    def service_unavailable(cls, service, request=None):
        return cls.create_error(
            f'{service} is temporarily unavailable',
            status.HTTP_503_SERVICE_UNAVAILABLE,
            ErrorCode.SERVICE_UNAVAILABLE,
            {'service': service},
            request,
        )

    @classmethod
    def model_not_available(cls, model_name, request=None):
        return cls.create_error(
            f'Model {model_name} is not available',
            status.HTTP_503_SERVICE_UNAVAILABLE,
            ErrorCode.MODEL_NOT_AVAILABLE,
            {'model': model_name},
            request,
        )

    @classmethod
    def tenant_suspended(cls, request=None):
        return cls.create_error(
            'This tenant has been suspended',
            status.HTTP_403_FORBIDDEN,
            ErrorCode.TENANT_SUSPENDED,
            request=request,
        )


class PlatformException(Exception):
    """Base exception for platform errors that map onto the error envelope."""
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(PlatformException):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class PermissionDeniedError(PlatformException):
    status_code = 403
    code = ErrorCode.FORBIDDEN


class TenantSuspended(PlatformException):
    status_code = 403
    code = ErrorCode.TENANT_SUSPENDED


class ValidationError(PlatformException):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR


class ResourceNotFound(PlatformException):
    status_code = 404
    code = ErrorCode.NOT_FOUND


class ResourceConflict(PlatformException):
    """Raised on unique-value clashes (duplicate slug, email, permission)."""
    status_code = 409
    code = ErrorCode.RESOURCE_EXISTS


class RateLimitExceeded(PlatformException):
    status_code = 429
    code = ErrorCode.RATE_LIMIT_EXCEEDED


class ServiceUnavailable(PlatformException):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE


def _retry_after_for(path):
    if path and '/auth/register' in path:
        return 3600
    return 60


def _client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def ratelimit_view(request, exception):
    """
    View used by django-ratelimit when a blocking limit is hit.

    Returns 429 with a Retry-After header instead of the default 403.
    """
    from apps.core.logging import SecurityLogger

    retry_after = _retry_after_for(request.path)
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=_client_ip(request),
        limit='blocking limit',
    )

    payload = build_error_payload(
        'Rate limit exceeded. Please try again later.',
        429,
        ErrorCode.RATE_LIMIT_EXCEEDED,
        {'retry_after': retry_after},
        getattr(request, 'request_id', None),
    )
    response = JsonResponse(payload, status=429)
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    DRF exception handler producing the platform error envelope.

    Known exceptions keep their status code; anything DRF does not
    recognise becomes a generic 500 and is reported to Sentry.
    """
    from apps.core.sentry_utils import capture_exception

    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    log_extra = {
        'request_id': request_id,
        'path': request.path if request else None,
        'method': request.method if request else None,
    }

    if isinstance(exc, Ratelimited):
        retry_after = _retry_after_for(request.path if request else None)
        logger.warning("Rate limit exceeded", extra=log_extra)
        return APIErrorHandler.rate_limit_exceeded(retry_after, request)

    if isinstance(exc, PlatformException):
        logger.info(
            f"{exc.__class__.__name__}: {exc.message}",
            extra=log_extra,
        )
        return Response(
            build_error_payload(exc.message, exc.status_code, exc.code, exc.details, request_id),
            status=exc.status_code,
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={**log_extra, 'exception': str(exc)},
            exc_info=True,
        )
        capture_exception(exc, request=log_extra)
        return APIErrorHandler.internal_error(request=request)

    logger.warning(
        f"API exception: {exc.__class__.__name__}",
        extra={**log_extra, 'status_code': response.status_code},
    )

    if isinstance(exc, drf_exceptions.ValidationError):
        errors = response.data if isinstance(response.data, dict) else {'non_field_errors': response.data}
        payload = build_error_payload(
            'Validation failed', response.status_code, ErrorCode.VALIDATION_ERROR,
            {'fields': errors}, request_id,
        )
    elif isinstance(exc, Http404):
        payload = build_error_payload('Not found', 404, ErrorCode.NOT_FOUND, None, request_id)
    else:
        message = response.data.get('detail', str(exc)) if isinstance(response.data, dict) else str(exc)
        payload = build_error_payload(str(message), response.status_code, None, None, request_id)

    response.data = payload
    return response
