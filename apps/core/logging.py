"""
Structured logging: PII masking, the JSON formatter and security events.
"""
import json
import logging
import re
import traceback

import sentry_sdk
from django.utils import timezone


class PIIMasker:
    """
    Mask personal data and credentials before anything reaches a log sink.
    """

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|authorization)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE,
    )
    BEARER_PATTERN = re.compile(r'Bearer\s+[A-Za-z0-9\-_.=]+')

    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'new_password',
        'token', 'access_token', 'refresh_token', 'jwt',
        'secret', 'secret_key', 'api_key', 'authorization',
        'phone', 'mobile', 'iban', 'salary',
    }

    @classmethod
    def mask_email(cls, text):
        def _mask(match):
            local, _, domain = match.group(0).partition('@')
            if len(local) > 1:
                local = local[0] + '*' * (len(local) - 1)
            return f"{local}@{domain}"
        return cls.EMAIL_PATTERN.sub(_mask, text)

    @classmethod
    def mask_text(cls, text):
        """Apply every masking pattern to a string; other types pass through."""
        if not isinstance(text, str):
            return text
        text = cls.BEARER_PATTERN.sub('Bearer ********', text)
        text = cls.SECRET_PATTERN.sub(r'\1: ********', text)
        text = cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)
        return cls.mask_email(text)

    @classmethod
    def _is_sensitive(cls, key):
        lowered = str(key).lower()
        return any(field in lowered for field in cls.SENSITIVE_FIELDS)

    @classmethod
    def mask_value(cls, value):
        if isinstance(value, dict):
            return cls.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [cls.mask_value(item) for item in value]
        return cls.mask_text(value)

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive keys and PII inside string values."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if cls._is_sensitive(key) and value and not isinstance(value, (dict, list)):
                masked[key] = '********'
            else:
                masked[key] = cls.mask_value(value)
        return masked


# Attributes every LogRecord carries; anything else came in through extra=.
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
    'request_id', 'tenant_id', 'user_id', 'task_id', 'task_name',
})


class JSONFormatter(logging.Formatter):
    """
    Render log records as one JSON object per line.

    request_id, tenant_id and user_id are lifted to top-level keys when the
    LoggingFilter (or an explicit extra=) supplied them. Remaining extras
    are masked and appended.
    """

    def format(self, record):
        log_data = {
            'timestamp': timezone.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'tenant_id', 'user_id', 'task_id', 'task_name'):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = str(value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data['exception'] = {
                'type': exc_type.__name__ if exc_type else None,
                'message': PIIMasker.mask_text(str(exc_value)),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            masked = PIIMasker.mask_value(value) if not PIIMasker._is_sensitive(key) else '********'
            try:
                json.dumps(masked)
                log_data[key] = masked
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Security event logging.

    Events go to the 'security' logger with structured context. Event types
    listed in CRITICAL_EVENTS are also sent to Sentry so they alert.
    """

    CRITICAL_EVENTS = {
        'cross_tenant_access',
        'privilege_escalation_attempt',
        'suspicious_activity',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event.

        Args:
            event_type: Event name, e.g. 'failed_login'
            level: Logger method name ('info', 'warning', 'error')
            **context: ip_address, user_id, tenant_id and anything else useful
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_time': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, user_agent: str = None, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            user_email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason,
        )

    @staticmethod
    def log_permission_denied(user, tenant, required, ip_address: str = None):
        """
        Log a denied request.

        Args:
            user: Acting user (may be None)
            tenant: Tenant in context (may be None)
            required: Scopes or gate name that were not satisfied
            ip_address: Client IP
        """
        if isinstance(required, (set, frozenset, tuple)):
            required = sorted(required)
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user.id) if user is not None and getattr(user, 'id', None) else None,
            tenant_id=str(tenant.id) if tenant is not None else None,
            required=required,
            ip_address=ip_address,
        )

    @staticmethod
    def log_cross_tenant_access(user, tenant_id, ip_address: str = None):
        """A user asked for a tenant they are not a member of."""
        SecurityLogger.log_event(
            'cross_tenant_access',
            level='error',
            user_id=str(user.id) if user is not None else None,
            tenant_id=str(tenant_id),
            ip_address=ip_address,
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None,
                                tenant_id: str = None, limit: str = None):
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email,
            tenant_id=tenant_id,
            limit=limit,
        )

    @staticmethod
    def log_suspicious_activity(activity_type: str, description: str, ip_address: str = None,
                                user_id: str = None, tenant_id: str = None, **additional_context):
        SecurityLogger.log_event(
            'suspicious_activity',
            level='error',
            activity_type=activity_type,
            description=description,
            ip_address=ip_address,
            user_id=user_id,
            tenant_id=tenant_id,
            **additional_context,
        )
