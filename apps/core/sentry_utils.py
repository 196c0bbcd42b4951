"""
Sentry helpers for attaching platform context to error reports.

Every helper is a no-op when SENTRY_DSN is not configured.
"""
import sentry_sdk
from django.conf import settings


def _enabled():
    return bool(getattr(settings, 'SENTRY_DSN', None))


def set_tenant_context(tenant):
    """Attach tenant identity to the current scope."""
    if not _enabled() or tenant is None:
        return

    sentry_sdk.set_context("tenant", {
        "id": str(tenant.id),
        "name": tenant.name,
        "slug": tenant.slug,
        "is_active": tenant.is_active,
    })
    sentry_sdk.set_tag("tenant_id", str(tenant.id))


def set_user_context(user, membership=None):
    """
    Attach the acting user to the current scope.

    Only the id and platform role are sent; email stays out of Sentry.
    """
    if not _enabled() or user is None:
        return

    user_data = {
        "id": str(user.id),
        "platform_role": getattr(user, 'platform_role', None),
    }
    if membership is not None:
        user_data["tenant_id"] = str(membership.tenant_id)
    sentry_sdk.set_user(user_data)


def add_breadcrumb(category, message, level="info", data=None):
    if not _enabled():
        return
    sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


def capture_exception(exception, **contexts):
    """
    Capture an exception with extra named contexts.

    Args:
        exception: The exception to report
        **contexts: Mapping of context name to dict
    """
    if not _enabled():
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in contexts.items():
            scope.set_context(key, value)
        sentry_sdk.capture_exception(exception)
