"""
DRF permission classes.

Two kinds of checks live here:
- HasTenantScopes / @requires_scopes: tenant scope enforcement, fed by the
  scopes TenantContextMiddleware resolved for request.membership.
- IsSuperAdmin / CanManageUsers / CanManageTenants: thin wrappers around
  the platform permission gate (apps.rbac.services.PermissionService).
"""
import logging
from functools import wraps

from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


def _as_scope_set(scopes):
    if not scopes:
        return set()
    if isinstance(scopes, str):
        return {scopes}
    return set(scopes)


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


class HasTenantScopes(BasePermission):
    """
    Require every scope the view (or the handler method) declares.

    Scopes come from @requires_scopes on the class or on a single handler
    method, or from a required_scopes attribute set in check_permissions().
    Platform super admins pass as long as a tenant is in context.

    Usage:
        @requires_scopes('crm:view')
        class LeadListView(APIView):
            permission_classes = [HasTenantScopes]
    """
    message = 'You do not have the required permissions for this tenant'

    def _required_scopes(self, request, view):
        handler = getattr(view, request.method.lower(), None)
        method_scopes = getattr(handler, 'required_scopes', None)
        if method_scopes:
            return _as_scope_set(method_scopes)
        return _as_scope_set(getattr(view, 'required_scopes', None))

    def has_permission(self, request, view):
        required_scopes = self._required_scopes(request, view)
        if not required_scopes:
            return True

        tenant = getattr(request, 'tenant', None)
        if tenant is None:
            self.message = 'A tenant context (X-TENANT-ID) is required for this endpoint'
            return False

        from apps.rbac.services import PermissionService
        if PermissionService.is_super_admin(getattr(request, 'user', None)):
            return True

        user_scopes = getattr(request, 'scopes', None) or set()
        missing_scopes = required_scopes - set(user_scopes)
        if missing_scopes:
            from apps.core.logging import SecurityLogger
            logger.warning(
                "Permission denied: missing scopes",
                extra={
                    'missing_scopes': sorted(missing_scopes),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            SecurityLogger.log_permission_denied(
                getattr(request, 'user', None), tenant, missing_scopes, _client_ip(request)
            )
            return False

        return True

    def has_object_permission(self, request, view, obj):
        """Objects carrying a tenant must belong to request.tenant."""
        request_tenant = getattr(request, 'tenant', None)
        if request_tenant is None:
            return False

        object_tenant_id = getattr(obj, 'tenant_id', None)
        if object_tenant_id is None:
            return True

        if object_tenant_id != request_tenant.id:
            logger.warning(
                "Object permission denied: object belongs to another tenant",
                extra={
                    'object_type': obj.__class__.__name__,
                    'object_id': str(getattr(obj, 'id', '')),
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False
        return True


def requires_scopes(*scopes):
    """
    Declare the scopes a view class or a single handler method needs.

    Usage:
        @requires_scopes('crm:view', 'crm:edit')
        class DealView(APIView): ...

        class DealListView(APIView):
            @requires_scopes('crm:view')
            def get(self, request): ...
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_scopes = set(scopes)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_scopes = set(scopes)
        return wrapped

    return decorator


class _GatePermission(BasePermission):
    """Base for permission classes that ask the platform permission gate."""
    gate_name = None

    def check(self, request):
        raise NotImplementedError

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if user is None or not getattr(user, 'is_authenticated', False):
            return False
        if self.check(request):
            return True

        from apps.core.logging import SecurityLogger
        SecurityLogger.log_permission_denied(
            user, getattr(request, 'tenant', None), self.gate_name, _client_ip(request)
        )
        return False


class IsSuperAdmin(_GatePermission):
    """Platform super admins (SUPER_ADMIN or GLOBAL_ADMIN) only."""
    message = 'Super admin access required'
    gate_name = 'is_super_admin'

    def check(self, request):
        from apps.rbac.services import PermissionService
        return PermissionService.is_super_admin(request.user)


class CanManageUsers(_GatePermission):
    """Users who may manage users, in the request's tenant or globally."""
    message = 'You are not allowed to manage users'
    gate_name = 'can_manage_users'

    def check(self, request):
        from apps.rbac.services import PermissionService
        return PermissionService.can_manage_users(request.user, getattr(request, 'tenant', None))


class CanManageTenants(_GatePermission):
    message = 'You are not allowed to manage tenants'
    gate_name = 'can_manage_tenants'

    def check(self, request):
        from apps.rbac.services import PermissionService
        return PermissionService.can_manage_tenants(request.user)
