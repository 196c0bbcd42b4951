"""
Tenant context middleware for multi-tenant isolation.

Resolves the session (JWT bearer token) and the tenant context for every
non-public request, ensuring all requests are properly scoped to a tenant.
"""
import logging
import uuid

from django.http import JsonResponse
from django.utils import timezone
from django.utils.deprecation import MiddlewareMixin

from apps.core.exceptions import ErrorCode, build_error_payload
from apps.core.logging import SecurityLogger
from apps.core.middleware import set_log_context
from apps.core.sentry_utils import set_tenant_context, set_user_context

from .models import Tenant

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Resolve user, tenant, membership and scopes for a request.

    This middleware:
    1. Validates the Authorization: Bearer <jwt> header
    2. Picks the tenant from X-TENANT-ID, or the user's primary membership
    3. Rejects unknown (404), inactive (403) and foreign (403) tenants
    4. Attaches request.tenant, request.membership, request.scopes
    5. Updates last_seen_at on the membership

    Requests without a token continue anonymously; DRF answers them with
    401 on protected views. Public endpoints bypass the middleware.
    """

    PUBLIC_PATHS = [
        '/v1/health',
        '/v1/auth/register',
        '/v1/auth/login',
        '/schema',
        '/admin/',
    ]

    def process_request(self, request):
        if not getattr(request, 'request_id', None):
            request.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        set_log_context(request_id=request.request_id)

        request.tenant = None
        request.membership = None
        request.scopes = set()

        if self._is_public_path(request.path):
            return None

        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            return None

        from apps.rbac.services import AuthService, PermissionService

        user = AuthService.get_user_from_jwt(auth_header[len('Bearer '):].strip())
        if user is None:
            logger.info("Rejected invalid or expired token", extra={'request_id': request.request_id})
            return self._error_response(
                'Invalid or expired token', 401, ErrorCode.UNAUTHORIZED, request=request
            )

        request.user = user
        set_log_context(user_id=str(user.id))
        set_user_context(user)

        tenant_id = request.headers.get('X-TENANT-ID')
        if tenant_id:
            tenant = self._get_tenant(tenant_id)
            if tenant is None:
                logger.warning(
                    f"Unknown tenant ID: {tenant_id}",
                    extra={'request_id': request.request_id}
                )
                return self._error_response('Tenant not found', 404, ErrorCode.NOT_FOUND, request=request)
        else:
            from apps.rbac.models import TenantUser
            primary = TenantUser.objects.primary_for_user(user)
            if primary is None:
                return None
            tenant = primary.tenant

        if not tenant.is_active:
            logger.info(
                f"Inactive tenant attempted access: {tenant.id}",
                extra={'request_id': request.request_id}
            )
            return self._error_response(
                'This tenant is suspended', 403, ErrorCode.TENANT_SUSPENDED, request=request
            )

        return self._attach_membership(request, user, tenant, PermissionService)

    def _attach_membership(self, request, user, tenant, permission_service):
        from apps.rbac.models import TenantUser
        from apps.rbac.services import RBACService

        membership = TenantUser.objects.get_membership(tenant, user)
        is_super_admin = permission_service.is_super_admin(user)

        if membership is None or not membership.is_usable:
            if not is_super_admin:
                SecurityLogger.log_cross_tenant_access(
                    user, tenant.id, request.META.get('REMOTE_ADDR')
                )
                return self._error_response(
                    'You do not have access to this tenant', 403, ErrorCode.FORBIDDEN, request=request
                )
            membership = None

        request.tenant = tenant
        request.membership = membership
        request.scopes = RBACService.resolve_scopes(membership) if membership else set()

        set_log_context(tenant_id=str(tenant.id))
        set_tenant_context(tenant)
        set_user_context(user, membership)

        if membership is not None:
            try:
                TenantUser.objects.filter(id=membership.id).update(last_seen_at=timezone.now())
            except Exception as e:
                logger.warning(
                    f"Failed to update last_seen_at for membership {membership.id}: {e}",
                    extra={'request_id': request.request_id}
                )

        logger.debug(
            f"RBAC context set: {user.email} @ {tenant.slug} with {len(request.scopes)} scopes",
            extra={'request_id': request.request_id, 'tenant_id': str(tenant.id)}
        )
        return None

    def _is_public_path(self, path):
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)

    @staticmethod
    def _get_tenant(tenant_id):
        try:
            return Tenant.objects.filter(id=uuid.UUID(str(tenant_id))).first()
        except ValueError:
            return None

    @staticmethod
    def _error_response(message, status, code, request=None, details=None):
        payload = build_error_payload(
            message, status, code, details, getattr(request, 'request_id', None)
        )
        return JsonResponse(payload, status=status)
