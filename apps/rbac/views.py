"""
RBAC REST API views.

Implements endpoints for:
- Platform user administration (/v1/admin/users)
- Per-user permission grants (/v1/admin/users/{id}/permissions)
- Canonical permission management (/v1/admin/permissions)
- Tenant roles (/v1/roles)
- Audit log viewing (/v1/audit-logs)
"""
import logging
import uuid

from django.db import transaction
from django.db.models import Prefetch
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiParameter
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIErrorHandler, ValidationError
from apps.core.permissions import CanManageUsers, HasTenantScopes, IsSuperAdmin, requires_scopes
from apps.core.pipeline import QueryFilterMixin, StandardResultsSetPagination
from apps.rbac.filters import AdminUserFilter, AuditLogFilter
from apps.rbac.models import User, TenantUser, Permission, Role, UserPermission, AuditLog
from apps.rbac.serializers import (
    AdminUserSerializer, UserCreateSerializer, UserUpdateSerializer,
    PermissionSerializer, PermissionCreateSerializer, RoleSerializer,
    RolePermissionsSerializer, UserPermissionSerializer, PermissionGrantSerializer,
    AuditLogSerializer
)
from apps.rbac.services import PermissionService, RBACService, UserAdminService

logger = logging.getLogger(__name__)


def _visible_users(request):
    """
    Users the caller may administer.

    Platform admins and holders of a global grant see everyone; tenant
    admins see the members of their current tenant.
    """
    queryset = User.objects.all().prefetch_related(
        Prefetch('tenant_memberships', queryset=TenantUser.objects.select_related('tenant'))
    )
    if PermissionService.is_super_admin(request.user):
        return queryset
    if any(PermissionService.has_global_permission(request.user, a) for a in ('ADMIN', 'MANAGE_USERS')):
        return queryset
    tenant = getattr(request, 'tenant', None)
    if tenant is None:
        return queryset.none()
    return queryset.filter(
        tenant_memberships__tenant=tenant, tenant_memberships__is_active=True
    ).distinct()


# ===== ADMIN USERS =====

class AdminUserListView(QueryFilterMixin, APIView):
    """
    GET  /v1/admin/users - search and list users
    POST /v1/admin/users - create a user, optionally inside a tenant

    Requires the can_manage_users gate.
    """
    permission_classes = [CanManageUsers]
    filterset_class = AdminUserFilter
    search_fields = ('email', 'first_name', 'last_name')

    @extend_schema(
        tags=['Admin - Users'],
        summary='List users',
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, OpenApiParameter.QUERY,
                             description='Search email, first and last name'),
            OpenApiParameter('tenant_id', OpenApiTypes.UUID, OpenApiParameter.QUERY,
                             description='Only members of this tenant'),
            OpenApiParameter('is_active', OpenApiTypes.BOOL, OpenApiParameter.QUERY),
            OpenApiParameter('page', OpenApiTypes.INT, OpenApiParameter.QUERY),
            OpenApiParameter('page_size', OpenApiTypes.INT, OpenApiParameter.QUERY,
                             description='Number of items per page (max 100)'),
        ],
        responses={200: AdminUserSerializer(many=True)},
    )
    def get(self, request):
        users = self.filter_queryset(_visible_users(request))

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(users.order_by('-created_at'), request, view=self)
        return paginator.get_paginated_response(AdminUserSerializer(page, many=True).data)

    @extend_schema(
        tags=['Admin - Users'],
        summary='Create user',
        request=UserCreateSerializer,
        responses={201: AdminUserSerializer, 400: None, 403: None, 409: None},
    )
    def post(self, request):
        serializer = UserCreateSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        # Tenant admins can only add users to their own tenant.
        if not PermissionService.can_manage_tenants(request.user):
            tenant = getattr(request, 'tenant', None)
            if data.get('tenant_id') and tenant is not None and data['tenant_id'] != tenant.id:
                return APIErrorHandler.forbidden('You can only add users to your current tenant', request)
            if tenant is not None:
                data['tenant_id'] = tenant.id

        user = UserAdminService.create_user(data, created_by=request.user, request=request)
        return Response(AdminUserSerializer(user).data, status=status.HTTP_201_CREATED)


class AdminUserDetailView(APIView):
    """
    GET    /v1/admin/users/{id}
    PUT    /v1/admin/users/{id}
    DELETE /v1/admin/users/{id} - deactivate and anonymise
    """
    permission_classes = [CanManageUsers]

    def get_object(self, request, user_id):
        return _visible_users(request).filter(id=user_id).first()

    @extend_schema(tags=['Admin - Users'], summary='Get user', responses={200: AdminUserSerializer, 404: None})
    def get(self, request, user_id):
        user = self.get_object(request, user_id)
        if user is None:
            return APIErrorHandler.not_found('User', request)
        return Response(AdminUserSerializer(user).data)

    @extend_schema(
        tags=['Admin - Users'],
        summary='Update user',
        request=UserUpdateSerializer,
        responses={200: AdminUserSerializer, 404: None, 409: None},
    )
    def put(self, request, user_id):
        user = self.get_object(request, user_id)
        if user is None:
            return APIErrorHandler.not_found('User', request)

        serializer = UserUpdateSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        user = UserAdminService.update_user(user, serializer.validated_data, updated_by=request.user, request=request)
        return Response(AdminUserSerializer(user).data)

    @extend_schema(
        tags=['Admin - Users'],
        summary='Delete user',
        description='Soft delete: deactivates the account, anonymises the email and ends all memberships.',
        responses={200: None, 400: None, 404: None},
    )
    def delete(self, request, user_id):
        user = self.get_object(request, user_id)
        if user is None:
            return APIErrorHandler.not_found('User', request)

        UserAdminService.delete_user(user, deleted_by=request.user, request=request)
        return Response({'success': True, 'message': 'User deleted'})


# ===== USER PERMISSION GRANTS =====

def _grant_tenant(request, data=None):
    """Tenant a grant applies to: an explicit tenant_id for platform admins, else the current tenant."""
    tenant_id = (data or {}).get('tenant_id') or request.query_params.get('tenant_id')
    if tenant_id and not isinstance(tenant_id, uuid.UUID):
        try:
            tenant_id = uuid.UUID(str(tenant_id))
        except ValueError:
            raise ValidationError('tenant_id must be a UUID', details={'field': 'tenant_id'})
    if tenant_id and PermissionService.can_manage_tenants(request.user):
        from apps.tenants.models import Tenant
        return Tenant.objects.filter(id=tenant_id, is_active=True).first()
    return getattr(request, 'tenant', None)


class AdminUserPermissionsView(APIView):
    """
    GET  /v1/admin/users/{id}/permissions - grants of the user
    POST /v1/admin/users/{id}/permissions - grant a permission in a tenant
    """
    permission_classes = [CanManageUsers]

    @extend_schema(
        tags=['Admin - Users'],
        summary='List user permission grants',
        responses={200: UserPermissionSerializer(many=True)},
    )
    def get(self, request, user_id):
        user = _visible_users(request).filter(id=user_id).first()
        if user is None:
            return APIErrorHandler.not_found('User', request)

        grants = UserPermission.objects.filter(tenant_user__user=user).select_related(
            'permission', 'tenant_user', 'granted_by'
        )
        if not PermissionService.can_manage_tenants(request.user):
            grants = grants.filter(tenant_user__tenant=request.tenant)

        return Response({
            'user_id': str(user.id),
            'permissions': UserPermissionSerializer(grants, many=True).data,
        })

    @extend_schema(
        tags=['Admin - Users'],
        summary='Grant permission',
        request=PermissionGrantSerializer,
        responses={201: UserPermissionSerializer, 400: None, 403: None, 404: None},
    )
    def post(self, request, user_id):
        user = _visible_users(request).filter(id=user_id).first()
        if user is None:
            return APIErrorHandler.not_found('User', request)

        serializer = PermissionGrantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        code = (serializer.validated_data.get('permission_code') or '').strip()
        if not code:
            return APIErrorHandler.validation_error('permission_code is required', field='permission_code',
                                                    request=request)

        tenant = _grant_tenant(request, serializer.validated_data)
        if tenant is None:
            return APIErrorHandler.bad_request('A tenant context is required to grant permissions', request)

        membership = TenantUser.objects.get_membership(tenant, user)
        if membership is None:
            return APIErrorHandler.bad_request('User is not a member of this tenant', request)

        grant = RBACService.grant_permission(
            membership,
            code,
            reason=serializer.validated_data.get('reason', ''),
            granted_by=request.user,
            expires_at=serializer.validated_data.get('expires_at'),
            request=request,
        )
        return Response(UserPermissionSerializer(grant).data, status=status.HTTP_201_CREATED)


class AdminUserPermissionRevokeView(APIView):
    """
    DELETE /v1/admin/users/{id}/permissions/{code}
    """
    permission_classes = [CanManageUsers]

    @extend_schema(tags=['Admin - Users'], summary='Revoke permission', responses={204: None, 404: None})
    def delete(self, request, user_id, code):
        user = _visible_users(request).filter(id=user_id).first()
        if user is None:
            return APIErrorHandler.not_found('User', request)

        tenant = _grant_tenant(request)
        membership = TenantUser.objects.get_membership(tenant, user) if tenant else None
        if membership is None or not RBACService.revoke_permission(membership, code, request.user, request):
            return APIErrorHandler.not_found('Permission grant', request)

        return Response(status=status.HTTP_204_NO_CONTENT)


# ===== CANONICAL PERMISSIONS =====

class AdminPermissionListView(APIView):
    """
    GET  /v1/admin/permissions - list, filter by module/action
    POST /v1/admin/permissions - create a permission

    Super admin only.
    """
    permission_classes = [IsSuperAdmin]

    @extend_schema(
        tags=['Admin - Permissions'],
        summary='List permissions',
        parameters=[
            OpenApiParameter('module', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('action', OpenApiTypes.STR, OpenApiParameter.QUERY),
        ],
        responses={200: PermissionSerializer(many=True)},
    )
    def get(self, request):
        permissions = Permission.objects.all()
        module = request.query_params.get('module')
        if module:
            permissions = permissions.filter(module=module.upper())
        action = request.query_params.get('action')
        if action:
            permissions = permissions.filter(action=action.upper())

        return Response({
            'permissions': PermissionSerializer(permissions, many=True).data,
            'count': permissions.count(),
        })

    @extend_schema(
        tags=['Admin - Permissions'],
        summary='Create permission',
        request=PermissionCreateSerializer,
        responses={201: PermissionSerializer, 400: None, 409: None},
    )
    def post(self, request):
        serializer = PermissionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        module, action, resource = data['module'].upper(), data['action'].upper(), data['resource'].strip()
        if Permission.objects.filter(module=module, action=action, resource=resource).exists():
            return APIErrorHandler.conflict('Permission already exists', request=request)

        permission = Permission.objects.create(
            module=module,
            action=action,
            resource=resource,
            name=data['name'],
            description=data['description'],
        )

        AuditLog.log_action(
            action='PERMISSION_CREATED',
            user=request.user,
            target_type='Permission',
            target_id=permission.id,
            metadata={'code': permission.code},
            request=request,
        )
        return Response(PermissionSerializer(permission).data, status=status.HTTP_201_CREATED)


# ===== ROLES =====

@requires_scopes('users:manage')
class RoleListView(APIView):
    """
    GET  /v1/roles - roles of the current tenant
    POST /v1/roles - create a custom role
    """
    permission_classes = [HasTenantScopes]

    @extend_schema(tags=['RBAC - Roles'], summary='List roles', responses={200: RoleSerializer(many=True)})
    def get(self, request):
        roles = Role.objects.for_tenant(request.tenant).prefetch_related('role_permissions__permission')
        return Response({'roles': RoleSerializer(roles, many=True).data})

    @extend_schema(tags=['RBAC - Roles'], summary='Create role', request=RoleSerializer,
                   responses={201: RoleSerializer, 400: None})
    def post(self, request):
        serializer = RoleSerializer(data=request.data, context={'tenant': request.tenant})
        serializer.is_valid(raise_exception=True)
        role = serializer.save(tenant=request.tenant, is_system=False)

        AuditLog.log_action(
            action='role_created',
            user=request.user,
            tenant=request.tenant,
            target_type='Role',
            target_id=role.id,
            metadata={'name': role.name},
            request=request,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@requires_scopes('users:manage')
class RolePermissionsView(APIView):
    """
    POST /v1/roles/{id}/permissions - add permissions to a role
    """
    permission_classes = [HasTenantScopes]

    @extend_schema(tags=['RBAC - Roles'], summary='Add permissions to role',
                   request=RolePermissionsSerializer, responses={200: RoleSerializer, 400: None, 404: None})
    def post(self, request, role_id):
        role = Role.objects.for_tenant(request.tenant).filter(id=role_id).first()
        if role is None:
            return APIErrorHandler.not_found('Role', request)

        serializer = RolePermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            RBACService.set_role_permissions(role, serializer.validated_data['permission_codes'], request.user)
        return Response(RoleSerializer(role).data)


@requires_scopes('users:manage')
class RoleMembersView(APIView):
    """
    POST   /v1/roles/{id}/members - assign the role to a member (user_id)
    DELETE /v1/roles/{id}/members - remove the role from a member (user_id)
    """
    permission_classes = [HasTenantScopes]

    def _resolve(self, request, role_id):
        role = Role.objects.for_tenant(request.tenant).filter(id=role_id).first()
        if role is None:
            return None, None, APIErrorHandler.not_found('Role', request)
        user_id = request.data.get('user_id') or request.query_params.get('user_id')
        if not user_id:
            return None, None, APIErrorHandler.validation_error('user_id is required', field='user_id',
                                                                request=request)
        membership = TenantUser.objects.filter(tenant=request.tenant, user_id=user_id, is_active=True).first()
        if membership is None:
            return None, None, APIErrorHandler.not_found('Member', request)
        return role, membership, None

    @extend_schema(tags=['RBAC - Roles'], summary='Assign role', responses={200: None, 404: None})
    def post(self, request, role_id):
        role, membership, error = self._resolve(request, role_id)
        if error is not None:
            return error
        RBACService.assign_role(membership, role, assigned_by=request.user)
        return Response({'success': True, 'roles': sorted(r.name for r in RBACService.get_tenant_user_roles(membership))})

    @extend_schema(tags=['RBAC - Roles'], summary='Remove role', responses={200: None, 404: None})
    def delete(self, request, role_id):
        role, membership, error = self._resolve(request, role_id)
        if error is not None:
            return error
        if not RBACService.remove_role(membership, role, removed_by=request.user):
            return APIErrorHandler.not_found('Role assignment', request)
        return Response({'success': True, 'roles': sorted(r.name for r in RBACService.get_tenant_user_roles(membership))})


# ===== AUDIT =====

class AuditLogListView(QueryFilterMixin, APIView):
    """
    GET /v1/audit-logs

    List audit logs for the tenant. Supports filtering by action,
    target_type, user and date range.

    Required scope: analytics:view (platform admins may read across tenants)
    """
    permission_classes = [IsAuthenticated, HasTenantScopes]
    filterset_class = AuditLogFilter

    def check_permissions(self, request):
        if PermissionService.is_super_admin(request.user):
            self.required_scopes = set()
        else:
            self.required_scopes = {'analytics:view'}
        super().check_permissions(request)

    @extend_schema(
        tags=['RBAC - Audit'],
        summary='List audit logs',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('target_type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('user_id', OpenApiTypes.UUID, OpenApiParameter.QUERY),
            OpenApiParameter('from_date', OpenApiTypes.DATETIME, OpenApiParameter.QUERY),
            OpenApiParameter('to_date', OpenApiTypes.DATETIME, OpenApiParameter.QUERY),
        ],
        responses={200: AuditLogSerializer(many=True)},
    )
    def get(self, request):
        logs = AuditLog.objects.select_related('user', 'tenant')
        tenant = getattr(request, 'tenant', None)
        if tenant is not None:
            logs = logs.filter(tenant=tenant)

        logs = self.filter_queryset(logs)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(logs, request, view=self)
        return paginator.get_paginated_response(AuditLogSerializer(page, many=True).data)
