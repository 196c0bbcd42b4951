"""
RBAC and Authentication services.

Implements:
- PermissionService: the permission gate (is_super_admin, can_manage_users,
  can_manage_tenants) consulted before administrative mutations
- RBACService: tenant scope resolution, permission overrides and roles
- AuthService: JWT authentication, registration and login
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Set, Optional, Dict, Any

import jwt
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from apps.core.cache import CacheKeys, CacheService, CacheTTL
from apps.core.exceptions import PermissionDeniedError, ResourceConflict, ValidationError
from apps.core.logging import SecurityLogger
from apps.rbac.models import (
    User, TenantUser, Permission, Role, UserPermission,
    UserGlobalPermission, TenantUserRole, AuditLog
)

logger = logging.getLogger(__name__)

ADMIN_MODULE = 'ADMIN'


class PermissionService:
    """
    Boolean permission gate.

    Every check is a lookup against membership, role and grant rows. Any
    matching active grant allows; no grant denies. Expired grants and
    grants with granted=False do not count.
    """

    SUPER_ADMIN_ROLES = (User.PlatformRole.SUPER_ADMIN, User.PlatformRole.GLOBAL_ADMIN)

    @classmethod
    def is_super_admin(cls, user) -> bool:
        if user is None or not getattr(user, 'is_authenticated', False):
            return False
        if not user.is_active:
            return False
        return user.is_superuser or user.platform_role in cls.SUPER_ADMIN_ROLES

    @classmethod
    def is_admin_in_any_tenant(cls, user) -> bool:
        """True when any active membership carries the ADMIN tenant permission."""
        if user is None or not getattr(user, 'is_authenticated', False):
            return False
        now = timezone.now()
        memberships = TenantUser.objects.filter(
            user=user, is_active=True, invite_status=TenantUser.InviteStatus.ACCEPTED
        )
        via_role = Permission.objects.filter(
            module=ADMIN_MODULE, action='ADMIN',
            role_permissions__role__user_roles__tenant_user__in=memberships,
        ).exists()
        if via_role:
            return True
        return UserPermission.objects.active(now).filter(
            tenant_user__in=memberships,
            permission__module=ADMIN_MODULE,
            permission__action='ADMIN',
        ).exists()

    @classmethod
    def has_global_permission(cls, user, action: str, module: str = ADMIN_MODULE) -> bool:
        if user is None or not getattr(user, 'is_authenticated', False):
            return False
        return UserGlobalPermission.objects.active().filter(
            user=user,
            permission__module=module.upper(),
            permission__action=action.upper(),
        ).exists()

    @classmethod
    def has_tenant_permission(cls, user, tenant, action: str, module: str = ADMIN_MODULE) -> bool:
        """
        Check a permission inside one tenant.

        Requires an active, accepted membership. Then an override grant, a
        role permission or a global grant is enough.
        """
        if user is None or tenant is None or not getattr(user, 'is_authenticated', False):
            return False

        membership = TenantUser.objects.get_membership(tenant, user)
        if membership is None or not membership.is_usable:
            return False

        module, action = module.upper(), action.upper()

        if UserPermission.objects.active().filter(
            tenant_user=membership,
            permission__module=module,
            permission__action=action,
        ).exists():
            return True

        if Permission.objects.filter(
            module=module, action=action,
            role_permissions__role__user_roles__tenant_user=membership,
        ).exists():
            return True

        return cls.has_global_permission(user, action, module)

    @classmethod
    def can_manage_users(cls, user, tenant=None) -> bool:
        if cls.is_super_admin(user):
            return True
        for action in ('ADMIN', 'MANAGE_USERS'):
            if tenant is not None and cls.has_tenant_permission(user, tenant, action):
                return True
            if cls.has_global_permission(user, action):
                return True
        return False

    @classmethod
    def can_manage_tenants(cls, user) -> bool:
        if cls.is_super_admin(user):
            return True
        return any(cls.has_global_permission(user, action) for action in ('ADMIN', 'MANAGE_TENANTS'))

    @classmethod
    def get_or_create_permission(cls, module: str, action: str, resource: Optional[str] = None,
                                 name: Optional[str] = None) -> Permission:
        module, action, resource = module.upper(), action.upper(), (resource or '')
        permission, created = Permission.objects.get_or_create(
            module=module,
            action=action,
            resource=resource,
            defaults={
                'code': Permission.build_code(module, action, resource),
                'name': name or f"{module.title()} {action.replace('_', ' ').title()}",
            }
        )
        if created:
            logger.info(f"Created permission {permission.code}")
        return permission


class RBACService:
    """
    Tenant scope resolution and permission management.

    Scopes are the permission codes a membership holds inside its tenant,
    e.g. {'crm:view', 'crm:edit'}.
    """

    @classmethod
    def resolve_scopes(cls, tenant_user: TenantUser) -> Set[str]:
        """
        Resolve all permission scopes for a tenant user.

        Union of:
        1. Permissions of every role assigned to the membership
        2. Active, unexpired permission grants on the membership

        Results are cached for 5 minutes.
        """
        cache_key = CacheKeys.format(CacheKeys.TENANT_USER_SCOPES, tenant_user_id=tenant_user.id)
        cached_scopes = CacheService.get(cache_key)
        if cached_scopes is not None:
            return set(cached_scopes)

        scopes = set(
            Permission.objects.filter(
                role_permissions__role__user_roles__tenant_user=tenant_user
            ).values_list('code', flat=True)
        )
        scopes.update(
            UserPermission.objects.active().filter(
                tenant_user=tenant_user
            ).values_list('permission__code', flat=True)
        )

        CacheService.set(cache_key, sorted(scopes), CacheTTL.RBAC_SCOPES, tags=[f'tenant:{tenant_user.tenant_id}'])
        return scopes

    @classmethod
    def invalidate_scope_cache(cls, tenant_user: TenantUser):
        """Invalidate cached scopes for a tenant user."""
        CacheService.delete(CacheKeys.format(CacheKeys.TENANT_USER_SCOPES, tenant_user_id=tenant_user.id))

    @classmethod
    def has_scope(cls, tenant_user: TenantUser, scope: str) -> bool:
        return scope in cls.resolve_scopes(tenant_user)

    @classmethod
    def get_role_permissions(cls, role: Role) -> Set[str]:
        return role.permission_codes()

    @classmethod
    def get_tenant_user_roles(cls, tenant_user: TenantUser):
        return Role.objects.filter(user_roles__tenant_user=tenant_user).distinct()

    @classmethod
    def grant_permission(cls, tenant_user: TenantUser, permission_code: str, reason: str = '',
                         granted_by: Optional[User] = None, expires_at=None,
                         request=None) -> UserPermission:
        """
        Grant a permission to a membership.

        Raises:
            ValidationError: If the permission code is unknown
        """
        permission = Permission.objects.by_code(permission_code)
        if not permission:
            raise ValidationError(f"Permission '{permission_code}' does not exist",
                                  details={'field': 'permission_code'})

        user_permission, created = UserPermission.objects.update_or_create(
            tenant_user=tenant_user,
            permission=permission,
            defaults={
                'granted': True,
                'reason': reason,
                'granted_by': granted_by,
                'expires_at': expires_at,
            }
        )
        cls.invalidate_scope_cache(tenant_user)

        AuditLog.log_action(
            action='PERMISSION_GRANTED',
            user=granted_by,
            tenant=tenant_user.tenant,
            target_type='UserPermission',
            target_id=user_permission.id,
            diff={'permission': permission_code, 'granted': True},
            metadata={
                'target_user_email': tenant_user.user.email,
                'permission_code': permission_code,
                'reason': reason,
                'expires_at': expires_at.isoformat() if expires_at else None,
            },
            request=request,
        )
        return user_permission

    @classmethod
    def revoke_permission(cls, tenant_user: TenantUser, permission_code: str,
                          revoked_by: Optional[User] = None, request=None) -> bool:
        """
        Revoke a granted permission.

        The override row is kept with granted=False. Returns False when the
        membership held no such grant.
        """
        user_permission = UserPermission.objects.filter(
            tenant_user=tenant_user, permission__code=permission_code, granted=True
        ).first()
        if user_permission is None:
            return False

        user_permission.granted = False
        user_permission.save(update_fields=['granted', 'updated_at'])
        cls.invalidate_scope_cache(tenant_user)

        AuditLog.log_action(
            action='PERMISSION_REVOKED',
            user=revoked_by,
            tenant=tenant_user.tenant,
            target_type='UserPermission',
            target_id=user_permission.id,
            diff={'permission': permission_code, 'granted': False},
            metadata={
                'target_user_email': tenant_user.user.email,
                'permission_code': permission_code,
            },
            request=request,
        )
        return True

    @classmethod
    def assign_role(cls, tenant_user: TenantUser, role: Role,
                    assigned_by: Optional[User] = None) -> TenantUserRole:
        if role.tenant_id != tenant_user.tenant_id:
            raise ValidationError("Role must belong to the same tenant as the user")

        tenant_user_role, created = TenantUserRole.objects.get_or_create(
            tenant_user=tenant_user,
            role=role,
            defaults={'assigned_by': assigned_by}
        )
        cls.invalidate_scope_cache(tenant_user)

        if created:
            AuditLog.log_action(
                action='role_assigned',
                user=assigned_by,
                tenant=tenant_user.tenant,
                target_type='TenantUserRole',
                target_id=tenant_user_role.id,
                diff={'role': role.name, 'action': 'assigned'},
                metadata={'target_user_email': tenant_user.user.email, 'role_name': role.name}
            )
        return tenant_user_role

    @classmethod
    def remove_role(cls, tenant_user: TenantUser, role: Role,
                    removed_by: Optional[User] = None) -> bool:
        deleted_count, _ = TenantUserRole.objects.filter(tenant_user=tenant_user, role=role).delete()
        if not deleted_count:
            return False

        cls.invalidate_scope_cache(tenant_user)
        AuditLog.log_action(
            action='role_removed',
            user=removed_by,
            tenant=tenant_user.tenant,
            target_type='TenantUserRole',
            diff={'role': role.name, 'action': 'removed'},
            metadata={'target_user_email': tenant_user.user.email, 'role_name': role.name}
        )
        return True

    @classmethod
    def set_role_permissions(cls, role: Role, permission_codes, changed_by: Optional[User] = None) -> Set[str]:
        """
        Add permissions to a role.

        Raises:
            ValidationError: If any code is unknown
        """
        from apps.rbac.models import RolePermission

        permissions = list(Permission.objects.filter(code__in=permission_codes))
        unknown = set(permission_codes) - {p.code for p in permissions}
        if unknown:
            raise ValidationError(
                f"Unknown permissions: {', '.join(sorted(unknown))}",
                details={'field': 'permission_codes'}
            )

        for permission in permissions:
            RolePermission.objects.get_or_create(role=role, permission=permission)

        for membership in TenantUser.objects.filter(user_roles__role=role):
            cls.invalidate_scope_cache(membership)

        AuditLog.log_action(
            action='role_permissions_updated',
            user=changed_by,
            tenant=role.tenant,
            target_type='Role',
            target_id=role.id,
            diff={'added': sorted(p.code for p in permissions)},
        )
        return role.permission_codes()


class AuthService:
    """
    Service for authentication operations: JWT, registration and login.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }
        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired JWT")
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        payload = cls.validate_jwt(token)
        if not payload or not payload.get('user_id'):
            return None
        return User.objects.filter(id=payload['user_id'], is_active=True).first()

    @classmethod
    def unique_tenant_slug(cls, name: str) -> str:
        from apps.tenants.models import Tenant

        base_slug = slugify(name) or 'tenant'
        slug, counter = base_slug, 1
        while Tenant.objects.filter(slug=slug).exists():
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    @classmethod
    @transaction.atomic
    def register_user(cls, email: str, password: str, business_name: str,
                      first_name: str = '', last_name: str = '', request=None) -> Dict[str, Any]:
        """
        Register a new user together with their own tenant.

        Creates the User, a Tenant with a unique slug and an accepted,
        primary TenantUser holding the Owner role (roles are seeded by the
        tenant post_save signal).

        Raises:
            ResourceConflict: If the email is already registered
        """
        from apps.tenants.models import Tenant

        email = User.objects.normalize_email(email)
        if User.objects.filter(email=email).exists():
            raise ResourceConflict(f"User with email '{email}' already exists", details={'field': 'email'})

        user = User.objects.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )

        tenant = Tenant.objects.create(
            name=business_name,
            slug=cls.unique_tenant_slug(business_name),
            contact_email=email,
        )

        tenant_user = TenantUser.objects.create(
            tenant=tenant,
            user=user,
            invite_status=TenantUser.InviteStatus.ACCEPTED,
            is_primary=True,
            joined_at=timezone.now(),
        )

        owner_role = Role.objects.by_name(tenant, 'Owner')
        if owner_role:
            RBACService.assign_role(tenant_user, owner_role, assigned_by=user)

        AuditLog.log_action(
            action='user_registered',
            user=user,
            tenant=tenant,
            target_type='User',
            target_id=user.id,
            metadata={'email': email, 'business_name': business_name},
            request=request,
        )
        logger.info("User registered", extra={'user_id': str(user.id), 'tenant_id': str(tenant.id)})

        return {
            'user': user,
            'tenant': tenant,
            'token': cls.generate_jwt(user),
        }

    @classmethod
    def login(cls, email: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and return JWT token.

        Returns:
            Dict with user and token, or None if authentication failed
        """
        email = User.objects.normalize_email(email)
        user = User.objects.filter(email=email, is_active=True).first()
        ip_address = AuditLog._get_client_ip(request) if request is not None else None
        user_agent = request.META.get('HTTP_USER_AGENT', '') if request is not None else ''

        if user is None or not user.check_password(password):
            SecurityLogger.log_failed_login(
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason='unknown_user' if user is None else 'invalid_password',
            )
            return None

        user.update_last_login()
        AuditLog.log_action(
            action='user_login',
            user=user,
            target_type='User',
            target_id=user.id,
            metadata={'email': email},
            request=request,
        )
        return {'user': user, 'token': cls.generate_jwt(user)}


class UserAdminService:
    """User administration used by the /v1/admin/users endpoints."""

    @classmethod
    @transaction.atomic
    def create_user(cls, data: Dict[str, Any], created_by: User, request=None) -> User:
        from apps.tenants.models import Tenant

        email = User.objects.normalize_email(data['email'])
        if User.objects.filter(email=email).exists():
            raise ResourceConflict('User with this email already exists', details={'field': 'email'})

        user = User.objects.create_user(
            email=email,
            password=data.get('password'),
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
            platform_role=data.get('platform_role') or User.PlatformRole.USER,
        )

        tenant_id = data.get('tenant_id')
        if tenant_id:
            tenant = Tenant.objects.filter(id=tenant_id, is_active=True).first()
            if tenant is None:
                raise ValidationError('Tenant does not exist', details={'field': 'tenant_id'})
            membership = TenantUser.objects.create(
                tenant=tenant,
                user=user,
                invited_by=created_by,
                joined_at=timezone.now(),
                is_primary=True,
            )
            role_name = data.get('role')
            role = Role.objects.by_name(tenant, role_name) if role_name else None
            if role:
                RBACService.assign_role(membership, role, assigned_by=created_by)

        AuditLog.log_action(
            action='USER_CREATED',
            user=created_by,
            tenant=getattr(request, 'tenant', None),
            target_type='User',
            target_id=user.id,
            metadata={'email': email, 'tenant_id': str(tenant_id) if tenant_id else None},
            request=request,
        )
        return user

    PRIVILEGED_FIELDS = ('password', 'platform_role')

    @classmethod
    def check_can_administer(cls, actor: User, target: User, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Guard for updates and deletes of another account.

        Platform administrators can only be changed by platform
        administrators. Passwords and platform roles can only be set by
        callers that pass can_manage_tenants.

        Raises:
            PermissionDeniedError: the actor may not make this change
        """
        target_is_platform_admin = (
            target.is_superuser or target.platform_role in PermissionService.SUPER_ADMIN_ROLES
        )
        if target_is_platform_admin and not PermissionService.is_super_admin(actor):
            raise PermissionDeniedError('Only super admins can modify platform administrators')

        requested = sorted(f for f in cls.PRIVILEGED_FIELDS if (data or {}).get(f) not in (None, ''))
        if requested and not PermissionService.can_manage_tenants(actor):
            raise PermissionDeniedError(
                'Changing passwords or platform roles requires platform administration rights',
                details={'fields': requested},
            )

    @classmethod
    def update_user(cls, user: User, data: Dict[str, Any], updated_by: User, request=None) -> User:
        cls.check_can_administer(updated_by, user, data)

        diff = {}
        if 'email' in data:
            email = User.objects.normalize_email(data['email'])
            if email != user.email and User.objects.filter(email=email).exclude(id=user.id).exists():
                raise ResourceConflict('Email is already in use', details={'field': 'email'})
            data = dict(data, email=email)

        for field in ('email', 'first_name', 'last_name', 'is_active', 'platform_role'):
            if field in data and getattr(user, field) != data[field]:
                diff[field] = {'old': getattr(user, field), 'new': data[field]}
                setattr(user, field, data[field])
        if data.get('password'):
            user.set_password(data['password'])
            diff['password'] = {'changed': True}
        user.save()

        AuditLog.log_action(
            action='USER_UPDATED',
            user=updated_by,
            tenant=getattr(request, 'tenant', None),
            target_type='User',
            target_id=user.id,
            diff=diff,
            request=request,
        )
        return user

    @classmethod
    @transaction.atomic
    def delete_user(cls, user: User, deleted_by: User, request=None) -> User:
        """
        Deactivate a user and anonymise the email.

        Raises:
            ValidationError: When an admin tries to delete their own account
            PermissionDeniedError: When a tenant admin targets a platform admin
        """
        if user.id == deleted_by.id:
            raise ValidationError('You cannot delete your own account')
        cls.check_can_administer(deleted_by, user)

        original_email = user.email
        user.is_active = False
        user.email = f"deleted_{int(timezone.now().timestamp())}_{original_email}"
        user.save(update_fields=['is_active', 'email', 'updated_at'])

        memberships = TenantUser.objects.filter(user=user, is_active=True)
        for membership in memberships:
            membership.deactivate()
            RBACService.invalidate_scope_cache(membership)

        AuditLog.log_action(
            action='USER_DELETED',
            user=deleted_by,
            tenant=getattr(request, 'tenant', None),
            target_type='User',
            target_id=user.id,
            diff={'email': {'old': original_email, 'new': user.email}, 'is_active': {'old': True, 'new': False}},
            request=request,
        )
        logger.info("User deactivated", extra={'user_id': str(user.id)})
        return user
