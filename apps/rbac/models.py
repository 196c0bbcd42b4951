"""
RBAC models for multi-tenant access control.

Implements:
- User: global identity with a platform role (USER, GLOBAL_ADMIN, SUPER_ADMIN)
- TenantUser: membership of a user in a tenant
- Permission: canonical (module, action, resource) permissions
- Role / RolePermission / TenantUserRole: per-tenant roles
- UserPermission: per-membership grants, optionally expiring
- UserGlobalPermission: platform-wide grants, optionally expiring
- AuditLog: append-only trail of administrative actions
"""
import logging

from django.contrib.auth.hashers import check_password, make_password
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        return self.filter(is_active=True)

    def by_email(self, email):
        return self.filter(email__iexact=self.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.password_hash = make_password(None)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Used by createsuperuser: a platform SUPER_ADMIN."""
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('platform_role', User.PlatformRole.SUPER_ADMIN)

        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the whole address; emails are compared case-insensitively."""
        return (email or '').strip().lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: self.normalize_email(email)})


class User(BaseModel):
    """
    Global user identity; one person can belong to many tenants.

    Authentication happens at the User level, authorization at the
    TenantUser level. platform_role decides platform-wide powers such as
    managing tenants. This is the AUTH_USER_MODEL.
    """

    class PlatformRole(models.TextChoices):
        USER = 'USER', 'User'
        GLOBAL_ADMIN = 'GLOBAL_ADMIN', 'Global admin'
        SUPER_ADMIN = 'SUPER_ADMIN', 'Super admin'

    email = models.EmailField(
        unique=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password"
    )
    platform_role = models.CharField(
        max_length=20,
        choices=PlatformRole.choices,
        default=PlatformRole.USER,
        db_index=True,
        help_text="Platform-wide role"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Django admin superuser"
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='users_active_created_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash; Django admin expects a 'password' attribute."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def get_username(self):
        return self.email

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at'])

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_superuser

    def natural_key(self):
        return (self.email,)


class TenantUserManager(models.Manager):
    """Manager for TenantUser queries."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant, is_active=True)

    def for_user(self, user):
        return self.filter(user=user, is_active=True)

    def get_membership(self, tenant, user):
        """Active membership of user in tenant, or None."""
        return self.filter(tenant=tenant, user=user, is_active=True).first()

    def primary_for_user(self, user):
        """
        The membership used when a request carries no X-TENANT-ID.

        Falls back to the oldest accepted membership when none is marked
        primary.
        """
        memberships = self.filter(
            user=user, is_active=True, invite_status=TenantUser.InviteStatus.ACCEPTED,
            tenant__is_active=True,
        ).select_related('tenant')
        return memberships.filter(is_primary=True).first() or memberships.order_by('created_at').first()


class TenantUser(BaseModel):
    """
    Membership of a user in a tenant.

    A user can have several TenantUser rows, one per tenant; at most one of
    them is flagged is_primary.
    """

    class InviteStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        REVOKED = 'revoked', 'Revoked'

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='tenant_users',
        help_text="Tenant this membership belongs to"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='tenant_memberships',
        help_text="User who is a member"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    invite_status = models.CharField(
        max_length=20,
        choices=InviteStatus.choices,
        default=InviteStatus.ACCEPTED,
        db_index=True,
    )
    is_primary = models.BooleanField(
        default=False,
        help_text="Default tenant for requests without X-TENANT-ID"
    )
    invited_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invitations_sent',
    )
    joined_at = models.DateTimeField(null=True, blank=True)
    left_at = models.DateTimeField(null=True, blank=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)

    objects = TenantUserManager()

    class Meta:
        db_table = 'tenant_users'
        unique_together = [('tenant', 'user')]
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_active'], name='tenant_users_user_active_idx'),
            models.Index(fields=['tenant', 'is_active'], name='tenant_users_tenant_active_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} @ {self.tenant.name}"

    @property
    def is_usable(self):
        return self.is_active and self.invite_status == self.InviteStatus.ACCEPTED

    def accept_invitation(self):
        if self.invite_status == self.InviteStatus.PENDING:
            self.invite_status = self.InviteStatus.ACCEPTED
            self.joined_at = timezone.now()
            self.save(update_fields=['invite_status', 'joined_at', 'updated_at'])

    def deactivate(self):
        """End the membership; used when a user or a tenant is deleted."""
        self.is_active = False
        self.is_primary = False
        self.left_at = timezone.now()
        self.save(update_fields=['is_active', 'is_primary', 'left_at', 'updated_at'])


class PermissionManager(models.Manager):
    """Manager for Permission queries."""

    def by_code(self, code):
        return self.filter(code=code).first()

    def for_module(self, module):
        return self.filter(module=module.upper())


class Permission(BaseModel):
    """
    Canonical permission shared by all tenants.

    A permission is identified by (module, action, resource); resource is
    empty for module-wide permissions. code is the lowercase
    'module:action[:resource]' string used as a tenant scope.
    """

    code = models.CharField(max_length=150, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    module = models.CharField(max_length=50, db_index=True)
    action = models.CharField(max_length=50)
    resource = models.CharField(max_length=100, blank=True, default='')

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['module', 'action', 'resource']
        unique_together = [('module', 'action', 'resource')]

    def __str__(self):
        return self.code

    @staticmethod
    def build_code(module, action, resource=''):
        parts = [module, action] + ([resource] if resource else [])
        return ':'.join(part.strip().lower() for part in parts)

    def save(self, *args, **kwargs):
        self.module = self.module.strip().upper()
        self.action = self.action.strip().upper()
        self.resource = (self.resource or '').strip()
        if not self.code:
            self.code = self.build_code(self.module, self.action, self.resource)
        super().save(*args, **kwargs)


class RoleManager(models.Manager):
    """Manager for Role queries with tenant scoping."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def by_name(self, tenant, name):
        return self.filter(tenant=tenant, name=name).first()


class Role(BaseModel):
    """
    Per-tenant role.

    System roles are seeded for every new tenant (see apps.rbac.signals);
    tenants may add their own.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='roles',
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_system = models.BooleanField(default=False)

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        unique_together = [('tenant', 'name')]
        ordering = ['name']

    def __str__(self):
        return f"{self.tenant.name} - {self.name}"

    def permission_codes(self):
        return set(self.role_permissions.values_list('permission__code', flat=True))


class RolePermission(BaseModel):
    """Permission carried by a role."""

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='role_permissions')
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='role_permissions')

    objects = models.Manager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]
        ordering = ['role', 'permission']

    def __str__(self):
        return f"{self.role.name} -> {self.permission.code}"


class TenantUserRole(BaseModel):
    """
    Role assigned to a membership.

    Both sides must belong to the same tenant.
    """

    tenant_user = models.ForeignKey(TenantUser, on_delete=models.CASCADE, related_name='user_roles')
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='user_roles')
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_assignments_made',
    )

    objects = models.Manager()

    class Meta:
        db_table = 'tenant_user_roles'
        unique_together = [('tenant_user', 'role')]
        ordering = ['tenant_user', 'role']

    def __str__(self):
        return f"{self.tenant_user.user.email} -> {self.role.name}"

    def clean(self):
        super().clean()
        if self.tenant_user_id and self.role_id and self.tenant_user.tenant_id != self.role.tenant_id:
            from django.core.exceptions import ValidationError
            raise ValidationError("TenantUser and Role must belong to the same tenant")

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class GrantQuerySet(models.QuerySet):
    """Shared filters for expiring grants."""

    def active(self, now=None):
        """Granted and not yet expired."""
        now = now or timezone.now()
        return self.filter(granted=True).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))


class UserPermission(BaseModel):
    """
    Permission granted to one membership in one tenant.

    A revoked grant keeps its row with granted=False for history; only
    active() rows count as grants.
    """

    tenant_user = models.ForeignKey(TenantUser, on_delete=models.CASCADE, related_name='user_permissions')
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='user_permissions')
    granted = models.BooleanField(default=True)
    reason = models.TextField(blank=True)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='permission_grants_made',
    )
    expires_at = models.DateTimeField(null=True, blank=True)

    objects = models.Manager.from_queryset(GrantQuerySet)()

    class Meta:
        db_table = 'user_permissions'
        unique_together = [('tenant_user', 'permission')]
        ordering = ['tenant_user', 'permission']

    def __str__(self):
        state = "GRANT" if self.granted else "REVOKED"
        return f"{state} {self.permission.code} to {self.tenant_user.user.email}"


class UserGlobalPermission(BaseModel):
    """Platform-wide permission granted to a user, independent of tenants."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='global_permissions')
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='global_grants')
    granted = models.BooleanField(default=True)
    reason = models.TextField(blank=True)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='global_grants_made',
    )
    expires_at = models.DateTimeField(null=True, blank=True)

    objects = models.Manager.from_queryset(GrantQuerySet)()

    class Meta:
        db_table = 'user_global_permissions'
        unique_together = [('user', 'permission')]
        ordering = ['user', 'permission']

    def __str__(self):
        return f"{self.permission.code} (global) to {self.user.email}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_user(self, user):
        return self.filter(user=user)

    def by_action(self, action):
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=target_id)
        return qs


class AuditLog(BaseModel):
    """
    Append-only record of who did what to which resource.

    Written synchronously by every mutating endpoint through log_action().
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Tenant context (null for platform-level actions)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Acting user (null for system actions)"
    )
    action = models.CharField(max_length=100, db_index=True)
    target_type = models.CharField(max_length=50, db_index=True, blank=True)
    target_id = models.UUIDField(null=True, blank=True, db_index=True)
    diff = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='audit_logs_tenant_created_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_logs_target_idx'),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'System'
        tenant_str = self.tenant.name if self.tenant else 'Platform'
        return f"{tenant_str} - {user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, tenant=None, target_type=None,
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Create an audit log entry.

        Args:
            action: Action name, e.g. 'USER_DELETED' or 'deal_created'
            user: Acting user (anonymous users are stored as None)
            tenant: Tenant context
            target_type: Type of target entity
            target_id: UUID of target entity
            diff: Before/after changes
            metadata: Additional context
            request: Request to take IP, user agent and request id from

        Returns:
            AuditLog instance, or None when the write failed. A failed audit
            write is logged and never breaks the calling operation.
        """
        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        log_data = {
            'action': action,
            'user': user,
            'tenant': tenant,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }

        if request is not None:
            log_data['ip_address'] = cls._get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except Exception as e:
            logger.error(
                f"Failed to create audit log: {e}",
                extra={'action': action, 'tenant_id': str(tenant.id) if tenant else None},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
