"""
Tenant management service.

Handles tenant lifecycle operations:
- Tenant creation (roles are seeded by the rbac post_save signal)
- Updates with slug uniqueness
- Soft deletion with membership deactivation
- Tenant switching and membership listing
"""
import logging
from typing import List, Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.core.cache import CacheKeys, CacheService
from apps.core.exceptions import PermissionDeniedError, ResourceConflict, ValidationError
from apps.rbac.models import User, TenantUser, AuditLog
from apps.rbac.services import PermissionService, RBACService
from apps.tenants.models import Tenant

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'slug', 'description', 'domain', 'contact_email', 'is_active', 'settings')


class TenantService:
    """Service for tenant lifecycle and membership management."""

    @staticmethod
    def with_counts(queryset):
        """Annotate tenants with member, customer and lead counts."""
        return queryset.annotate(
            user_count=Count(
                'tenant_users', filter=Q(tenant_users__is_active=True), distinct=True
            ),
            customer_count=Count(
                'crm_customer_set', filter=Q(crm_customer_set__deleted_at__isnull=True), distinct=True
            ),
            lead_count=Count(
                'crm_lead_set', filter=Q(crm_lead_set__deleted_at__isnull=True), distinct=True
            ),
        )

    @classmethod
    @transaction.atomic
    def create_tenant(cls, data: dict, created_by: Optional[User] = None, request=None) -> Tenant:
        """
        Create a tenant.

        Raises:
            ValidationError: If name or slug is missing, or the parent is unknown
            ResourceConflict: If the slug is taken
        """
        name = (data.get('name') or '').strip()
        slug = (data.get('slug') or '').strip().lower()
        if not name or not slug:
            raise ValidationError('Name and slug are required', details={'fields': ['name', 'slug']})

        if Tenant.objects.filter(slug=slug).exists():
            raise ResourceConflict('A tenant with this slug already exists', details={'field': 'slug'})

        parent = None
        if data.get('parent_tenant_id'):
            parent = Tenant.objects.filter(id=data['parent_tenant_id']).first()
            if parent is None:
                raise ValidationError('Parent tenant does not exist', details={'field': 'parent_tenant_id'})

        tenant = Tenant.objects.create(
            name=name,
            slug=slug,
            description=data.get('description', ''),
            domain=data.get('domain', ''),
            contact_email=data.get('contact_email', ''),
            parent_tenant=parent,
            settings=data.get('settings') or {},
        )

        AuditLog.log_action(
            action='TENANT_CREATED',
            user=created_by,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            metadata={'name': name, 'slug': slug},
            request=request,
        )
        logger.info("Tenant created", extra={'tenant_id': str(tenant.id), 'slug': slug})
        return tenant

    @classmethod
    def update_tenant(cls, tenant: Tenant, data: dict, updated_by: Optional[User] = None, request=None) -> Tenant:
        """
        Update tenant fields.

        Raises:
            ResourceConflict: If the new slug belongs to another tenant
        """
        if 'slug' in data:
            data = dict(data, slug=(data['slug'] or '').strip().lower())
            if not data['slug']:
                raise ValidationError('Slug cannot be empty', details={'field': 'slug'})
            if Tenant.objects.filter(slug=data['slug']).exclude(id=tenant.id).exists():
                raise ResourceConflict('A tenant with this slug already exists', details={'field': 'slug'})

        diff = {}
        for field in UPDATABLE_FIELDS:
            if field in data and getattr(tenant, field) != data[field]:
                diff[field] = {'old': getattr(tenant, field), 'new': data[field]}
                setattr(tenant, field, data[field])

        if diff:
            tenant.save()
            CacheService.delete(CacheKeys.format(CacheKeys.TENANT_DETAIL, tenant_id=tenant.id))

        AuditLog.log_action(
            action='TENANT_UPDATED',
            user=updated_by,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            diff=diff,
            request=request,
        )
        return tenant

    @classmethod
    @transaction.atomic
    def delete_tenant(cls, tenant: Tenant, deleted_by: Optional[User] = None, request=None) -> Tenant:
        """
        Deactivate a tenant and free its slug.

        Raises:
            ValidationError: If the tenant still has active child tenants
        """
        if tenant.has_active_children():
            raise ValidationError(
                'Cannot delete a tenant with active child tenants',
                details={'child_count': tenant.child_tenants.filter(is_active=True).count()}
            )

        original_slug = tenant.slug
        tenant.is_active = False
        tenant.slug = f"deleted_{int(timezone.now().timestamp())}_{original_slug}"
        tenant.save(update_fields=['is_active', 'slug', 'updated_at'])

        memberships = list(TenantUser.objects.filter(tenant=tenant, is_active=True))
        for membership in memberships:
            membership.deactivate()
            RBACService.invalidate_scope_cache(membership)

        CacheService.invalidate_by_tag(f'tenant:{tenant.id}')

        AuditLog.log_action(
            action='TENANT_DELETED',
            user=deleted_by,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            diff={'slug': {'old': original_slug, 'new': tenant.slug}, 'is_active': {'old': True, 'new': False}},
            metadata={'memberships_deactivated': len(memberships)},
            request=request,
        )
        logger.info("Tenant deleted", extra={'tenant_id': str(tenant.id)})
        return tenant

    @classmethod
    def user_tenants(cls, user: User) -> List[TenantUser]:
        """Active memberships of a user in active tenants, primary first."""
        return list(
            TenantUser.objects.filter(
                user=user, is_active=True, tenant__is_active=True,
                invite_status=TenantUser.InviteStatus.ACCEPTED,
            ).select_related('tenant').order_by('-is_primary', 'tenant__name')
        )

    @classmethod
    @transaction.atomic
    def switch_tenant(cls, user: User, tenant_id, request=None) -> TenantUser:
        """
        Make tenant_id the user's primary tenant.

        Raises:
            PermissionDeniedError: If the user has no usable membership
        """
        membership = TenantUser.objects.filter(
            user=user, tenant_id=tenant_id, is_active=True, tenant__is_active=True,
            invite_status=TenantUser.InviteStatus.ACCEPTED,
        ).select_related('tenant').first()
        if membership is None:
            raise PermissionDeniedError('You do not have access to this tenant')

        TenantUser.objects.filter(user=user, is_primary=True).exclude(id=membership.id).update(is_primary=False)
        if not membership.is_primary:
            membership.is_primary = True
            membership.save(update_fields=['is_primary', 'updated_at'])

        AuditLog.log_action(
            action='tenant_switched',
            user=user,
            tenant=membership.tenant,
            target_type='TenantUser',
            target_id=membership.id,
            request=request,
        )
        return membership

    @classmethod
    def validate_tenant_access(cls, user: User, tenant: Tenant) -> bool:
        if PermissionService.is_super_admin(user):
            return True
        membership = TenantUser.objects.get_membership(tenant, user)
        return membership is not None and membership.is_usable
