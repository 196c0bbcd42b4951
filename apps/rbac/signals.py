"""
RBAC signals for automatic role seeding.

Seeds the default roles when a new tenant is created.
"""
from django.db.models.signals import post_save
from django.dispatch import receiver


@receiver(post_save, sender='tenants.Tenant')
def seed_roles_on_tenant_creation(sender, instance, created, **kwargs):
    """Seed Owner, Admin, Manager, Member and Viewer for a new tenant."""
    if not created:
        return

    from apps.rbac.defaults import DEFAULT_ROLES, seed_tenant_roles
    from apps.rbac.models import AuditLog

    roles_created = seed_tenant_roles(instance)

    AuditLog.log_action(
        action='tenant_roles_seeded',
        user=None,
        tenant=instance,
        target_type='Tenant',
        target_id=instance.id,
        metadata={
            'roles_created': roles_created,
            'total_roles': len(DEFAULT_ROLES),
            'trigger': 'post_save_signal',
        }
    )
