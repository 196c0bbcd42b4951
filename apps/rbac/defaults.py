"""
Canonical permissions and default tenant roles.

Used by the seed_permissions / seed_tenant_roles management commands and by
the post_save signal that prepares every new tenant.
"""
import logging

from django.db import transaction

logger = logging.getLogger(__name__)

# (module, action, name, description)
CANONICAL_PERMISSIONS = [
    ('ADMIN', 'ADMIN', 'Administrator', 'Full administrative access'),
    ('ADMIN', 'MANAGE_USERS', 'Manage Users', 'Create, update and deactivate users'),
    ('ADMIN', 'MANAGE_TENANTS', 'Manage Tenants', 'Create, update and delete tenants'),
    ('USERS', 'MANAGE', 'Manage Members', 'Manage tenant roles and member permissions'),
    ('ANALYTICS', 'VIEW', 'View Analytics', 'View dashboards and audit logs'),
    ('ANALYTICS', 'EDIT', 'Edit Analytics', 'Manage dashboards, widgets and saved reports'),
    ('SALES', 'VIEW', 'View Sales', 'View the product catalog and quotes'),
    ('SALES', 'EDIT', 'Edit Sales', 'Manage products and build quotes'),
    ('CRM', 'VIEW', 'View CRM', 'View customers, contacts, leads, opportunities and deals'),
    ('CRM', 'EDIT', 'Edit CRM', 'Create, update and delete CRM records'),
    ('HR', 'VIEW', 'View HR', 'View departments, employees, leave and reviews'),
    ('HR', 'EDIT', 'Edit HR', 'Manage HR records and decide leave requests'),
    ('PROJECTS', 'VIEW', 'View Projects', 'View projects, milestones and tasks'),
    ('PROJECTS', 'EDIT', 'Edit Projects', 'Manage projects, milestones and tasks'),
    ('CONTENT', 'VIEW', 'View Content', 'View content templates and projects'),
    ('CONTENT', 'EDIT', 'Edit Content', 'Manage content and run generation'),
    ('EVENTS', 'VIEW', 'View Events', 'View the event log'),
    ('EVENTS', 'PUBLISH', 'Publish Events', 'Publish events and notifications'),
    ('NOTIFICATIONS', 'VIEW', 'View Notifications', 'Read own and broadcast notifications'),
    ('AI', 'USE', 'Use AI Services', 'Run NLP, anomaly detection and RL agents'),
]

_VIEW_SCOPES = [
    'analytics:view', 'crm:view', 'hr:view', 'projects:view',
    'content:view', 'events:view', 'notifications:view', 'sales:view',
]

DEFAULT_ROLES = {
    'Owner': {
        'description': 'Full access to all tenant features and settings',
        'permissions': 'ALL',
    },
    'Admin': {
        'description': 'Administrative access including user management',
        'permissions': _VIEW_SCOPES + [
            'admin:manage_users', 'users:manage',
            'crm:edit', 'hr:edit', 'projects:edit', 'content:edit',
            'sales:edit', 'analytics:edit',
            'events:publish', 'ai:use',
        ],
    },
    'Manager': {
        'description': 'Manage business records across modules',
        'permissions': _VIEW_SCOPES + [
            'crm:edit', 'hr:edit', 'projects:edit', 'content:edit', 'sales:edit', 'analytics:edit',
            'events:publish', 'ai:use',
        ],
    },
    'Member': {
        'description': 'Day-to-day work on CRM, sales, projects and content',
        'permissions': [
            'crm:view', 'crm:edit', 'hr:view', 'projects:view', 'projects:edit',
            'content:view', 'content:edit', 'events:view', 'notifications:view', 'ai:use',
            'sales:view', 'sales:edit',
        ],
    },
    'Viewer': {
        'description': 'Read-only access',
        'permissions': list(_VIEW_SCOPES),
    },
}


def ensure_canonical_permissions():
    """Create missing canonical permissions. Returns the number created."""
    from apps.rbac.models import Permission

    created_count = 0
    for module, action, name, description in CANONICAL_PERMISSIONS:
        _, created = Permission.objects.get_or_create(
            module=module,
            action=action,
            resource='',
            defaults={
                'code': Permission.build_code(module, action),
                'name': name,
                'description': description,
            }
        )
        created_count += int(created)
    return created_count


def sync_role_permissions(role, permissions):
    """Make the role hold exactly the given permissions."""
    from apps.rbac.models import RolePermission

    current = set(RolePermission.objects.filter(role=role).values_list('permission_id', flat=True))
    target = {p.id for p in permissions}

    for permission in permissions:
        if permission.id not in current:
            RolePermission.objects.create(role=role, permission=permission)
    if current - target:
        RolePermission.objects.filter(role=role, permission_id__in=current - target).delete()


def seed_tenant_roles(tenant):
    """
    Create the default roles for a tenant (idempotent).

    Returns:
        List of role names that were newly created
    """
    from apps.rbac.models import Permission, Role

    roles_created = []
    with transaction.atomic():
        ensure_canonical_permissions()
        all_permissions = list(Permission.objects.all())

        for role_name, config in DEFAULT_ROLES.items():
            role, created = Role.objects.get_or_create(
                tenant=tenant,
                name=role_name,
                defaults={'description': config['description'], 'is_system': True},
            )
            if created:
                roles_created.append(role_name)

            if config['permissions'] == 'ALL':
                permissions = all_permissions
            else:
                permissions = list(Permission.objects.filter(code__in=config['permissions']))
            sync_role_permissions(role, permissions)

    logger.info(
        "Seeded tenant roles",
        extra={'tenant_id': str(tenant.id), 'roles_created': roles_created}
    )
    return roles_created
