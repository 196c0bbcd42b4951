"""
Management command to create a demo tenant with an owner account.

Creates:
- Tenant (roles seeded by signal)
- Owner user with a primary membership and the Owner role
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.rbac.models import Role, TenantUser, User
from apps.rbac.services import AuthService, RBACService
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Create a demo tenant with an owner user (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument('--slug', type=str, default='demo', help='Tenant slug (default: demo)')
        parser.add_argument('--name', type=str, default='Demo Company', help='Tenant name')
        parser.add_argument('--email', type=str, default='owner@demo.local', help='Owner email')
        parser.add_argument('--password', type=str, help='Owner password (required for a new user)')

    def handle(self, *args, **options):
        slug = options['slug'].lower()
        email = User.objects.normalize_email(options['email'])

        tenant = Tenant.objects.by_slug(slug)
        if tenant is None:
            tenant = Tenant.objects.create(name=options['name'], slug=slug, contact_email=email)
            self.stdout.write(f'✓ Created tenant: {tenant.name} ({tenant.slug})')
        else:
            self.stdout.write(f'✓ Found tenant: {tenant.name} ({tenant.slug})')

        user = User.objects.by_email(email)
        if user is None:
            if not options.get('password'):
                raise CommandError('--password is required to create the owner user')
            user = User.objects.create_user(email=email, password=options['password'])
            self.stdout.write(f'✓ Created user: {email}')

        membership, created = TenantUser.objects.get_or_create(
            tenant=tenant,
            user=user,
            defaults={'joined_at': timezone.now(), 'is_primary': not TenantUser.objects.filter(user=user).exists()},
        )
        owner_role = Role.objects.by_name(tenant, 'Owner')
        if owner_role:
            RBACService.assign_role(membership, owner_role)

        self.stdout.write(self.style.SUCCESS(f'\nTenant ID: {tenant.id}'))
        self.stdout.write(self.style.SUCCESS(f'Token:     {AuthService.generate_jwt(user)}'))
