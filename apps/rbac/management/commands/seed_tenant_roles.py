"""
Management command to seed default roles for tenants.

Creates Owner, Admin, Manager, Member and Viewer with their permission
sets for one or all tenants. Idempotent and safe to re-run.
"""
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from apps.rbac.defaults import seed_tenant_roles
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Seed default roles for tenant(s) (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', type=str, help='Tenant ID or slug to seed roles for')
        parser.add_argument('--all', action='store_true', help='Seed roles for all tenants')

    def handle(self, *args, **options):
        tenant_ref = options.get('tenant')
        seed_all = options.get('all')

        if bool(tenant_ref) == bool(seed_all):
            raise CommandError('Specify exactly one of --tenant=<id|slug> or --all')

        if seed_all:
            tenants = list(Tenant.objects.filter(is_active=True))
        else:
            tenant = Tenant.objects.filter(slug=tenant_ref).first()
            if tenant is None:
                try:
                    tenant = Tenant.objects.filter(id=UUID(tenant_ref)).first()
                except ValueError:
                    tenant = None
            if tenant is None:
                raise CommandError(f'Tenant not found: {tenant_ref}')
            tenants = [tenant]

        total_created = 0
        for tenant in tenants:
            created = seed_tenant_roles(tenant)
            total_created += len(created)
            label = ', '.join(created) if created else 'up to date'
            self.stdout.write(f'{tenant.name} ({tenant.slug}): {label}')

        self.stdout.write(
            self.style.SUCCESS(f'\n✓ Seeding complete: {total_created} roles created across {len(tenants)} tenant(s)')
        )
