"""
Management command to seed canonical permissions.

Creates the global Permission rows every tenant role is built from.
Idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand

from apps.rbac.defaults import CANONICAL_PERMISSIONS, ensure_canonical_permissions
from apps.rbac.models import Permission


class Command(BaseCommand):
    help = 'Seed canonical permissions (idempotent)'

    def handle(self, *args, **options):
        self.stdout.write('Seeding canonical permissions...\n')
        created = ensure_canonical_permissions()
        self.stdout.write(
            self.style.SUCCESS(
                f'✓ {created} created, {len(CANONICAL_PERMISSIONS) - created} already present'
            )
        )

        for module in sorted(set(Permission.objects.values_list('module', flat=True))):
            self.stdout.write(f'\n{module}:')
            for perm in Permission.objects.for_module(module):
                self.stdout.write(f'  • {perm.code:<30} {perm.name}')

        self.stdout.write(f'\nTotal permissions: {Permission.objects.count()}')
