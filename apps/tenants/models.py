"""
Tenant models for multi-tenant isolation.

A Tenant is an isolated organisation namespace. Every business record
carries a tenant FK and is only ever queried through it.
"""
from django.db import models

from apps.core.models import BaseModel


class TenantManager(models.Manager):
    """Manager for tenant queries."""

    def active(self):
        return self.filter(is_active=True)

    def by_slug(self, slug):
        return self.filter(slug=(slug or '').lower()).first()


class Tenant(BaseModel):
    """
    Tenant model representing an isolated business account.

    Tenants are never hard deleted: deletion deactivates the tenant and
    frees its slug by rewriting it to deleted_{unix_ts}_{slug}.
    """

    name = models.CharField(max_length=255, help_text="Organisation name")
    slug = models.SlugField(
        unique=True,
        max_length=150,
        help_text="URL-friendly identifier (lowercase)"
    )
    description = models.TextField(blank=True)
    domain = models.CharField(max_length=255, blank=True, help_text="Custom domain")
    contact_email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    parent_tenant = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='child_tenants',
        help_text="Parent organisation for tenant hierarchies"
    )
    settings = models.JSONField(default=dict, blank=True)

    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='tenants_active_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def save(self, *args, **kwargs):
        self.slug = (self.slug or '').lower()
        super().save(*args, **kwargs)

    def has_active_children(self):
        return self.child_tenants.filter(is_active=True).exists()
