"""
Core models for the WeGroup platform.

Provides BaseModel with UUID primary keys, soft delete and timestamps, plus
TenantModel for every record that belongs to exactly one tenant.
"""
import uuid
from django.db import models
from django.utils import timezone


class BaseModelQuerySet(models.QuerySet):
    """QuerySet with soft delete support."""

    def delete(self):
        """Soft delete all objects in queryset."""
        return self.update(deleted_at=timezone.now())

    def hard_delete(self):
        """Permanently delete all objects in queryset."""
        return super().delete()

    def deleted(self):
        """Only soft-deleted objects."""
        return self.filter(deleted_at__isnull=False)


class BaseModelManager(models.Manager):
    """Manager that excludes soft-deleted objects by default."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class BaseModel(models.Model):
    """
    Abstract base model with UUID primary key, soft delete, and timestamps.

    Calling delete() on an instance or a queryset only stamps deleted_at;
    the default manager then hides the row. Use objects_with_deleted to
    reach soft-deleted rows and hard_delete() to remove them for good.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the record was created"
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when the record was last updated"
    )

    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp when the record was soft deleted"
    )

    objects = BaseModelManager.from_queryset(BaseModelQuerySet)()
    objects_with_deleted = models.Manager.from_queryset(BaseModelQuerySet)()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def delete(self, using=None, keep_parents=False):
        """Soft delete the object."""
        self.deleted_at = timezone.now()
        self.save(using=using, update_fields=['deleted_at', 'updated_at'])

    def hard_delete(self, using=None, keep_parents=False):
        """Permanently delete the object."""
        return super().delete(using=using, keep_parents=keep_parents)

    def restore(self):
        """Restore a soft-deleted object."""
        self.deleted_at = None
        self.save(update_fields=['deleted_at', 'updated_at'])

    @property
    def is_deleted(self):
        return self.deleted_at is not None


class TenantQuerySet(BaseModelQuerySet):
    """QuerySet for tenant-owned records."""

    def for_tenant(self, tenant):
        """Restrict to a single tenant. Accepts a Tenant or a tenant id."""
        tenant_id = getattr(tenant, 'id', tenant)
        return self.filter(tenant_id=tenant_id)


class TenantManager(BaseModelManager.from_queryset(TenantQuerySet)):
    """Default manager for tenant-owned records (hides soft-deleted rows)."""


class TenantModel(BaseModel):
    """
    Abstract base for records owned by one tenant.

    Every query against a TenantModel must go through for_tenant(); views
    built on apps.core.pipeline do this automatically.
    """
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='%(app_label)s_%(class)s_set',
        help_text="Owning tenant"
    )

    objects = TenantManager()
    objects_with_deleted = models.Manager.from_queryset(TenantQuerySet)()

    class Meta(BaseModel.Meta):
        abstract = True
