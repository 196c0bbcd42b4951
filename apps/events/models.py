"""
Event relay models.

EventBus rows are the persisted record of something that happened in a
tenant. Related events can be grouped under an EventCorrelation.
RealTimeNotification rows are what users see in their notification feed.
"""
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet


class EventType(models.TextChoices):
    USER_ACTION = 'USER_ACTION', 'User action'
    SYSTEM = 'SYSTEM', 'System'
    AI_DECISION = 'AI_DECISION', 'AI decision'
    WORKFLOW = 'WORKFLOW', 'Workflow'
    NOTIFICATION = 'NOTIFICATION', 'Notification'
    INTEGRATION = 'INTEGRATION', 'Integration'
    DATA_CHANGE = 'DATA_CHANGE', 'Data change'


class Priority(models.TextChoices):
    LOW = 'LOW', 'Low'
    MEDIUM = 'MEDIUM', 'Medium'
    HIGH = 'HIGH', 'High'
    CRITICAL = 'CRITICAL', 'Critical'


class EventCorrelation(BaseModel):
    """Groups events that share a caller supplied correlation id."""

    correlation_id = models.CharField(max_length=255, unique=True)
    tenant = models.ForeignKey(
        'tenants.Tenant', on_delete=models.CASCADE, null=True, blank=True, related_name='event_correlations'
    )
    description = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = 'event_correlations'

    def __str__(self):
        return self.correlation_id


class EventBusQuerySet(BaseModelQuerySet):

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def pending(self):
        return self.filter(status=EventBus.Status.PENDING)


class EventBus(BaseModel):
    """A published event."""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PROCESSING = 'PROCESSING', 'Processing'
        COMPLETED = 'COMPLETED', 'Completed'
        FAILED = 'FAILED', 'Failed'

    tenant = models.ForeignKey(
        'tenants.Tenant', on_delete=models.CASCADE, null=True, blank=True, related_name='events'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    event_name = models.CharField(max_length=255, db_index=True)
    event_type = models.CharField(max_length=20, choices=EventType.choices, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    source = models.CharField(max_length=100, default='api')
    target = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    correlation = models.ForeignKey(
        EventCorrelation, on_delete=models.SET_NULL, null=True, blank=True, related_name='events'
    )
    metadata = models.JSONField(default=dict, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True)

    objects = BaseModelManager.from_queryset(EventBusQuerySet)()

    class Meta:
        db_table = 'event_bus'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'event_type', 'created_at'], name='event_bus_tenant_type_idx'),
            models.Index(fields=['tenant', 'status'], name='event_bus_tenant_status_idx'),
        ]

    def __str__(self):
        return f"{self.event_name} ({self.status})"


class NotificationQuerySet(BaseModelQuerySet):

    def visible_to(self, tenant, user, now=None):
        """Broadcasts and the user's own notifications that have not expired."""
        now = now or timezone.now()
        return self.filter(tenant=tenant).filter(
            Q(user=user) | Q(user__isnull=True)
        ).filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now)
        )

    def unread(self):
        return self.filter(is_read=False)


class RealTimeNotification(BaseModel):
    """A notification for one user, or for the whole tenant when user is null."""

    class Type(models.TextChoices):
        INFO = 'INFO', 'Info'
        SUCCESS = 'SUCCESS', 'Success'
        WARNING = 'WARNING', 'Warning'
        ERROR = 'ERROR', 'Error'
        SYSTEM = 'SYSTEM', 'System'

    tenant = models.ForeignKey('tenants.Tenant', on_delete=models.CASCADE, related_name='notifications')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications'
    )
    event = models.ForeignKey(
        EventBus, on_delete=models.SET_NULL, null=True, blank=True, related_name='notifications'
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=10, choices=Type.choices, default=Type.INFO)
    severity = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    channel = models.CharField(max_length=50, default='in_app')
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    is_persistent = models.BooleanField(default=False)
    expires_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    objects = BaseModelManager.from_queryset(NotificationQuerySet)()

    class Meta:
        db_table = 'realtime_notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'user', 'is_read'], name='notif_tenant_user_read_idx'),
        ]

    def __str__(self):
        return self.title

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at', 'updated_at'])
