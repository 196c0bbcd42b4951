"""
Event publishing and notification services.

publish_event() persists an EventBus row and, when asked, fans out a
RealTimeNotification. There is no in-process queue: delivery of a
notification is a Celery task that only logs and stamps delivered_at.
"""
import logging
import uuid

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.events.models import (
    EventBus, EventCorrelation, EventType, Priority, RealTimeNotification
)

logger = logging.getLogger(__name__)


class EventService:
    """Persist and query published events."""

    @classmethod
    def publish_event(cls, event_name, event_type, payload=None, metadata=None, options=None,
                      tenant=None, user=None):
        """
        Record an event.

        Args:
            event_name: Dotted name, e.g. 'crm.lead.converted'
            event_type: One of EventType
            payload: JSON payload
            metadata: May carry correlation_id and trace_id
            options: priority, source, target, scheduled_at, and an optional
                'notify' dict ({title, message, type, severity, user}) that
                also creates a RealTimeNotification
            tenant: Owning tenant (None for platform events)
            user: Acting user

        Returns:
            EventBus
        """
        if not event_name:
            raise ValidationError('event_name is required', details={'field': 'event_name'})
        if event_type not in EventType.values:
            raise ValidationError(
                f"Invalid event_type '{event_type}'",
                details={'field': 'event_type', 'allowed': list(EventType.values)}
            )

        options = options or {}
        metadata = dict(metadata or {})
        metadata.setdefault('trace_id', uuid.uuid4().hex)

        priority = options.get('priority', Priority.MEDIUM)
        if priority not in Priority.values:
            raise ValidationError(f"Invalid priority '{priority}'", details={'field': 'priority'})

        with transaction.atomic():
            correlation = None
            correlation_id = metadata.get('correlation_id')
            if correlation_id:
                correlation, _ = EventCorrelation.objects.get_or_create(
                    correlation_id=str(correlation_id),
                    defaults={'tenant': tenant, 'description': event_name},
                )

            event = EventBus.objects.create(
                tenant=tenant,
                user=user if getattr(user, 'is_authenticated', False) else None,
                event_name=event_name,
                event_type=event_type,
                payload=payload or {},
                source=options.get('source', 'api'),
                target=options.get('target', ''),
                priority=priority,
                scheduled_at=options.get('scheduled_at'),
                correlation=correlation,
                metadata=metadata,
            )

        logger.info(
            f"Event published: {event_name}",
            extra={
                'event_id': str(event.id),
                'event_type': event_type,
                'tenant_id': str(tenant.id) if tenant else None,
                'trace_id': metadata['trace_id'],
            }
        )

        notify = options.get('notify')
        if notify and tenant is not None:
            NotificationService.create_notification(
                tenant=tenant,
                user=notify.get('user'),
                title=notify.get('title', event_name),
                message=notify.get('message', ''),
                type=notify.get('type', RealTimeNotification.Type.INFO),
                severity=notify.get('severity', priority),
                data={'event_name': event_name, **(notify.get('data') or {})},
                event=event,
            )

        return event

    @staticmethod
    def list_events(tenant, event_type=None, status=None, start=None, end=None):
        queryset = EventBus.objects.for_tenant(tenant)
        if event_type:
            queryset = queryset.filter(event_type=event_type)
        if status:
            queryset = queryset.filter(status=status)
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)
        return queryset.order_by('-created_at')

    @staticmethod
    def update_status(event, status, error_message=None):
        """Move an event to a new status; terminal statuses stamp processed_at."""
        if status not in EventBus.Status.values:
            raise ValidationError(f"Invalid status '{status}'", details={'field': 'status'})

        event.status = status
        if error_message is not None:
            event.error_message = error_message
        if status in (EventBus.Status.COMPLETED, EventBus.Status.FAILED):
            event.processed_at = timezone.now()
        event.save(update_fields=['status', 'error_message', 'processed_at', 'updated_at'])
        return event


class NotificationService:
    """Create, deliver and read real-time notifications."""

    @classmethod
    def create_notification(cls, tenant, title, message, user=None, type=RealTimeNotification.Type.INFO,
                            severity=Priority.MEDIUM, channel='in_app', data=None,
                            is_persistent=False, expires_at=None, event=None):
        if not title or not message:
            raise ValidationError('title and message are required')
        if type not in RealTimeNotification.Type.values:
            raise ValidationError(f"Invalid notification type '{type}'", details={'field': 'type'})
        if severity not in Priority.values:
            raise ValidationError(f"Invalid severity '{severity}'", details={'field': 'severity'})

        notification = RealTimeNotification.objects.create(
            tenant=tenant,
            user=user,
            title=title,
            message=message,
            type=type,
            severity=severity,
            channel=channel,
            data=data or {},
            is_persistent=is_persistent,
            expires_at=expires_at,
            event=event,
        )

        from apps.events.tasks import push_notification
        transaction.on_commit(lambda: push_notification.delay(str(notification.id)))
        return notification

    @staticmethod
    def deliver_notification(notification):
        """Hand a notification to its channel. Only in-app delivery exists: log it."""
        logger.info(
            "Notification delivered",
            extra={
                'notification_id': str(notification.id),
                'tenant_id': str(notification.tenant_id),
                'user_id': str(notification.user_id) if notification.user_id else 'broadcast',
                'channel': notification.channel,
                'severity': notification.severity,
            }
        )
        notification.delivered_at = timezone.now()
        notification.save(update_fields=['delivered_at', 'updated_at'])
        return notification

    @staticmethod
    def list_for_user(tenant, user, is_read=None, type=None, severity=None):
        queryset = RealTimeNotification.objects.visible_to(tenant, user)
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read)
        if type:
            queryset = queryset.filter(type=type)
        if severity:
            queryset = queryset.filter(severity=severity)
        return queryset.order_by('-created_at')

    @staticmethod
    def unread_count(tenant, user):
        return RealTimeNotification.objects.visible_to(tenant, user).unread().count()

    @staticmethod
    def mark_read(tenant, user, notification_id):
        """
        Mark one visible notification read.

        Returns:
            The notification, or None if the user cannot see it.
        """
        notification = RealTimeNotification.objects.visible_to(tenant, user).filter(id=notification_id).first()
        if notification is None:
            return None
        notification.mark_read()
        return notification

    @staticmethod
    def bulk_set_read(tenant, user, notification_ids, is_read):
        """
        Mark several visible notifications read or unread.

        Ids the user cannot see are skipped. Returns the number of rows updated.
        """
        now = timezone.now()
        updated = RealTimeNotification.objects.visible_to(tenant, user, now=now).filter(
            id__in=notification_ids
        ).update(is_read=is_read, read_at=now if is_read else None, updated_at=now)
        logger.info(
            "Notifications bulk updated",
            extra={'tenant_id': str(tenant.id), 'is_read': is_read, 'count': updated},
        )
        return updated
