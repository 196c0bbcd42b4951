"""
Celery tasks for the event relay.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def push_notification(notification_id):
    """
    Deliver a notification created by NotificationService.

    A missing row (deleted before the worker ran) is logged and skipped.
    """
    from apps.events.models import RealTimeNotification
    from apps.events.services import NotificationService

    notification = RealTimeNotification.objects.filter(id=notification_id).first()
    if notification is None:
        logger.warning(f"Notification {notification_id} not found, skipping push")
        return

    NotificationService.deliver_notification(notification)


@shared_task(ignore_result=True)
def purge_expired_notifications():
    """Soft delete non-persistent notifications past expires_at. Returns the count."""
    from django.utils import timezone

    from apps.events.models import RealTimeNotification

    expired = RealTimeNotification.objects.filter(
        is_persistent=False, expires_at__isnull=False, expires_at__lte=timezone.now()
    )
    count = expired.update(deleted_at=timezone.now())
    if count:
        logger.info(f"Purged {count} expired notifications")
    return count
