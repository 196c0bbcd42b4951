"""
Celery tasks for sales.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def expire_quotes():
    """Expire sent quotes whose validity has passed. Returns the count."""
    from apps.sales.services import SalesService

    count = SalesService.expire_quotes()
    if count:
        logger.info(f"Expired {count} quotes")
    return count
