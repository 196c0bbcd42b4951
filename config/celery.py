"""
Celery configuration for the WeGroup platform.
"""
import os
from celery import Celery
from celery.signals import task_prerun, task_postrun, task_failure
import logging

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('wegroup')

# Load configuration from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log task start."""
    logger.info(
        f"Task started: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'task_args': str(args)[:200] if args else None,
        }
    )


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    """Log task completion."""
    logger.info(
        f"Task completed: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'state': state,
            'result': str(retval)[:200] if retval else None,
        }
    )


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, args=None, kwargs=None, einfo=None, **extra):
    """Log task failure and send to Sentry."""
    logger.error(
        f"Task failed: {sender.name}",
        extra={
            'task_id': task_id,
            'task_name': sender.name,
            'exception': str(exception)[:500] if exception else None,
        },
        exc_info=einfo
    )

    try:
        from apps.core.sentry_utils import capture_exception
        capture_exception(
            exception,
            task={
                'task_id': task_id,
                'task_name': sender.name,
                'args': args,
                'kwargs': kwargs,
            }
        )
    except Exception as e:
        # Don't fail if Sentry capture fails
        logger.warning(f"Failed to send task failure to Sentry: {e}")


# Celery Beat Schedule for Periodic Tasks
app.conf.beat_schedule = {
    # Drop expired, non-persistent notifications every hour
    'purge-expired-notifications': {
        'task': 'apps.events.tasks.purge_expired_notifications',
        'schedule': 3600.0,
    },
    # Expire sent quotes past their validity date once a day
    'expire-quotes': {
        'task': 'apps.sales.tasks.expire_quotes',
        'schedule': 24 * 3600.0,
    },
}

app.conf.timezone = 'UTC'
