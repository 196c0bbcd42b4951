"""
Dashboard defaults and report runs.
"""
import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from apps.analytics.models import Dashboard
from apps.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _crm_report(tenant):
    from apps.crm.services import CRMService
    return CRMService.dashboard(tenant)


def _sales_report(tenant):
    from apps.sales.services import SalesService
    return SalesService.summary(tenant)


def _hr_report(tenant):
    from apps.hr.services import HRService
    return HRService.dashboard(tenant)


def _projects_report(tenant):
    from apps.projects.models import Project, Task

    projects = Project.objects.for_tenant(tenant)
    by_status = {value: 0 for value, _ in Project.STATUS_CHOICES}
    for row in projects.values('status').annotate(count=Count('id')).order_by('status'):
        by_status[row['status']] = row['count']

    overdue_tasks = (
        Task.objects.for_tenant(tenant)
        .exclude(status='DONE')
        .filter(due_date__lt=timezone.localdate())
        .count()
    )
    return {
        'projects_by_status': by_status,
        'past_end_date': sum(1 for project in projects if project.is_past_end_date),
        'overdue_tasks': overdue_tasks,
        'generated_at': timezone.now().isoformat(),
    }


REPORT_BUILDERS = {
    'CRM': _crm_report,
    'SALES': _sales_report,
    'HR': _hr_report,
    'PROJECTS': _projects_report,
}


class AnalyticsService:

    @staticmethod
    def make_default(dashboard):
        """Clear is_default on the tenant's other dashboards."""
        Dashboard.objects.for_tenant(dashboard.tenant_id).filter(is_default=True).exclude(
            pk=dashboard.pk
        ).update(is_default=False, updated_at=timezone.now())

    @staticmethod
    def run_report(report):
        """
        Rebuild a module report's data from the live aggregates.

        Raises:
            ValidationError: CUSTOM reports carry caller-supplied data and cannot be run
        """
        builder = REPORT_BUILDERS.get(report.type)
        if builder is None:
            raise ValidationError(
                f'{report.type} reports cannot be run',
                details={'field': 'type', 'runnable': sorted(REPORT_BUILDERS)},
            )

        with transaction.atomic():
            report.data = builder(report.tenant)
            report.last_run_at = timezone.now()
            report.save(update_fields=['data', 'last_run_at', 'updated_at'])

        logger.info(
            "Report run",
            extra={'report_id': str(report.id), 'type': report.type, 'tenant_id': str(report.tenant_id)}
        )
        return report
