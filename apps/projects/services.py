"""
Project statistics.
"""
from django.db.models import Count
from django.utils import timezone

from apps.projects.models import Task


class ProjectService:

    @staticmethod
    def stats(project):
        """
        Task counts by status, overdue count and completion percentage.

        Completion is DONE tasks over all tasks, 0 for a project without tasks.
        """
        tasks = Task.objects.for_tenant(project.tenant_id).filter(project=project)

        by_status = {value: 0 for value, _ in Task.STATUS_CHOICES}
        for row in tasks.values('status').annotate(count=Count('id')).order_by('status'):
            by_status[row['status']] = row['count']

        total = sum(by_status.values())
        done = by_status['DONE']
        overdue = tasks.exclude(status='DONE').filter(due_date__lt=timezone.localdate()).count()

        return {
            'project_id': str(project.id),
            'total_tasks': total,
            'tasks_by_status': by_status,
            'overdue_tasks': overdue,
            'completion_percentage': round(done * 100.0 / total, 1) if total else 0.0,
            'milestones': {
                'total': project.milestones.count(),
                'completed': project.milestones.filter(status='COMPLETED').count(),
            },
            'members': project.members.count(),
        }
