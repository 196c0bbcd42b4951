"""
Project management models.
"""
from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models
from django.utils import timezone

from apps.core.models import TenantModel


class Project(TenantModel):
    STATUS_CHOICES = [
        ('PLANNING', 'Planning'),
        ('ACTIVE', 'Active'),
        ('ON_HOLD', 'On hold'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]
    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
        ('CRITICAL', 'Critical'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PLANNING', db_index=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='MEDIUM')
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    customer = models.ForeignKey(
        'crm.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='projects'
    )
    tags = models.JSONField(default=list, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'projects'

    def __str__(self):
        return self.name

    @property
    def is_past_end_date(self):
        return (
            self.end_date is not None
            and self.end_date < timezone.localdate()
            and self.status not in ('COMPLETED', 'CANCELLED')
        )


class ProjectMember(TenantModel):
    ROLE_CHOICES = [
        ('OWNER', 'Owner'),
        ('MANAGER', 'Manager'),
        ('MEMBER', 'Member'),
        ('VIEWER', 'Viewer'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='MEMBER')
    allocation_percent = models.PositiveSmallIntegerField(default=100, validators=[MaxValueValidator(100)])

    class Meta(TenantModel.Meta):
        db_table = 'project_members'
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'user'],
                condition=models.Q(deleted_at__isnull=True),
                name='unique_active_project_member',
            ),
        ]

    def __str__(self):
        return f"{self.user} in {self.project} ({self.role})"


class Milestone(TenantModel):
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('IN_PROGRESS', 'In progress'),
        ('COMPLETED', 'Completed'),
        ('MISSED', 'Missed'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='milestones')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING')
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'project_milestones'
        ordering = ['due_date', 'created_at']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if self.status == 'COMPLETED' and self.completed_at is None:
            self.completed_at = timezone.now()
        elif self.status != 'COMPLETED':
            self.completed_at = None
        super().save(*args, **kwargs)


class Task(TenantModel):
    STATUS_CHOICES = [
        ('TODO', 'To do'),
        ('IN_PROGRESS', 'In progress'),
        ('REVIEW', 'Review'),
        ('DONE', 'Done'),
        ('BLOCKED', 'Blocked'),
    ]
    PRIORITY_CHOICES = Project.PRIORITY_CHOICES

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='tasks')
    milestone = models.ForeignKey(
        Milestone, on_delete=models.SET_NULL, null=True, blank=True, related_name='tasks'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='TODO', db_index=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='MEDIUM')
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    due_date = models.DateField(null=True, blank=True)
    estimated_hours = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'project_tasks'
        indexes = [
            models.Index(fields=['tenant', 'project', 'status'], name='tasks_tenant_project_idx'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if self.status == 'DONE' and self.completed_at is None:
            self.completed_at = timezone.now()
        elif self.status != 'DONE':
            self.completed_at = None
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'completed_at' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['completed_at']
        super().save(*args, **kwargs)

    @property
    def is_overdue(self):
        return self.due_date is not None and self.status != 'DONE' and self.due_date < timezone.localdate()
