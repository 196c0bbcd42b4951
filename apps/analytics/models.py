"""
Analytics models: user-built dashboards, their widgets and saved reports.
"""
from django.conf import settings
from django.db import models

from apps.core.models import TenantModel


class Dashboard(TenantModel):
    """A named widget layout. At most one dashboard per tenant is the default."""

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    layout = models.JSONField(default=dict, blank=True)
    is_default = models.BooleanField(default=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta(TenantModel.Meta):
        db_table = 'analytics_dashboards'

    def __str__(self):
        return self.name


class Widget(TenantModel):
    TYPE_CHOICES = [
        ('METRIC', 'Metric'),
        ('CHART', 'Chart'),
        ('TABLE', 'Table'),
        ('LIST', 'List'),
        ('TEXT', 'Text'),
    ]

    dashboard = models.ForeignKey(Dashboard, on_delete=models.CASCADE, related_name='widgets')
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    data_source = models.CharField(max_length=100, blank=True)
    config = models.JSONField(default=dict, blank=True)
    position = models.JSONField(default=dict, blank=True)
    size = models.JSONField(default=dict, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'analytics_widgets'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.name} ({self.type})"


class Report(TenantModel):
    """A saved report. Module reports can be re-run to refresh their data."""

    TYPE_CHOICES = [
        ('CRM', 'CRM'),
        ('SALES', 'Sales'),
        ('HR', 'HR'),
        ('PROJECTS', 'Projects'),
        ('CUSTOM', 'Custom'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, db_index=True)
    config = models.JSONField(default=dict, blank=True)
    data = models.JSONField(default=dict, blank=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta(TenantModel.Meta):
        db_table = 'analytics_reports'

    def __str__(self):
        return self.name
