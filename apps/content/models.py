"""
Content creation models: reusable templates and the projects generated from them.
"""
import re

from django.conf import settings
from django.db import models

from apps.core.models import TenantModel

PLACEHOLDER_RE = re.compile(r'\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}')


class ContentTemplate(TenantModel):
    """
    A text template with {{variable}} placeholders.

    variables lists the placeholder names found in body; it is refreshed
    on every save.
    """

    TYPE_CHOICES = [
        ('BLOG_POST', 'Blog post'),
        ('SOCIAL_MEDIA', 'Social media'),
        ('EMAIL', 'Email'),
        ('AD_COPY', 'Ad copy'),
        ('PRODUCT_DESCRIPTION', 'Product description'),
        ('OTHER', 'Other'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    content_type = models.CharField(max_length=30, choices=TYPE_CHOICES, default='OTHER', db_index=True)
    body = models.TextField()
    variables = models.JSONField(default=list, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta(TenantModel.Meta):
        db_table = 'content_templates'

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.variables = self.extract_variables(self.body)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'body' in update_fields and 'variables' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['variables']
        super().save(*args, **kwargs)

    @staticmethod
    def extract_variables(body):
        seen = []
        for name in PLACEHOLDER_RE.findall(body or ''):
            if name not in seen:
                seen.append(name)
        return seen


class ContentProject(TenantModel):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('GENERATED', 'Generated'),
        ('REVIEW', 'In review'),
        ('PUBLISHED', 'Published'),
        ('ARCHIVED', 'Archived'),
    ]

    title = models.CharField(max_length=255)
    template = models.ForeignKey(
        ContentTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='projects'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT', db_index=True)
    variables = models.JSONField(default=dict, blank=True)
    body = models.TextField(blank=True)
    generated_at = models.DateTimeField(null=True, blank=True)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    tags = models.JSONField(default=list, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'content_projects'

    def __str__(self):
        return self.title
