"""
Mock content generation.

There is no language model behind this: generation renders the project's
template, replacing {{name}} placeholders with the supplied variables.
Unknown placeholders are left untouched so the author can spot them.
"""
import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.content.models import PLACEHOLDER_RE, ContentTemplate
from apps.core.exceptions import ValidationError
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


def render_template(body, variables):
    """Substitute {{name}} placeholders. Returns (text, missing_names)."""
    missing = []

    def replace(match):
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return str(variables[name])
        if name not in missing:
            missing.append(name)
        return match.group(0)

    return PLACEHOLDER_RE.sub(replace, body or ''), missing


class ContentService:

    @classmethod
    def generate(cls, project, variables=None, user=None, request=None):
        """
        Fill project.body from its template.

        Raises:
            ValidationError: the project has no template

        Returns:
            (project, missing placeholder names)
        """
        template = project.template
        if template is None:
            raise ValidationError('Content project has no template to generate from',
                                  details={'field': 'template'})

        merged = dict(project.variables or {})
        merged.update(variables or {})

        body, missing = render_template(template.body, merged)

        with transaction.atomic():
            project.body = body
            project.variables = merged
            project.status = 'GENERATED'
            project.generated_at = timezone.now()
            project.save(update_fields=['body', 'variables', 'status', 'generated_at', 'updated_at'])

            ContentTemplate.objects.filter(pk=template.pk).update(usage_count=F('usage_count') + 1)

            AuditLog.log_action(
                action='content_generated',
                user=user,
                tenant=project.tenant,
                target_type='ContentProject',
                target_id=project.id,
                metadata={
                    'template_id': str(template.id),
                    'variables': sorted(merged.keys()),
                    'missing': missing,
                },
                request=request,
            )

        logger.info(
            "Content generated",
            extra={'content_project_id': str(project.id), 'template_id': str(template.id),
                   'missing_variables': missing}
        )
        return project, missing
