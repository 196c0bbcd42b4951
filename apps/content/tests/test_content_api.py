"""
Tests for content templates and mock generation.
"""
import pytest
from rest_framework import status

from apps.content.models import ContentProject, ContentTemplate
from apps.content.services import render_template
from apps.rbac.models import AuditLog


class TestRenderTemplate:

    def test_substitutes_known_variables(self):
        text, missing = render_template('Hi {{ name }}, welcome to {{company}}!', {
            'name': 'Ada', 'company': 'Acme',
        })

        assert text == 'Hi Ada, welcome to Acme!'
        assert missing == []

    def test_unknown_placeholders_are_kept_and_reported_once(self):
        text, missing = render_template('{{a}} {{b}} {{b}}', {'a': 1})

        assert text == '1 {{b}} {{b}}'
        assert missing == ['b']

    def test_none_counts_as_missing(self):
        text, missing = render_template('{{a}}', {'a': None})

        assert text == '{{a}}'
        assert missing == ['a']

    def test_extract_variables_keeps_first_seen_order(self):
        assert ContentTemplate.extract_variables('{{b}} {{a}} {{ b }} {{1bad}}') == ['b', 'a']


@pytest.mark.django_db
class TestContentTemplates:

    def test_variables_are_extracted_on_create(self, owner_client):
        response = owner_client.post('/v1/content/templates', {
            'name': 'Welcome mail',
            'content_type': 'EMAIL',
            'body': 'Dear {{first_name}}, thanks for joining {{ plan }}.',
            'variables': ['ignored'],
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['variables'] == ['first_name', 'plan']
        assert response.data['usage_count'] == 0

    def test_variables_follow_body_updates(self, owner_client, tenant):
        template = ContentTemplate.objects.create(tenant=tenant, name='T', body='{{a}}')

        response = owner_client.patch(
            f'/v1/content/templates/{template.id}', {'body': '{{x}} and {{y}}'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['variables'] == ['x', 'y']

    def test_viewer_cannot_create(self, viewer_client):
        response = viewer_client.post('/v1/content/templates', {'name': 'T', 'body': 'x'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestContentGeneration:

    @pytest.fixture
    def template(self, tenant):
        return ContentTemplate.objects.create(
            tenant=tenant, name='Promo', body='Buy {{product}} for {{price}} today!'
        )

    def test_project_records_author(self, owner_client, owner, template):
        response = owner_client.post('/v1/content/projects', {
            'title': 'Spring promo', 'template': str(template.id), 'variables': {'product': 'Tea'},
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'DRAFT'
        assert response.data['author_detail']['id'] == str(owner.user.id)

    def test_generate_merges_stored_and_request_variables(self, owner_client, tenant, template):
        project = ContentProject.objects.create(
            tenant=tenant, title='Spring promo', template=template, variables={'product': 'Tea'}
        )

        response = owner_client.post(
            f'/v1/content/projects/{project.id}/generate',
            {'variables': {'price': '3 EUR'}},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['missing_variables'] == []
        data = response.data['data']
        assert data['body'] == 'Buy Tea for 3 EUR today!'
        assert data['status'] == 'GENERATED'
        assert data['generated_at'] is not None
        assert data['variables'] == {'product': 'Tea', 'price': '3 EUR'}

        template.refresh_from_db()
        assert template.usage_count == 1
        log = AuditLog.objects.get(action='content_generated', target_id=project.id)
        assert log.metadata['template_id'] == str(template.id)

    def test_generate_reports_missing_variables(self, owner_client, tenant, template):
        project = ContentProject.objects.create(tenant=tenant, title='Promo', template=template)

        response = owner_client.post(f'/v1/content/projects/{project.id}/generate', {}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['missing_variables'] == ['product', 'price']
        assert response.data['data']['body'] == template.body

    def test_generate_without_template_is_400(self, owner_client, tenant):
        project = ContentProject.objects.create(tenant=tenant, title='Freeform')

        response = owner_client.post(f'/v1/content/projects/{project.id}/generate', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'template'

    def test_generate_other_tenant_project_is_404(self, owner_client, other_tenant):
        foreign_template = ContentTemplate.objects.create(tenant=other_tenant, name='T', body='x')
        foreign = ContentProject.objects.create(tenant=other_tenant, title='Foreign', template=foreign_template)

        response = owner_client.post(f'/v1/content/projects/{foreign.id}/generate', {}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        foreign.refresh_from_db()
        assert foreign.status == 'DRAFT'
