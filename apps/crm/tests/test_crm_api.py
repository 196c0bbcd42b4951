"""
Tests for the CRM endpoints.

Tests:
- CRUD through the shared tenant pipeline (create, list, search, update, delete)
- Scope enforcement (viewer cannot write)
- Tenant isolation of lists, details and related ids
- Lead conversion
- Dashboard aggregates and cache invalidation
"""
from decimal import Decimal

import pytest
from rest_framework import status

from apps.crm.models import Contact, Customer, Deal, Lead, Opportunity
from apps.events.models import EventBus
from apps.rbac.models import AuditLog


@pytest.mark.django_db
class TestCustomerCrud:
    """Customer endpoints exercise the generic list/detail pipeline."""

    def test_create_customer_writes_audit_row(self, owner_client, owner, tenant):
        response = owner_client.post('/v1/crm/customers', {
            'company_name': 'Acme Ltd',
            'email': 'info@acme.test',
            'industry': 'Manufacturing',
            'owner': str(owner.user.id),
            'tags': ['key-account'],
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['company_name'] == 'Acme Ltd'
        assert response.data['owner_detail']['email'] == owner.user.email
        assert response.data['contact_count'] == 0

        customer = Customer.objects.get(id=response.data['id'])
        assert customer.tenant_id == tenant.id

        log = AuditLog.objects.get(action='customer_created', target_id=customer.id)
        assert log.tenant_id == tenant.id
        assert log.user_id == owner.user.id
        assert log.request_id

    def test_list_search_and_filter(self, owner_client, tenant):
        Customer.objects.create(tenant=tenant, company_name='Acme Ltd', status='ACTIVE')
        Customer.objects.create(tenant=tenant, company_name='Globex', status='PROSPECT')

        response = owner_client.get('/v1/crm/customers?search=acme')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['company_name'] == 'Acme Ltd'

        response = owner_client.get('/v1/crm/customers?status=PROSPECT')
        assert [c['company_name'] for c in response.data['results']] == ['Globex']

    def test_update_records_field_diff(self, owner_client, tenant):
        customer = Customer.objects.create(tenant=tenant, company_name='Acme Ltd', status='PROSPECT')

        response = owner_client.patch(
            f'/v1/crm/customers/{customer.id}', {'status': 'ACTIVE'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'ACTIVE'
        log = AuditLog.objects.get(action='customer_updated', target_id=customer.id)
        assert log.diff == {'status': {'old': 'PROSPECT', 'new': 'ACTIVE'}}

    def test_diff_values_use_json_types(self, owner_client, owner, tenant):
        deal = Deal.objects.create(tenant=tenant, name='Renewal', amount=Decimal('1000.00'))

        response = owner_client.patch(f'/v1/crm/deals/{deal.id}', {
            'amount': '1500.00', 'close_date': '2024-06-30', 'owner': str(owner.user.id),
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        log = AuditLog.objects.get(action='deal_updated', target_id=deal.id)
        assert log.diff == {
            'amount': {'old': 1000.0, 'new': 1500.0},
            'close_date': {'old': None, 'new': '2024-06-30'},
            'owner': {'old': None, 'new': str(owner.user.id)},
        }

    def test_delete_is_soft(self, owner_client, tenant):
        customer = Customer.objects.create(tenant=tenant, company_name='Acme Ltd')

        response = owner_client.delete(f'/v1/crm/customers/{customer.id}')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Customer.objects.filter(id=customer.id).exists()
        assert Customer.objects_with_deleted.get(id=customer.id).deleted_at is not None
        assert AuditLog.objects.filter(action='customer_deleted', target_id=customer.id).exists()

        response = owner_client.get(f'/v1/crm/customers/{customer.id}')
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['details']['code'] == 'NOT_FOUND'

    def test_invalid_tags_rejected(self, owner_client):
        response = owner_client.post('/v1/crm/customers', {
            'company_name': 'Acme Ltd', 'tags': 'not-a-list',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'
        assert 'tags' in response.data['details']['fields']

    def test_owner_must_be_tenant_member(self, owner_client, make_user):
        outsider = make_user('outsider@example.com')

        response = owner_client.post('/v1/crm/customers', {
            'company_name': 'Acme Ltd', 'owner': str(outsider.id),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'owner' in response.data['details']['fields']


@pytest.mark.django_db
class TestCRMScopes:

    def test_viewer_can_read_but_not_write(self, viewer_client, tenant):
        Customer.objects.create(tenant=tenant, company_name='Acme Ltd')

        assert viewer_client.get('/v1/crm/customers').status_code == status.HTTP_200_OK

        response = viewer_client.post('/v1/crm/customers', {'company_name': 'Nope'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['details']['code'] == 'FORBIDDEN'
        assert Customer.objects.filter(company_name='Nope').count() == 0

    def test_member_without_roles_is_denied(self, tenant, make_member, client_for):
        member = make_member(tenant, role=None)
        client = client_for(member.user, tenant)

        assert client.get('/v1/crm/leads').status_code == status.HTTP_403_FORBIDDEN

    def test_unauthenticated_request_gets_401(self, api_client, tenant):
        response = api_client.get('/v1/crm/customers', HTTP_X_TENANT_ID=str(tenant.id))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestCRMTenantIsolation:

    def test_lists_only_show_own_tenant(self, owner_client, tenant, other_tenant):
        Lead.objects.create(tenant=tenant, name='Mine')
        Lead.objects.create(tenant=other_tenant, name='Theirs')

        response = owner_client.get('/v1/crm/leads')

        assert [lead['name'] for lead in response.data['results']] == ['Mine']

    def test_other_tenant_detail_is_404(self, owner_client, other_tenant):
        foreign = Deal.objects.create(tenant=other_tenant, name='Foreign', amount=Decimal('10'))

        response = owner_client.get(f'/v1/crm/deals/{foreign.id}')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_related_id_from_other_tenant_rejected(self, owner_client, other_tenant):
        foreign_customer = Customer.objects.create(tenant=other_tenant, company_name='Foreign')

        response = owner_client.post('/v1/crm/contacts', {
            'first_name': 'Ann', 'customer': str(foreign_customer.id),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'customer' in response.data['details']['fields']


@pytest.mark.django_db
class TestLeadConversion:

    def test_convert_creates_customer_contact_and_opportunity(self, owner_client, owner, tenant):
        lead = Lead.objects.create(
            tenant=tenant, name='Jane Doe', company='Initech', email='jane@initech.test',
            estimated_value=Decimal('5000.00'), owner=owner.user,
        )

        response = owner_client.post(f'/v1/crm/leads/{lead.id}/convert', {}, format='json')

        assert response.status_code == status.HTTP_200_OK
        data = response.data['data']
        assert data['lead']['status'] == 'CONVERTED'
        assert data['customer']['company_name'] == 'Initech'
        assert data['opportunity']['stage'] == 'QUALIFICATION'
        assert data['opportunity']['probability'] == 20
        assert Decimal(data['opportunity']['value']) == Decimal('5000.00')

        lead.refresh_from_db()
        assert lead.converted_customer_id is not None
        assert lead.converted_at is not None

        contact = Contact.objects.get(customer_id=lead.converted_customer_id)
        assert (contact.first_name, contact.last_name, contact.is_primary) == ('Jane', 'Doe', True)

        assert AuditLog.objects.filter(action='lead_converted', target_id=lead.id).exists()
        event = EventBus.objects.get(event_name='crm.lead.converted')
        assert event.tenant_id == tenant.id
        assert event.payload['lead_id'] == str(lead.id)

    def test_convert_without_value_creates_no_opportunity(self, owner_client, tenant):
        lead = Lead.objects.create(tenant=tenant, name='Solo Trader')

        response = owner_client.post(f'/v1/crm/leads/{lead.id}/convert', {
            'company_name': 'Solo Ltd',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['opportunity'] is None
        assert response.data['data']['customer']['company_name'] == 'Solo Ltd'
        assert Opportunity.objects.for_tenant(tenant).count() == 0
        # No company on the lead, no contact
        assert Contact.objects.for_tenant(tenant).count() == 0

    def test_converting_twice_conflicts(self, owner_client, tenant):
        lead = Lead.objects.create(tenant=tenant, name='Jane Doe')
        owner_client.post(f'/v1/crm/leads/{lead.id}/convert', {}, format='json')

        response = owner_client.post(f'/v1/crm/leads/{lead.id}/convert', {}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert Customer.objects.for_tenant(tenant).count() == 1

    def test_status_cannot_be_set_to_converted_directly(self, owner_client, tenant):
        lead = Lead.objects.create(tenant=tenant, name='Jane Doe')

        response = owner_client.patch(f'/v1/crm/leads/{lead.id}', {'status': 'CONVERTED'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_viewer_cannot_convert(self, viewer_client, tenant):
        lead = Lead.objects.create(tenant=tenant, name='Jane Doe')

        response = viewer_client.post(f'/v1/crm/leads/{lead.id}/convert', {}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        lead.refresh_from_db()
        assert lead.status == 'NEW'


@pytest.mark.django_db
class TestActivities:

    def test_completing_activity_stamps_completed_at(self, owner_client, tenant):
        response = owner_client.post('/v1/crm/activities', {'subject': 'Call Jane', 'type': 'CALL'},
                                     format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['completed_at'] is None

        activity_id = response.data['id']
        response = owner_client.patch(f'/v1/crm/activities/{activity_id}', {'status': 'COMPLETED'},
                                      format='json')
        assert response.data['completed_at'] is not None

        response = owner_client.patch(f'/v1/crm/activities/{activity_id}', {'status': 'SCHEDULED'},
                                      format='json')
        assert response.data['completed_at'] is None


@pytest.mark.django_db
class TestCRMDashboard:

    def test_dashboard_aggregates(self, owner_client, tenant):
        customer = Customer.objects.create(tenant=tenant, company_name='Acme Ltd')
        Opportunity.objects.create(tenant=tenant, name='A', customer=customer, stage='PROPOSAL',
                                   value=Decimal('100.00'))
        Opportunity.objects.create(tenant=tenant, name='B', customer=customer, stage='PROPOSAL',
                                   value=Decimal('50.00'))
        Opportunity.objects.create(tenant=tenant, name='C', customer=customer, stage='CLOSED_WON',
                                   value=Decimal('999.00'))
        Deal.objects.create(tenant=tenant, name='Won', amount=Decimal('999.00'), status='WON')
        Lead.objects.create(tenant=tenant, name='Open lead')

        response = owner_client.get('/v1/crm/dashboard')

        assert response.status_code == status.HTTP_200_OK
        data = response.data['data']
        assert data['counts']['customers'] == 1
        assert data['counts']['opportunities'] == 3
        assert data['counts']['open_leads'] == 1
        assert Decimal(data['open_pipeline_value']) == Decimal('150.00')
        assert data['won_deals']['count'] == 1
        assert Decimal(data['won_deals']['total']) == Decimal('999.00')
        proposal = next(row for row in data['pipeline_by_stage'] if row['stage'] == 'PROPOSAL')
        assert proposal['count'] == 2

    def test_write_invalidates_cached_dashboard(self, owner_client, tenant):
        first = owner_client.get('/v1/crm/dashboard').data['data']
        assert first['counts']['customers'] == 0

        owner_client.post('/v1/crm/customers', {'company_name': 'Acme Ltd'}, format='json')

        second = owner_client.get('/v1/crm/dashboard').data['data']
        assert second['counts']['customers'] == 1


@pytest.mark.django_db
class TestListFilters:
    """Query parameters are parsed before they reach the ORM."""

    def test_malformed_uuid_filter(self, owner_client):
        response = owner_client.get('/v1/crm/leads?owner=not-a-uuid')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'
        assert 'owner' in response.data['details']['fields']

    def test_unknown_choice(self, owner_client):
        response = owner_client.get('/v1/crm/customers?status=BOGUS')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'status' in response.data['details']['fields']

    def test_owner_filter(self, owner_client, owner, tenant):
        Lead.objects.create(tenant=tenant, name='Mine', owner=owner.user)
        Lead.objects.create(tenant=tenant, name='Unassigned')

        response = owner_client.get(f'/v1/crm/leads?owner={owner.user.id}')

        assert response.status_code == status.HTTP_200_OK
        assert [lead['name'] for lead in response.data['results']] == ['Mine']

    def test_ordering(self, owner_client, tenant):
        Customer.objects.create(tenant=tenant, company_name='First')
        Customer.objects.create(tenant=tenant, company_name='Second')

        response = owner_client.get('/v1/crm/customers?ordering=-created_at')

        assert [c['company_name'] for c in response.data['results']] == ['Second', 'First']
