"""
CRM business logic: lead conversion and the dashboard aggregates.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from apps.core.cache import CacheKeys, CacheService, CacheTTL
from apps.core.exceptions import ResourceConflict
from apps.crm.models import Activity, Contact, Customer, Deal, Lead, Opportunity
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class CRMService:

    @classmethod
    def convert_lead(cls, lead, user, company_name=None, opportunity_name=None, value=None,
                     expected_close_date=None, request=None):
        """
        Turn a lead into a customer (and an opportunity when a value is given).

        Raises:
            ResourceConflict: the lead is already converted

        Returns:
            dict with 'lead', 'customer' and 'opportunity' (may be None)
        """
        from apps.events.services import EventService
        from apps.events.models import EventType

        if lead.status == 'CONVERTED':
            raise ResourceConflict('Lead has already been converted', details={'lead_id': str(lead.id)})

        if value is None:
            value = lead.estimated_value

        with transaction.atomic():
            customer = Customer.objects.create(
                tenant=lead.tenant,
                company_name=company_name or lead.company or lead.name,
                email=lead.email,
                phone=lead.phone,
                status='ACTIVE',
                owner=lead.owner or (user if getattr(user, 'is_authenticated', False) else None),
                notes=lead.notes,
            )

            if lead.company:
                first_name, _, last_name = lead.name.partition(' ')
                Contact.objects.create(
                    tenant=lead.tenant,
                    customer=customer,
                    first_name=first_name,
                    last_name=last_name,
                    email=lead.email,
                    phone=lead.phone,
                    is_primary=True,
                )

            opportunity = None
            if value:
                opportunity = Opportunity.objects.create(
                    tenant=lead.tenant,
                    name=opportunity_name or f"{customer.company_name} opportunity",
                    customer=customer,
                    lead=lead,
                    stage='QUALIFICATION',
                    probability=20,
                    value=value,
                    expected_close_date=expected_close_date,
                    owner=customer.owner,
                )

            lead.status = 'CONVERTED'
            lead.converted_customer = customer
            lead.converted_at = timezone.now()
            lead.save(update_fields=['status', 'converted_customer', 'converted_at', 'updated_at'])

            AuditLog.log_action(
                action='lead_converted',
                user=user,
                tenant=lead.tenant,
                target_type='Lead',
                target_id=lead.id,
                metadata={
                    'customer_id': str(customer.id),
                    'opportunity_id': str(opportunity.id) if opportunity else None,
                },
                request=request,
            )

        EventService.publish_event(
            'crm.lead.converted',
            EventType.DATA_CHANGE,
            payload={
                'lead_id': str(lead.id),
                'customer_id': str(customer.id),
                'opportunity_id': str(opportunity.id) if opportunity else None,
                'value': str(value) if value else None,
            },
            options={'source': 'crm'},
            tenant=lead.tenant,
            user=user,
        )
        cls.invalidate_dashboard(lead.tenant)

        logger.info(
            "Lead converted",
            extra={'lead_id': str(lead.id), 'customer_id': str(customer.id), 'tenant_id': str(lead.tenant_id)}
        )
        return {'lead': lead, 'customer': customer, 'opportunity': opportunity}

    @staticmethod
    def invalidate_dashboard(tenant):
        CacheService.delete(CacheKeys.format(CacheKeys.CRM_DASHBOARD, tenant_id=tenant.id))

    @classmethod
    def dashboard(cls, tenant):
        """Counts, open pipeline by stage and won revenue. Cached briefly per tenant."""
        key = CacheKeys.format(CacheKeys.CRM_DASHBOARD, tenant_id=tenant.id)
        data = CacheService.get(key)
        if data is None:
            data = cls._build_dashboard(tenant)
            CacheService.set(key, data, CacheTTL.DASHBOARD, tags=[f'tenant:{tenant.id}'])
        return data

    @staticmethod
    def _build_dashboard(tenant):
        pipeline = []
        rows = (
            Opportunity.objects.for_tenant(tenant)
            .values('stage')
            .annotate(count=Count('id'), value=Sum('value'))
            .order_by('stage')
        )
        for row in rows:
            pipeline.append({
                'stage': row['stage'],
                'count': row['count'],
                'value': str(row['value'] or Decimal('0')),
            })

        open_value = sum(
            (Decimal(item['value']) for item in pipeline if not item['stage'].startswith('CLOSED')),
            Decimal('0'),
        )
        won = Deal.objects.for_tenant(tenant).filter(status='WON').aggregate(total=Sum('amount'), count=Count('id'))

        leads = Lead.objects.for_tenant(tenant)
        return {
            'counts': {
                'customers': Customer.objects.for_tenant(tenant).count(),
                'contacts': Contact.objects.for_tenant(tenant).count(),
                'leads': leads.count(),
                'open_leads': leads.exclude(status__in=['CONVERTED', 'LOST', 'UNQUALIFIED']).count(),
                'opportunities': Opportunity.objects.for_tenant(tenant).count(),
                'deals': Deal.objects.for_tenant(tenant).count(),
                'activities': Activity.objects.for_tenant(tenant).count(),
            },
            'pipeline_by_stage': pipeline,
            'open_pipeline_value': str(open_value),
            'won_deals': {
                'count': won['count'] or 0,
                'total': str(won['total'] or Decimal('0')),
            },
            'generated_at': timezone.now().isoformat(),
        }
