"""
CRM API views.

CRUD endpoints are declared on top of apps.core.pipeline; lead conversion
and the dashboard are hand written.
"""
import logging

from django.utils import timezone
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.cache import CacheKeys
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView
from apps.crm.models import Activity, Contact, Customer, Deal, Lead, Opportunity
from apps.crm.serializers import (
    ActivitySerializer, ContactSerializer, CustomerSerializer, DealSerializer,
    LeadConvertSerializer, LeadSerializer, OpportunitySerializer
)
from apps.crm.services import CRMService

logger = logging.getLogger(__name__)


class CRMResourceMixin:
    view_scope = 'crm:view'
    edit_scope = 'crm:edit'
    cache_keys = (CacheKeys.CRM_DASHBOARD,)


# Customers

@extend_schema_view(
    get=extend_schema(summary="List customers", tags=['CRM']),
    post=extend_schema(summary="Create customer", tags=['CRM']),
)
class CustomerListView(CRMResourceMixin, TenantResourceListView):
    model = Customer
    serializer_class = CustomerSerializer
    audit_name = 'customer'
    search_fields = ('company_name', 'email', 'industry')
    filterset_fields = ('status', 'owner', 'industry')
    select_related = ('owner',)


@extend_schema_view(
    get=extend_schema(summary="Get customer", tags=['CRM']),
    put=extend_schema(summary="Update customer", tags=['CRM']),
    patch=extend_schema(summary="Partially update customer", tags=['CRM']),
    delete=extend_schema(summary="Delete customer", tags=['CRM']),
)
class CustomerDetailView(CRMResourceMixin, TenantResourceDetailView):
    model = Customer
    serializer_class = CustomerSerializer
    audit_name = 'customer'
    select_related = ('owner',)


# Contacts

@extend_schema_view(
    get=extend_schema(summary="List contacts", tags=['CRM']),
    post=extend_schema(summary="Create contact", tags=['CRM']),
)
class ContactListView(CRMResourceMixin, TenantResourceListView):
    model = Contact
    serializer_class = ContactSerializer
    audit_name = 'contact'
    search_fields = ('first_name', 'last_name', 'email', 'customer__company_name')
    filterset_fields = ('customer', 'is_primary')


@extend_schema_view(
    get=extend_schema(summary="Get contact", tags=['CRM']),
    put=extend_schema(summary="Update contact", tags=['CRM']),
    patch=extend_schema(summary="Partially update contact", tags=['CRM']),
    delete=extend_schema(summary="Delete contact", tags=['CRM']),
)
class ContactDetailView(CRMResourceMixin, TenantResourceDetailView):
    model = Contact
    serializer_class = ContactSerializer
    audit_name = 'contact'


# Leads

@extend_schema_view(
    get=extend_schema(summary="List leads", tags=['CRM']),
    post=extend_schema(summary="Create lead", tags=['CRM']),
)
class LeadListView(CRMResourceMixin, TenantResourceListView):
    model = Lead
    serializer_class = LeadSerializer
    audit_name = 'lead'
    search_fields = ('name', 'company', 'email')
    filterset_fields = ('status', 'source', 'owner')
    select_related = ('owner',)


@extend_schema_view(
    get=extend_schema(summary="Get lead", tags=['CRM']),
    put=extend_schema(summary="Update lead", tags=['CRM']),
    patch=extend_schema(summary="Partially update lead", tags=['CRM']),
    delete=extend_schema(summary="Delete lead", tags=['CRM']),
)
class LeadDetailView(CRMResourceMixin, TenantResourceDetailView):
    model = Lead
    serializer_class = LeadSerializer
    audit_name = 'lead'
    select_related = ('owner',)


class LeadConvertView(APIView):
    """
    POST /v1/crm/leads/{id}/convert

    Creates a customer (plus an opportunity when a value is known), marks
    the lead CONVERTED and publishes crm.lead.converted.
    """
    permission_classes = [HasTenantScopes]

    @extend_schema(
        summary="Convert lead",
        request=LeadConvertSerializer,
        responses={200: None, 404: None, 409: None},
        tags=['CRM']
    )
    @requires_scopes('crm:edit')
    def post(self, request, pk):
        lead = Lead.objects.for_tenant(request.tenant).filter(pk=pk).first()
        if lead is None:
            return APIErrorHandler.not_found('Lead', request)

        serializer = LeadConvertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CRMService.convert_lead(lead, request.user, request=request, **serializer.validated_data)

        opportunity = result['opportunity']
        return Response({
            'success': True,
            'data': {
                'lead': LeadSerializer(result['lead'], context={'tenant': request.tenant}).data,
                'customer': CustomerSerializer(result['customer'], context={'tenant': request.tenant}).data,
                'opportunity': OpportunitySerializer(
                    opportunity, context={'tenant': request.tenant}
                ).data if opportunity else None,
            },
        }, status=status.HTTP_200_OK)


# Opportunities

@extend_schema_view(
    get=extend_schema(summary="List opportunities", tags=['CRM']),
    post=extend_schema(summary="Create opportunity", tags=['CRM']),
)
class OpportunityListView(CRMResourceMixin, TenantResourceListView):
    model = Opportunity
    serializer_class = OpportunitySerializer
    audit_name = 'opportunity'
    search_fields = ('name', 'customer__company_name', 'description')
    filterset_fields = ('stage', 'owner', 'customer')


@extend_schema_view(
    get=extend_schema(summary="Get opportunity", tags=['CRM']),
    put=extend_schema(summary="Update opportunity", tags=['CRM']),
    patch=extend_schema(summary="Partially update opportunity", tags=['CRM']),
    delete=extend_schema(summary="Delete opportunity", tags=['CRM']),
)
class OpportunityDetailView(CRMResourceMixin, TenantResourceDetailView):
    model = Opportunity
    serializer_class = OpportunitySerializer
    audit_name = 'opportunity'


# Deals

@extend_schema_view(
    get=extend_schema(summary="List deals", tags=['CRM']),
    post=extend_schema(summary="Create deal", tags=['CRM']),
)
class DealListView(CRMResourceMixin, TenantResourceListView):
    model = Deal
    serializer_class = DealSerializer
    audit_name = 'deal'
    search_fields = ('name', 'customer__company_name', 'description')
    filterset_fields = ('status', 'owner', 'customer')


@extend_schema_view(
    get=extend_schema(summary="Get deal", tags=['CRM']),
    put=extend_schema(summary="Update deal", tags=['CRM']),
    patch=extend_schema(summary="Partially update deal", tags=['CRM']),
    delete=extend_schema(summary="Delete deal", tags=['CRM']),
)
class DealDetailView(CRMResourceMixin, TenantResourceDetailView):
    model = Deal
    serializer_class = DealSerializer
    audit_name = 'deal'


# Activities

class ActivityCompletionMixin:
    """Stamp completed_at when an activity moves to COMPLETED."""

    def _completion_fields(self, serializer, instance=None):
        new_status = serializer.validated_data.get('status')
        if new_status is None:
            return {}
        if new_status == 'COMPLETED':
            if instance is None or instance.completed_at is None:
                return {'completed_at': timezone.now()}
            return {}
        return {'completed_at': None}

    def perform_create(self, serializer):
        return serializer.save(tenant=self.request.tenant, **self._completion_fields(serializer))

    def perform_update(self, serializer):
        return serializer.save(**self._completion_fields(serializer, serializer.instance))


@extend_schema_view(
    get=extend_schema(summary="List activities", tags=['CRM']),
    post=extend_schema(summary="Create activity", tags=['CRM']),
)
class ActivityListView(ActivityCompletionMixin, CRMResourceMixin, TenantResourceListView):
    model = Activity
    serializer_class = ActivitySerializer
    audit_name = 'activity'
    search_fields = ('subject', 'description')
    filterset_fields = ('type', 'status', 'owner', 'customer', 'lead', 'deal')


@extend_schema_view(
    get=extend_schema(summary="Get activity", tags=['CRM']),
    put=extend_schema(summary="Update activity", tags=['CRM']),
    patch=extend_schema(summary="Partially update activity", tags=['CRM']),
    delete=extend_schema(summary="Delete activity", tags=['CRM']),
)
class ActivityDetailView(ActivityCompletionMixin, CRMResourceMixin, TenantResourceDetailView):
    model = Activity
    serializer_class = ActivitySerializer
    audit_name = 'activity'


class CRMDashboardView(APIView):
    """GET /v1/crm/dashboard"""
    permission_classes = [HasTenantScopes]

    @extend_schema(summary="CRM dashboard", responses={200: None}, tags=['CRM'])
    @requires_scopes('crm:view')
    def get(self, request):
        return Response({'success': True, 'data': CRMService.dashboard(request.tenant)})
