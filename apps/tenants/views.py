"""
Tenant API views.

Provides endpoints for:
- Platform tenant administration (/v1/admin/tenants)
- Tenant switching and membership listing for the current user
"""
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiParameter
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import CanManageTenants, IsSuperAdmin
from apps.core.pipeline import QueryFilterMixin, StandardResultsSetPagination
from apps.rbac.serializers import TenantUserSerializer
from apps.tenants.models import Tenant
from apps.tenants.serializers import (
    TenantSerializer, AdminTenantListSerializer, TenantCreateSerializer,
    TenantUpdateSerializer, SwitchTenantSerializer
)
from apps.tenants.services import TenantService

logger = logging.getLogger(__name__)


class AdminTenantListView(QueryFilterMixin, APIView):
    """
    GET  /v1/admin/tenants - list all tenants with counts
    POST /v1/admin/tenants - create a tenant

    Required: platform super admin
    """
    permission_classes = [IsSuperAdmin]
    filterset_fields = ('is_active',)
    search_fields = ('name', 'slug')

    @extend_schema(
        summary="List all tenants (admin)",
        description="Paginated list of all tenants with user, customer and lead counts.",
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, OpenApiParameter.QUERY,
                             description='Search by tenant name or slug'),
            OpenApiParameter('is_active', OpenApiTypes.BOOL, OpenApiParameter.QUERY),
            OpenApiParameter('page', OpenApiTypes.INT, OpenApiParameter.QUERY, description='Page number'),
            OpenApiParameter('page_size', OpenApiTypes.INT, OpenApiParameter.QUERY,
                             description='Number of items per page (max 100)'),
        ],
        responses={200: AdminTenantListSerializer(many=True), 403: None},
        tags=['Admin - Tenants']
    )
    def get(self, request):
        queryset = self.filter_queryset(Tenant.objects.all())

        queryset = TenantService.with_counts(queryset).order_by('-created_at')

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(AdminTenantListSerializer(page, many=True).data)

    @extend_schema(
        summary="Create tenant (admin)",
        request=TenantCreateSerializer,
        responses={201: TenantSerializer, 400: None, 409: None},
        tags=['Admin - Tenants']
    )
    def post(self, request):
        serializer = TenantCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tenant = TenantService.create_tenant(serializer.validated_data, created_by=request.user, request=request)
        return Response(TenantSerializer(tenant).data, status=status.HTTP_201_CREATED)


class AdminTenantDetailView(APIView):
    """
    GET    /v1/admin/tenants/{id}
    PUT    /v1/admin/tenants/{id}
    DELETE /v1/admin/tenants/{id} - deactivate and free the slug

    Required: can_manage_tenants
    """
    permission_classes = [CanManageTenants]

    def get_object(self, tenant_id):
        return TenantService.with_counts(Tenant.objects.filter(id=tenant_id)).first()

    @extend_schema(
        summary="Get tenant (admin)",
        responses={200: AdminTenantListSerializer, 404: None},
        tags=['Admin - Tenants']
    )
    def get(self, request, tenant_id):
        tenant = self.get_object(tenant_id)
        if tenant is None:
            return APIErrorHandler.not_found('Tenant', request)
        data = AdminTenantListSerializer(tenant).data
        data['child_tenants'] = [
            {'id': str(c.id), 'name': c.name, 'slug': c.slug, 'is_active': c.is_active}
            for c in tenant.child_tenants.all()
        ]
        return Response(data)

    @extend_schema(
        summary="Update tenant (admin)",
        request=TenantUpdateSerializer,
        responses={200: TenantSerializer, 404: None, 409: None},
        tags=['Admin - Tenants']
    )
    def put(self, request, tenant_id):
        tenant = self.get_object(tenant_id)
        if tenant is None:
            return APIErrorHandler.not_found('Tenant', request)

        serializer = TenantUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        tenant = TenantService.update_tenant(tenant, serializer.validated_data, updated_by=request.user,
                                             request=request)
        return Response(TenantSerializer(tenant).data)

    @extend_schema(
        summary="Delete tenant (admin)",
        description="Soft delete. Fails with 400 while active child tenants exist.",
        responses={200: None, 400: None, 404: None},
        tags=['Admin - Tenants']
    )
    def delete(self, request, tenant_id):
        tenant = self.get_object(tenant_id)
        if tenant is None:
            return APIErrorHandler.not_found('Tenant', request)

        TenantService.delete_tenant(tenant, deleted_by=request.user, request=request)
        return Response({'success': True, 'message': 'Tenant deleted'})


class SwitchTenantView(APIView):
    """
    POST /v1/tenants/switch

    Make another tenant the caller's primary tenant.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Switch tenant",
        request=SwitchTenantSerializer,
        responses={200: None, 400: None, 403: None},
        tags=['Tenants']
    )
    def post(self, request):
        serializer = SwitchTenantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tenant_id = serializer.validated_data.get('tenant_id')
        if not tenant_id:
            return APIErrorHandler.validation_error('tenant_id is required', field='tenant_id', request=request)

        membership = TenantService.switch_tenant(request.user, tenant_id, request=request)
        return Response({
            'success': True,
            'tenant': {
                'id': str(membership.tenant.id),
                'name': membership.tenant.name,
                'slug': membership.tenant.slug,
            },
        })


class MyTenantsView(APIView):
    """
    GET /v1/tenants/mine

    Tenants the caller belongs to, primary first.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(summary="List my tenants", responses={200: TenantUserSerializer(many=True)}, tags=['Tenants'])
    def get(self, request):
        memberships = TenantService.user_tenants(request.user)
        return Response({'tenants': TenantUserSerializer(memberships, many=True).data})
