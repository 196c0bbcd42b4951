"""
Reusable request pipeline for tenant-owned resources.

Every tenant resource endpoint runs the same steps:

    resolve session -> check scopes -> validate -> query/mutate -> audit -> respond

TenantResourceListView and TenantResourceDetailView implement those steps
once. A resource only declares its model, serializers, scopes and audit
names:

    class DealListView(TenantResourceListView):
        model = Deal
        serializer_class = DealSerializer
        view_scope, edit_scope = 'crm:view', 'crm:edit'
        audit_name = 'deal'
        search_fields = ('name', 'description')
        filterset_fields = ('status', 'owner')
"""
import json
import logging

from django.db import transaction
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import SAFE_METHODS
from rest_framework.response import Response
from rest_framework.utils.encoders import JSONEncoder
from rest_framework.views import APIView

from apps.core.cache import CacheKeys, CacheService
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _jsonable(value):
    """Audit diff value, encoded the way DRF encodes response bodies."""
    if hasattr(value, 'pk'):
        value = value.pk
    return json.loads(json.dumps(value, cls=JSONEncoder))


class QueryFilterMixin:
    """
    Apply filter_backends to a queryset the way GenericAPIView does.

    DjangoFilterBackend reads filterset_class or filterset_fields, SearchFilter
    reads search_fields and OrderingFilter reads ordering_fields.
    """
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = None
    filterset_fields = ()
    search_fields = ()
    ordering_fields = ('created_at', 'updated_at')
    ordering = None

    def filter_queryset(self, queryset):
        for backend in self.filter_backends:
            queryset = backend().filter_queryset(self.request, queryset, self)
        return queryset


class TenantResourceMixin(QueryFilterMixin):
    """Shared configuration and helpers for tenant resource views."""

    permission_classes = [HasTenantScopes]

    model = None
    serializer_class = None
    write_serializer_class = None
    view_scope = None
    edit_scope = None
    audit_name = None
    select_related = ()
    cache_keys = ()

    def check_permissions(self, request):
        """Pick the scope by HTTP method before running permission classes."""
        scope = self.view_scope if request.method in SAFE_METHODS else self.edit_scope
        self.required_scopes = {scope} if scope else set()
        super().check_permissions(request)

    def get_queryset(self):
        queryset = self.model.objects.for_tenant(self.request.tenant)
        if self.select_related:
            queryset = queryset.select_related(*self.select_related)
        if self.ordering:
            queryset = queryset.order_by(*self.ordering)
        return queryset

    def get_serializer_context(self):
        return {'request': self.request, 'tenant': self.request.tenant, 'view': self}

    def get_serializer(self, *args, **kwargs):
        kwargs.setdefault('context', self.get_serializer_context())
        return self.serializer_class(*args, **kwargs)

    def get_write_serializer(self, *args, **kwargs):
        kwargs.setdefault('context', self.get_serializer_context())
        serializer_class = self.write_serializer_class or self.serializer_class
        return serializer_class(*args, **kwargs)

    @property
    def audit_target(self):
        return self.model.__name__

    def audit(self, verb, obj, diff=None, metadata=None):
        """Write '<audit_name>_<verb>' for obj."""
        AuditLog.log_action(
            action=f'{self.audit_name}_{verb}',
            user=self.request.user,
            tenant=self.request.tenant,
            target_type=self.audit_target,
            target_id=obj.id,
            diff=diff,
            metadata=metadata,
            request=self.request,
        )

    def invalidate_cache(self):
        """Drop cached aggregates (dashboards) that the write made stale."""
        for template in self.cache_keys:
            CacheService.delete(CacheKeys.format(template, tenant_id=self.request.tenant.id))

    def perform_create(self, serializer):
        return serializer.save(tenant=self.request.tenant)

    def perform_update(self, serializer):
        return serializer.save()

    def perform_destroy(self, obj):
        obj.delete()


class TenantResourceListView(TenantResourceMixin, APIView):
    """
    GET  - list with ?search=, ?ordering=, declared filters and pagination
    POST - validate, create, audit '<name>_created'

    Filter values are parsed by django-filter; a malformed value is a 400.
    """

    def get(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = self.get_serializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def post(self, request, *args, **kwargs):
        serializer = self.get_write_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            obj = self.perform_create(serializer)
            self.audit('created', obj, metadata={'fields': sorted(serializer.validated_data.keys())})
        self.invalidate_cache()

        logger.info(
            f"{self.audit_target} created",
            extra={'object_id': str(obj.id), 'tenant_id': str(request.tenant.id)}
        )
        return Response(self.get_serializer(obj).data, status=status.HTTP_201_CREATED)


class TenantResourceDetailView(TenantResourceMixin, APIView):
    """
    GET          - fetch one object of the current tenant
    PUT / PATCH  - validate, update, audit '<name>_updated' with a field diff
    DELETE       - soft delete, audit '<name>_deleted'
    """
    lookup_url_kwarg = 'pk'

    def get_object(self):
        pk = self.kwargs.get(self.lookup_url_kwarg)
        obj = self.get_queryset().filter(pk=pk).first()
        if obj is not None:
            self.check_object_permissions(self.request, obj)
        return obj

    def get(self, request, *args, **kwargs):
        obj = self.get_object()
        if obj is None:
            return APIErrorHandler.not_found(self.audit_target, request)
        return Response(self.get_serializer(obj).data)

    def _update(self, request, partial):
        obj = self.get_object()
        if obj is None:
            return APIErrorHandler.not_found(self.audit_target, request)

        serializer = self.get_write_serializer(obj, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        before = {field: _jsonable(getattr(obj, field, None)) for field in serializer.validated_data}
        with transaction.atomic():
            obj = self.perform_update(serializer)
            diff = {}
            for field, old in before.items():
                new = _jsonable(getattr(obj, field, None))
                if old != new:
                    diff[field] = {'old': old, 'new': new}
            self.audit('updated', obj, diff=diff)
        self.invalidate_cache()

        return Response(self.get_serializer(obj).data)

    def put(self, request, *args, **kwargs):
        return self._update(request, partial=False)

    def patch(self, request, *args, **kwargs):
        return self._update(request, partial=True)

    def delete(self, request, *args, **kwargs):
        obj = self.get_object()
        if obj is None:
            return APIErrorHandler.not_found(self.audit_target, request)

        with transaction.atomic():
            self.perform_destroy(obj)
            self.audit('deleted', obj)
        self.invalidate_cache()

        return Response(status=status.HTTP_204_NO_CONTENT)
