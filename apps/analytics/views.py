"""
Analytics API views.

- /v1/analytics/dashboards[/{id}]     dashboards with their widgets
- /v1/analytics/widgets[/{id}]        widgets of a dashboard
- /v1/analytics/reports[/{id}]        saved reports
- /v1/analytics/reports/{id}/run      rebuild a module report
"""
import logging

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.analytics.filters import WidgetFilter
from apps.analytics.models import Dashboard, Report, Widget
from apps.analytics.serializers import DashboardSerializer, ReportSerializer, WidgetSerializer
from apps.analytics.services import AnalyticsService
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class AnalyticsResourceMixin:
    view_scope = 'analytics:view'
    edit_scope = 'analytics:edit'


# Dashboards

class DashboardMixin(AnalyticsResourceMixin):
    model = Dashboard
    serializer_class = DashboardSerializer
    audit_name = 'dashboard'
    select_related = ('owner',)

    def get_queryset(self):
        return super().get_queryset().prefetch_related('widgets')

    def save_dashboard(self, serializer, **extra):
        dashboard = serializer.save(**extra)
        if dashboard.is_default:
            AnalyticsService.make_default(dashboard)
        return dashboard


@extend_schema_view(
    get=extend_schema(summary="List dashboards", tags=['Analytics']),
    post=extend_schema(summary="Create dashboard", tags=['Analytics']),
)
class DashboardListView(DashboardMixin, TenantResourceListView):
    filterset_fields = ('is_default',)
    search_fields = ('name', 'description')

    def perform_create(self, serializer):
        return self.save_dashboard(serializer, tenant=self.request.tenant, owner=self.request.user)


@extend_schema_view(
    get=extend_schema(summary="Get dashboard", tags=['Analytics']),
    put=extend_schema(summary="Update dashboard", tags=['Analytics']),
    patch=extend_schema(summary="Partially update dashboard", tags=['Analytics']),
    delete=extend_schema(summary="Delete dashboard", tags=['Analytics']),
)
class DashboardDetailView(DashboardMixin, TenantResourceDetailView):

    def perform_update(self, serializer):
        return self.save_dashboard(serializer)

    def perform_destroy(self, obj):
        obj.widgets.all().delete()
        obj.delete()


# Widgets

@extend_schema_view(
    get=extend_schema(summary="List widgets", tags=['Analytics']),
    post=extend_schema(summary="Create widget", tags=['Analytics']),
)
class WidgetListView(AnalyticsResourceMixin, TenantResourceListView):
    model = Widget
    serializer_class = WidgetSerializer
    audit_name = 'widget'
    filterset_class = WidgetFilter
    search_fields = ('name',)


@extend_schema_view(
    get=extend_schema(summary="Get widget", tags=['Analytics']),
    put=extend_schema(summary="Update widget", tags=['Analytics']),
    patch=extend_schema(summary="Partially update widget", tags=['Analytics']),
    delete=extend_schema(summary="Delete widget", tags=['Analytics']),
)
class WidgetDetailView(AnalyticsResourceMixin, TenantResourceDetailView):
    model = Widget
    serializer_class = WidgetSerializer
    audit_name = 'widget'


# Reports

@extend_schema_view(
    get=extend_schema(summary="List reports", tags=['Analytics']),
    post=extend_schema(summary="Create report", tags=['Analytics']),
)
class ReportListView(AnalyticsResourceMixin, TenantResourceListView):
    model = Report
    serializer_class = ReportSerializer
    audit_name = 'report'
    filterset_fields = ('type',)
    search_fields = ('name', 'description')
    select_related = ('owner',)

    def perform_create(self, serializer):
        return serializer.save(tenant=self.request.tenant, owner=self.request.user)


@extend_schema_view(
    get=extend_schema(summary="Get report", tags=['Analytics']),
    put=extend_schema(summary="Update report", tags=['Analytics']),
    patch=extend_schema(summary="Partially update report", tags=['Analytics']),
    delete=extend_schema(summary="Delete report", tags=['Analytics']),
)
class ReportDetailView(AnalyticsResourceMixin, TenantResourceDetailView):
    model = Report
    serializer_class = ReportSerializer
    audit_name = 'report'
    select_related = ('owner',)


class ReportRunView(APIView):
    """POST /v1/analytics/reports/{id}/run"""
    permission_classes = [HasTenantScopes]

    @extend_schema(summary="Run report", request=None, responses={200: ReportSerializer, 400: None, 404: None},
                   tags=['Analytics'])
    @requires_scopes('analytics:edit')
    def post(self, request, pk):
        report = Report.objects.for_tenant(request.tenant).filter(pk=pk).first()
        if report is None:
            return APIErrorHandler.not_found('Report', request)

        report = AnalyticsService.run_report(report)
        AuditLog.log_action(
            action='report_run',
            user=request.user,
            tenant=request.tenant,
            target_type='Report',
            target_id=report.id,
            metadata={'type': report.type},
            request=request,
        )
        return Response(ReportSerializer(report, context={'request': request}).data)
