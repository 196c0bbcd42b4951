"""
HR API views.
"""
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.cache import CacheKeys
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView
from apps.hr.models import Department, Employee, LeaveRequest, PerformanceReview
from apps.hr.serializers import (
    DepartmentSerializer, EmployeeSerializer, LeaveDecisionSerializer,
    LeaveRequestSerializer, PerformanceReviewSerializer
)
from apps.hr.filters import LeaveRequestFilter
from apps.hr.services import HRService, LeaveService

logger = logging.getLogger(__name__)


class HRResourceMixin:
    view_scope = 'hr:view'
    edit_scope = 'hr:edit'
    cache_keys = (CacheKeys.HR_DASHBOARD,)


@extend_schema_view(
    get=extend_schema(summary="List departments", tags=['HR']),
    post=extend_schema(summary="Create department", tags=['HR']),
)
class DepartmentListView(HRResourceMixin, TenantResourceListView):
    model = Department
    serializer_class = DepartmentSerializer
    audit_name = 'department'
    search_fields = ('name', 'code', 'description')
    filterset_fields = ('is_active', 'parent')


@extend_schema_view(
    get=extend_schema(summary="Get department", tags=['HR']),
    put=extend_schema(summary="Update department", tags=['HR']),
    patch=extend_schema(summary="Partially update department", tags=['HR']),
    delete=extend_schema(summary="Delete department", tags=['HR']),
)
class DepartmentDetailView(HRResourceMixin, TenantResourceDetailView):
    model = Department
    serializer_class = DepartmentSerializer
    audit_name = 'department'


@extend_schema_view(
    get=extend_schema(summary="List employees", tags=['HR']),
    post=extend_schema(summary="Create employee", tags=['HR']),
)
class EmployeeListView(HRResourceMixin, TenantResourceListView):
    model = Employee
    serializer_class = EmployeeSerializer
    audit_name = 'employee'
    search_fields = ('first_name', 'last_name', 'email', 'employee_number', 'position')
    filterset_fields = ('status', 'department', 'employment_type', 'manager')
    select_related = ('department',)


@extend_schema_view(
    get=extend_schema(summary="Get employee", tags=['HR']),
    put=extend_schema(summary="Update employee", tags=['HR']),
    patch=extend_schema(summary="Partially update employee", tags=['HR']),
    delete=extend_schema(summary="Delete employee", tags=['HR']),
)
class EmployeeDetailView(HRResourceMixin, TenantResourceDetailView):
    model = Employee
    serializer_class = EmployeeSerializer
    audit_name = 'employee'
    select_related = ('department',)


@extend_schema_view(
    get=extend_schema(
        summary="List leave requests",
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('employee', OpenApiTypes.UUID, OpenApiParameter.QUERY),
            OpenApiParameter('department', OpenApiTypes.UUID, OpenApiParameter.QUERY),
            OpenApiParameter('period', OpenApiTypes.STR, OpenApiParameter.QUERY,
                             enum=['current_month', 'next_month', 'current_quarter', 'current_year']),
        ],
        tags=['HR'],
    ),
    post=extend_schema(summary="Request leave", tags=['HR']),
)
class LeaveRequestListView(HRResourceMixin, TenantResourceListView):
    model = LeaveRequest
    serializer_class = LeaveRequestSerializer
    audit_name = 'leave_request'
    search_fields = ('employee__first_name', 'employee__last_name', 'employee__employee_number', 'reason')
    filterset_class = LeaveRequestFilter
    select_related = ('employee', 'approver')


@extend_schema_view(
    get=extend_schema(summary="Get leave request", tags=['HR']),
    put=extend_schema(summary="Update leave request", tags=['HR']),
    patch=extend_schema(summary="Partially update leave request", tags=['HR']),
    delete=extend_schema(summary="Delete leave request", tags=['HR']),
)
class LeaveRequestDetailView(HRResourceMixin, TenantResourceDetailView):
    model = LeaveRequest
    serializer_class = LeaveRequestSerializer
    audit_name = 'leave_request'
    select_related = ('employee', 'approver')


class LeaveDecisionView(APIView):
    """
    POST /v1/hr/leave/{id}/approve
    POST /v1/hr/leave/{id}/reject

    Only pending requests can be decided; anything else is 409.
    """
    permission_classes = [HasTenantScopes]
    approve = True

    @extend_schema(
        summary="Decide leave request",
        request=LeaveDecisionSerializer,
        responses={200: LeaveRequestSerializer, 404: None, 409: None},
        tags=['HR']
    )
    @requires_scopes('hr:edit')
    def post(self, request, pk):
        leave_request = LeaveRequest.objects.for_tenant(request.tenant).filter(pk=pk).first()
        if leave_request is None:
            return APIErrorHandler.not_found('LeaveRequest', request)

        serializer = LeaveDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        leave_request = LeaveService.decide(
            leave_request,
            approve=self.approve,
            user=request.user,
            note=serializer.validated_data['note'],
            request=request,
        )
        return Response(LeaveRequestSerializer(leave_request, context={'tenant': request.tenant}).data)


@extend_schema_view(
    get=extend_schema(summary="List performance reviews", tags=['HR']),
    post=extend_schema(summary="Create performance review", tags=['HR']),
)
class PerformanceReviewListView(HRResourceMixin, TenantResourceListView):
    model = PerformanceReview
    serializer_class = PerformanceReviewSerializer
    audit_name = 'performance_review'
    search_fields = ('employee__first_name', 'employee__last_name', 'comments')
    filterset_fields = ('employee', 'status', 'rating')
    select_related = ('employee',)


@extend_schema_view(
    get=extend_schema(summary="Get performance review", tags=['HR']),
    put=extend_schema(summary="Update performance review", tags=['HR']),
    patch=extend_schema(summary="Partially update performance review", tags=['HR']),
    delete=extend_schema(summary="Delete performance review", tags=['HR']),
)
class PerformanceReviewDetailView(HRResourceMixin, TenantResourceDetailView):
    model = PerformanceReview
    serializer_class = PerformanceReviewSerializer
    audit_name = 'performance_review'


class HRDashboardView(APIView):
    """GET /v1/hr/dashboard"""
    permission_classes = [HasTenantScopes]

    @extend_schema(summary="HR dashboard", responses={200: None}, tags=['HR'])
    @requires_scopes('hr:view')
    def get(self, request):
        return Response({'success': True, 'data': HRService.dashboard(request.tenant)})
