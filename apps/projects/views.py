"""
Project management API views.
"""
import logging

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView
from apps.projects.models import Milestone, Project, ProjectMember, Task
from apps.projects.serializers import (
    MilestoneSerializer, ProjectMemberSerializer, ProjectSerializer, TaskSerializer
)
from apps.projects.services import ProjectService

logger = logging.getLogger(__name__)


class ProjectsResourceMixin:
    view_scope = 'projects:view'
    edit_scope = 'projects:edit'


@extend_schema_view(
    get=extend_schema(summary="List projects", tags=['Projects']),
    post=extend_schema(summary="Create project", tags=['Projects']),
)
class ProjectListView(ProjectsResourceMixin, TenantResourceListView):
    model = Project
    serializer_class = ProjectSerializer
    audit_name = 'project'
    search_fields = ('name', 'description')
    filterset_fields = ('status', 'priority', 'owner', 'customer')
    select_related = ('owner',)

    def perform_create(self, serializer):
        project = super().perform_create(serializer)
        if project.owner_id:
            ProjectMember.objects.create(tenant=project.tenant, project=project, user=project.owner, role='OWNER')
        return project


@extend_schema_view(
    get=extend_schema(summary="Get project", tags=['Projects']),
    put=extend_schema(summary="Update project", tags=['Projects']),
    patch=extend_schema(summary="Partially update project", tags=['Projects']),
    delete=extend_schema(summary="Delete project", tags=['Projects']),
)
class ProjectDetailView(ProjectsResourceMixin, TenantResourceDetailView):
    model = Project
    serializer_class = ProjectSerializer
    audit_name = 'project'
    select_related = ('owner',)


class ProjectStatsView(APIView):
    """GET /v1/projects/{id}/stats"""
    permission_classes = [HasTenantScopes]

    @extend_schema(summary="Project statistics", responses={200: None, 404: None}, tags=['Projects'])
    @requires_scopes('projects:view')
    def get(self, request, pk):
        project = Project.objects.for_tenant(request.tenant).filter(pk=pk).first()
        if project is None:
            return APIErrorHandler.not_found('Project', request)
        return Response({'success': True, 'data': ProjectService.stats(project)})


@extend_schema_view(
    get=extend_schema(summary="List project members", tags=['Projects']),
    post=extend_schema(summary="Add project member", tags=['Projects']),
)
class ProjectMemberListView(ProjectsResourceMixin, TenantResourceListView):
    model = ProjectMember
    serializer_class = ProjectMemberSerializer
    audit_name = 'project_member'
    search_fields = ('user__email', 'user__first_name', 'user__last_name')
    filterset_fields = ('project', 'role', 'user')
    select_related = ('user',)


@extend_schema_view(
    get=extend_schema(summary="Get project member", tags=['Projects']),
    put=extend_schema(summary="Update project member", tags=['Projects']),
    patch=extend_schema(summary="Partially update project member", tags=['Projects']),
    delete=extend_schema(summary="Remove project member", tags=['Projects']),
)
class ProjectMemberDetailView(ProjectsResourceMixin, TenantResourceDetailView):
    model = ProjectMember
    serializer_class = ProjectMemberSerializer
    audit_name = 'project_member'
    select_related = ('user',)


@extend_schema_view(
    get=extend_schema(summary="List milestones", tags=['Projects']),
    post=extend_schema(summary="Create milestone", tags=['Projects']),
)
class MilestoneListView(ProjectsResourceMixin, TenantResourceListView):
    model = Milestone
    serializer_class = MilestoneSerializer
    audit_name = 'milestone'
    search_fields = ('name', 'description')
    filterset_fields = ('project', 'status')


@extend_schema_view(
    get=extend_schema(summary="Get milestone", tags=['Projects']),
    put=extend_schema(summary="Update milestone", tags=['Projects']),
    patch=extend_schema(summary="Partially update milestone", tags=['Projects']),
    delete=extend_schema(summary="Delete milestone", tags=['Projects']),
)
class MilestoneDetailView(ProjectsResourceMixin, TenantResourceDetailView):
    model = Milestone
    serializer_class = MilestoneSerializer
    audit_name = 'milestone'


@extend_schema_view(
    get=extend_schema(summary="List tasks", tags=['Projects']),
    post=extend_schema(summary="Create task", tags=['Projects']),
)
class TaskListView(ProjectsResourceMixin, TenantResourceListView):
    model = Task
    serializer_class = TaskSerializer
    audit_name = 'task'
    search_fields = ('title', 'description')
    filterset_fields = ('project', 'milestone', 'status', 'priority', 'assignee')
    select_related = ('assignee',)


@extend_schema_view(
    get=extend_schema(summary="Get task", tags=['Projects']),
    put=extend_schema(summary="Update task", tags=['Projects']),
    patch=extend_schema(summary="Partially update task", tags=['Projects']),
    delete=extend_schema(summary="Delete task", tags=['Projects']),
)
class TaskDetailView(ProjectsResourceMixin, TenantResourceDetailView):
    model = Task
    serializer_class = TaskSerializer
    audit_name = 'task'
    select_related = ('assignee',)
