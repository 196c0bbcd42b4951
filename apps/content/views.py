"""
Content API views.
"""
import logging

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.content.models import ContentProject, ContentTemplate
from apps.content.serializers import (
    ContentProjectSerializer, ContentTemplateSerializer, GenerateContentSerializer
)
from apps.content.services import ContentService
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import TenantResourceDetailView, TenantResourceListView

logger = logging.getLogger(__name__)


class ContentResourceMixin:
    view_scope = 'content:view'
    edit_scope = 'content:edit'


@extend_schema_view(
    get=extend_schema(summary="List content templates", tags=['Content']),
    post=extend_schema(summary="Create content template", tags=['Content']),
)
class ContentTemplateListView(ContentResourceMixin, TenantResourceListView):
    model = ContentTemplate
    serializer_class = ContentTemplateSerializer
    audit_name = 'content_template'
    search_fields = ('name', 'description')
    filterset_fields = ('content_type', 'is_active')


@extend_schema_view(
    get=extend_schema(summary="Get content template", tags=['Content']),
    put=extend_schema(summary="Update content template", tags=['Content']),
    patch=extend_schema(summary="Partially update content template", tags=['Content']),
    delete=extend_schema(summary="Delete content template", tags=['Content']),
)
class ContentTemplateDetailView(ContentResourceMixin, TenantResourceDetailView):
    model = ContentTemplate
    serializer_class = ContentTemplateSerializer
    audit_name = 'content_template'


@extend_schema_view(
    get=extend_schema(summary="List content projects", tags=['Content']),
    post=extend_schema(summary="Create content project", tags=['Content']),
)
class ContentProjectListView(ContentResourceMixin, TenantResourceListView):
    model = ContentProject
    serializer_class = ContentProjectSerializer
    audit_name = 'content_project'
    search_fields = ('title', 'body')
    filterset_fields = ('status', 'template')
    select_related = ('template', 'author')

    def perform_create(self, serializer):
        return serializer.save(tenant=self.request.tenant, author=self.request.user)


@extend_schema_view(
    get=extend_schema(summary="Get content project", tags=['Content']),
    put=extend_schema(summary="Update content project", tags=['Content']),
    patch=extend_schema(summary="Partially update content project", tags=['Content']),
    delete=extend_schema(summary="Delete content project", tags=['Content']),
)
class ContentProjectDetailView(ContentResourceMixin, TenantResourceDetailView):
    model = ContentProject
    serializer_class = ContentProjectSerializer
    audit_name = 'content_project'
    select_related = ('template', 'author')


class ContentGenerateView(APIView):
    """
    POST /v1/content/projects/{id}/generate

    Renders the project's template with the given variables.
    """
    permission_classes = [HasTenantScopes]

    @extend_schema(
        summary="Generate content",
        request=GenerateContentSerializer,
        responses={200: ContentProjectSerializer, 400: None, 404: None},
        tags=['Content']
    )
    @requires_scopes('content:edit')
    def post(self, request, pk):
        project = ContentProject.objects.for_tenant(request.tenant).select_related('template').filter(pk=pk).first()
        if project is None:
            return APIErrorHandler.not_found('ContentProject', request)

        serializer = GenerateContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project, missing = ContentService.generate(
            project,
            variables=serializer.validated_data.get('variables'),
            user=request.user,
            request=request,
        )
        return Response({
            'success': True,
            'data': ContentProjectSerializer(project, context={'tenant': request.tenant}).data,
            'missing_variables': missing,
        })
