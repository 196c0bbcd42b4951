"""
Serializers for content resources.
"""
from rest_framework import serializers

from apps.content.models import ContentProject, ContentTemplate
from apps.core.serializers import TenantRelatedField, UserSummaryField


class ContentTemplateSerializer(serializers.ModelSerializer):

    class Meta:
        model = ContentTemplate
        fields = [
            'id', 'name', 'description', 'content_type', 'body', 'variables',
            'usage_count', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'variables', 'usage_count', 'created_at', 'updated_at']


class ContentProjectSerializer(serializers.ModelSerializer):
    template = TenantRelatedField(queryset=ContentTemplate.objects.all(), required=False, allow_null=True)
    author_detail = UserSummaryField(source='author')

    class Meta:
        model = ContentProject
        fields = [
            'id', 'title', 'template', 'status', 'variables', 'body', 'generated_at',
            'author_detail', 'tags', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'generated_at', 'author_detail', 'created_at', 'updated_at']

    def validate_variables(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('variables must be an object')
        return value


class GenerateContentSerializer(serializers.Serializer):
    variables = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
