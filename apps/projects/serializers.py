"""
Serializers for project management resources.
"""
from rest_framework import serializers

from apps.core.serializers import TenantMemberField, TenantRelatedField, UserSummaryField
from apps.crm.models import Customer
from apps.projects.models import Milestone, Project, ProjectMember, Task


class ProjectSerializer(serializers.ModelSerializer):
    owner = TenantMemberField(required=False, allow_null=True)
    owner_detail = UserSummaryField(source='owner')
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Project
        fields = [
            'id', 'name', 'description', 'status', 'priority', 'start_date', 'end_date',
            'budget', 'owner', 'owner_detail', 'customer', 'tags', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date must not be before start date'})
        return attrs


class ProjectMemberSerializer(serializers.ModelSerializer):
    project = TenantRelatedField(queryset=Project.objects.all())
    user = TenantMemberField()
    user_detail = UserSummaryField(source='user')

    class Meta:
        model = ProjectMember
        fields = ['id', 'project', 'user', 'user_detail', 'role', 'allocation_percent', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate(self, attrs):
        project = attrs.get('project', getattr(self.instance, 'project', None))
        user = attrs.get('user', getattr(self.instance, 'user', None))
        queryset = ProjectMember.objects.filter(project=project, user=user)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if project is not None and user is not None and queryset.exists():
            raise serializers.ValidationError({'user': 'User is already a member of this project'})
        return attrs


class MilestoneSerializer(serializers.ModelSerializer):
    project = TenantRelatedField(queryset=Project.objects.all())

    class Meta:
        model = Milestone
        fields = [
            'id', 'project', 'name', 'description', 'due_date', 'status',
            'completed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'completed_at', 'created_at', 'updated_at']


class TaskSerializer(serializers.ModelSerializer):
    """A task's project (and milestone) must belong to the request tenant."""

    project = TenantRelatedField(queryset=Project.objects.all())
    milestone = TenantRelatedField(queryset=Milestone.objects.all(), required=False, allow_null=True)
    assignee = TenantMemberField(required=False, allow_null=True)
    assignee_detail = UserSummaryField(source='assignee')
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'project', 'milestone', 'title', 'description', 'status', 'priority',
            'assignee', 'assignee_detail', 'due_date', 'estimated_hours', 'is_overdue',
            'completed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'completed_at', 'created_at', 'updated_at']

    def validate(self, attrs):
        project = attrs.get('project', getattr(self.instance, 'project', None))
        milestone = attrs.get('milestone', getattr(self.instance, 'milestone', None))
        if milestone is not None and project is not None and milestone.project_id != project.id:
            raise serializers.ValidationError({'milestone': 'Milestone belongs to a different project'})
        return attrs
