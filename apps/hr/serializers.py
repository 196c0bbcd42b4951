"""
Serializers for HR resources.
"""
from rest_framework import serializers

from apps.core.exceptions import ResourceConflict
from apps.core.serializers import TenantMemberField, TenantRelatedField, UserSummaryField
from apps.hr.models import Department, Employee, LeaveRequest, PerformanceReview


class DepartmentSerializer(serializers.ModelSerializer):
    manager = TenantRelatedField(queryset=Employee.objects.all(), required=False, allow_null=True)
    parent = TenantRelatedField(queryset=Department.objects.all(), required=False, allow_null=True)
    employee_count = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = [
            'id', 'name', 'code', 'description', 'manager', 'parent', 'budget',
            'is_active', 'employee_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_employee_count(self, obj):
        return obj.employees.count()

    def validate_parent(self, value):
        if value is not None and self.instance is not None and value.pk == self.instance.pk:
            raise serializers.ValidationError('A department cannot be its own parent')
        return value


class EmployeeSerializer(serializers.ModelSerializer):
    department = TenantRelatedField(queryset=Department.objects.all(), required=False, allow_null=True)
    manager = TenantRelatedField(queryset=Employee.objects.all(), required=False, allow_null=True)
    user = TenantMemberField(required=False, allow_null=True)
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Employee
        fields = [
            'id', 'employee_number', 'first_name', 'last_name', 'full_name', 'email', 'phone',
            'position', 'department', 'department_name', 'manager', 'user', 'employment_type',
            'status', 'hire_date', 'termination_date', 'salary', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_employee_number(self, value):
        value = value.strip()
        tenant = self.context.get('tenant')
        queryset = Employee.objects.for_tenant(tenant).filter(employee_number=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise ResourceConflict(
                f"Employee number '{value}' is already in use",
                details={'field': 'employee_number'},
            )
        return value

    def validate(self, attrs):
        hire_date = attrs.get('hire_date', getattr(self.instance, 'hire_date', None))
        termination_date = attrs.get('termination_date', getattr(self.instance, 'termination_date', None))
        if hire_date and termination_date and termination_date < hire_date:
            raise serializers.ValidationError({'termination_date': 'Termination date is before hire date'})
        return attrs


class LeaveRequestSerializer(serializers.ModelSerializer):
    employee = TenantRelatedField(queryset=Employee.objects.all())
    employee_name = serializers.CharField(source='employee.full_name', read_only=True)
    approver_detail = UserSummaryField(source='approver')

    class Meta:
        model = LeaveRequest
        fields = [
            'id', 'employee', 'employee_name', 'type', 'start_date', 'end_date', 'days',
            'reason', 'notes', 'status', 'approver_detail', 'decided_at', 'decision_note',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'days', 'status', 'approver_detail', 'decided_at', 'decision_note',
            'created_at', 'updated_at',
        ]

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date must not be before start date'})
        return attrs


class LeaveDecisionSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default='')


class PerformanceReviewSerializer(serializers.ModelSerializer):
    employee = TenantRelatedField(queryset=Employee.objects.all())
    reviewer = TenantMemberField(required=False, allow_null=True)
    rating = serializers.IntegerField(min_value=1, max_value=5)

    class Meta:
        model = PerformanceReview
        fields = [
            'id', 'employee', 'reviewer', 'period_start', 'period_end', 'rating', 'goals',
            'strengths', 'improvements', 'comments', 'status', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('period_start', getattr(self.instance, 'period_start', None))
        end = attrs.get('period_end', getattr(self.instance, 'period_end', None))
        if start and end and end < start:
            raise serializers.ValidationError({'period_end': 'Review period ends before it starts'})
        return attrs
