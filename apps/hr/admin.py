from django.contrib import admin

from apps.hr.models import Department, Employee, LeaveRequest, PerformanceReview


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'tenant', 'is_active']
    search_fields = ['name', 'code']


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ['employee_number', 'first_name', 'last_name', 'tenant', 'department', 'status']
    list_filter = ['status', 'employment_type']
    search_fields = ['employee_number', 'first_name', 'last_name', 'email']


@admin.register(LeaveRequest)
class LeaveRequestAdmin(admin.ModelAdmin):
    list_display = ['employee', 'type', 'start_date', 'end_date', 'days', 'status']
    list_filter = ['type', 'status']


@admin.register(PerformanceReview)
class PerformanceReviewAdmin(admin.ModelAdmin):
    list_display = ['employee', 'rating', 'status', 'period_start', 'period_end']
    list_filter = ['status', 'rating']
