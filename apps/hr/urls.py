"""
URL routing for HR endpoints.
"""
from django.urls import path

from apps.hr import views

app_name = 'hr'

urlpatterns = [
    path('hr/dashboard', views.HRDashboardView.as_view(), name='dashboard'),

    path('hr/departments', views.DepartmentListView.as_view(), name='department-list'),
    path('hr/departments/<uuid:pk>', views.DepartmentDetailView.as_view(), name='department-detail'),

    path('hr/employees', views.EmployeeListView.as_view(), name='employee-list'),
    path('hr/employees/<uuid:pk>', views.EmployeeDetailView.as_view(), name='employee-detail'),

    path('hr/leave', views.LeaveRequestListView.as_view(), name='leave-list'),
    path('hr/leave/<uuid:pk>', views.LeaveRequestDetailView.as_view(), name='leave-detail'),
    path('hr/leave/<uuid:pk>/approve', views.LeaveDecisionView.as_view(approve=True), name='leave-approve'),
    path('hr/leave/<uuid:pk>/reject', views.LeaveDecisionView.as_view(approve=False), name='leave-reject'),

    path('hr/performance', views.PerformanceReviewListView.as_view(), name='review-list'),
    path('hr/performance/<uuid:pk>', views.PerformanceReviewDetailView.as_view(), name='review-detail'),
]
