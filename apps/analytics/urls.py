"""
URL routing for analytics endpoints.
"""
from django.urls import path

from apps.analytics import views

app_name = 'analytics'

urlpatterns = [
    path('analytics/dashboards', views.DashboardListView.as_view(), name='dashboard-list'),
    path('analytics/dashboards/<uuid:pk>', views.DashboardDetailView.as_view(), name='dashboard-detail'),

    path('analytics/widgets', views.WidgetListView.as_view(), name='widget-list'),
    path('analytics/widgets/<uuid:pk>', views.WidgetDetailView.as_view(), name='widget-detail'),

    path('analytics/reports', views.ReportListView.as_view(), name='report-list'),
    path('analytics/reports/<uuid:pk>', views.ReportDetailView.as_view(), name='report-detail'),
    path('analytics/reports/<uuid:pk>/run', views.ReportRunView.as_view(), name='report-run'),
]
