"""
Core API URLs.
"""
from django.urls import path
from . import views

urlpatterns = [
    path('health', views.HealthCheckView.as_view(), name='health-check'),
    path('performance/cache', views.PerformanceCacheView.as_view(), name='performance-cache'),
    path('admin/system/stats', views.SystemStatsView.as_view(), name='system-stats'),
]
