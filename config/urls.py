"""
URL configuration for the WeGroup platform.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Register, login, me

    # Tenants, users, roles, audit logs
    path('v1/', include('apps.tenants.urls')),
    path('v1/', include('apps.rbac.urls')),

    # Business modules
    path('v1/', include('apps.crm.urls')),
    path('v1/', include('apps.hr.urls')),
    path('v1/', include('apps.projects.urls')),
    path('v1/', include('apps.content.urls')),
    path('v1/', include('apps.events.urls')),
    path('v1/', include('apps.ai.urls')),
    path('v1/', include('apps.sales.urls')),
    path('v1/', include('apps.analytics.urls')),
]
