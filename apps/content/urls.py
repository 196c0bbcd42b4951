"""
URL routing for content endpoints.
"""
from django.urls import path

from apps.content import views

app_name = 'content'

urlpatterns = [
    path('content/templates', views.ContentTemplateListView.as_view(), name='template-list'),
    path('content/templates/<uuid:pk>', views.ContentTemplateDetailView.as_view(), name='template-detail'),
    path('content/projects', views.ContentProjectListView.as_view(), name='project-list'),
    path('content/projects/<uuid:pk>', views.ContentProjectDetailView.as_view(), name='project-detail'),
    path('content/projects/<uuid:pk>/generate', views.ContentGenerateView.as_view(), name='project-generate'),
]
