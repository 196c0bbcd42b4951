"""
URL routing for project management endpoints.
"""
from django.urls import path

from apps.projects import views

app_name = 'projects'

urlpatterns = [
    path('projects', views.ProjectListView.as_view(), name='project-list'),
    path('projects/<uuid:pk>', views.ProjectDetailView.as_view(), name='project-detail'),
    path('projects/<uuid:pk>/stats', views.ProjectStatsView.as_view(), name='project-stats'),

    path('projects/members', views.ProjectMemberListView.as_view(), name='member-list'),
    path('projects/members/<uuid:pk>', views.ProjectMemberDetailView.as_view(), name='member-detail'),

    path('projects/milestones', views.MilestoneListView.as_view(), name='milestone-list'),
    path('projects/milestones/<uuid:pk>', views.MilestoneDetailView.as_view(), name='milestone-detail'),

    path('projects/tasks', views.TaskListView.as_view(), name='task-list'),
    path('projects/tasks/<uuid:pk>', views.TaskDetailView.as_view(), name='task-detail'),
]
