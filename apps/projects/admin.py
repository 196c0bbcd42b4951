from django.contrib import admin

from apps.projects.models import Milestone, Project, ProjectMember, Task


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'status', 'priority', 'start_date', 'end_date']
    list_filter = ['status', 'priority']
    search_fields = ['name']


@admin.register(ProjectMember)
class ProjectMemberAdmin(admin.ModelAdmin):
    list_display = ['project', 'user', 'role']


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'status', 'due_date']
    list_filter = ['status']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'status', 'priority', 'due_date', 'completed_at']
    list_filter = ['status', 'priority']
    search_fields = ['title']
