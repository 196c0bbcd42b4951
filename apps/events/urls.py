"""
URL routing for event and notification endpoints.
"""
from django.urls import path

from apps.events.views import EventListView, EventDetailView, NotificationListView, NotificationReadView

app_name = 'events'

urlpatterns = [
    path('events', EventListView.as_view(), name='event-list'),
    path('events/notifications', NotificationListView.as_view(), name='notification-list'),
    path('events/notifications/<uuid:notification_id>/read', NotificationReadView.as_view(),
         name='notification-read'),
    path('events/<uuid:event_id>', EventDetailView.as_view(), name='event-detail'),
]
