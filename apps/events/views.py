"""
Event relay API views.

- /v1/events                              publish and list events
- /v1/events/{id}                         fetch or update one event
- /v1/events/notifications                list, create and bulk update notifications
- /v1/events/notifications/{id}/read      mark a notification read
"""
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiParameter
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import QueryFilterMixin, StandardResultsSetPagination
from apps.events.filters import EventFilter, NotificationFilter
from apps.events.models import EventBus
from apps.events.serializers import (
    EventSerializer, EventPublishSerializer, EventUpdateSerializer,
    NotificationSerializer, NotificationCreateSerializer, NotificationBulkUpdateSerializer
)
from apps.events.services import EventService, NotificationService
from apps.rbac.models import AuditLog, TenantUser

logger = logging.getLogger(__name__)


def _int_param(value, default, maximum=None):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    value = max(0, value)
    if maximum is not None:
        value = min(value, maximum)
    return value


class EventListView(QueryFilterMixin, APIView):
    """
    GET  /v1/events - list the tenant's events
    POST /v1/events - publish an event
    """
    permission_classes = [HasTenantScopes]
    filterset_class = EventFilter

    @extend_schema(
        summary="List events",
        parameters=[
            OpenApiParameter('type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('status', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('start_date', OpenApiTypes.DATETIME, OpenApiParameter.QUERY),
            OpenApiParameter('end_date', OpenApiTypes.DATETIME, OpenApiParameter.QUERY),
            OpenApiParameter('limit', OpenApiTypes.INT, OpenApiParameter.QUERY, description='Max 100, default 50'),
            OpenApiParameter('offset', OpenApiTypes.INT, OpenApiParameter.QUERY),
        ],
        responses={200: EventSerializer(many=True)},
        tags=['Events']
    )
    @requires_scopes('events:view')
    def get(self, request):
        params = request.query_params
        queryset = self.filter_queryset(EventService.list_events(request.tenant))

        limit = _int_param(params.get('limit'), 50, maximum=100)
        offset = _int_param(params.get('offset'), 0)
        total = queryset.count()
        events = queryset[offset:offset + limit]

        return Response({
            'events': EventSerializer(events, many=True).data,
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'has_more': offset + limit < total,
            },
        })

    @extend_schema(
        summary="Publish event",
        request=EventPublishSerializer,
        responses={201: None, 400: None},
        tags=['Events']
    )
    @requires_scopes('events:publish')
    def post(self, request):
        serializer = EventPublishSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        options = {key: data[key] for key in ('priority', 'source', 'target', 'scheduled_at') if key in data}
        event = EventService.publish_event(
            data['event_name'],
            data['event_type'],
            payload=data['payload'],
            metadata=data.get('metadata'),
            options=options,
            tenant=request.tenant,
            user=request.user,
        )

        AuditLog.log_action(
            action='event_published',
            user=request.user,
            tenant=request.tenant,
            target_type='EventBus',
            target_id=event.id,
            metadata={'event_name': event.event_name, 'event_type': event.event_type},
            request=request,
        )

        return Response({
            'success': True,
            'event_id': str(event.id),
            'message': 'Event published',
        }, status=status.HTTP_201_CREATED)


class EventDetailView(APIView):
    """
    GET   /v1/events/{id}
    PATCH /v1/events/{id} - update status / error message
    """
    permission_classes = [HasTenantScopes]

    def get_object(self, request, event_id):
        return EventBus.objects.for_tenant(request.tenant).filter(id=event_id).first()

    @extend_schema(summary="Get event", responses={200: EventSerializer, 404: None}, tags=['Events'])
    @requires_scopes('events:view')
    def get(self, request, event_id):
        event = self.get_object(request, event_id)
        if event is None:
            return APIErrorHandler.not_found('Event', request)
        return Response(EventSerializer(event).data)

    @extend_schema(
        summary="Update event status",
        request=EventUpdateSerializer,
        responses={200: EventSerializer, 400: None, 404: None},
        tags=['Events']
    )
    @requires_scopes('events:publish')
    def patch(self, request, event_id):
        event = self.get_object(request, event_id)
        if event is None:
            return APIErrorHandler.not_found('Event', request)

        serializer = EventUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        old_status = event.status
        event = EventService.update_status(
            event,
            serializer.validated_data['status'],
            serializer.validated_data.get('error_message'),
        )

        AuditLog.log_action(
            action='event_updated',
            user=request.user,
            tenant=request.tenant,
            target_type='EventBus',
            target_id=event.id,
            diff={'status': {'old': old_status, 'new': event.status}},
            request=request,
        )
        return Response(EventSerializer(event).data)


class NotificationListView(QueryFilterMixin, APIView):
    """
    GET  /v1/events/notifications - the caller's notifications plus broadcasts
    POST /v1/events/notifications - create a notification
    PATCH /v1/events/notifications - bulk mark read or unread
    """
    permission_classes = [HasTenantScopes]
    filterset_class = NotificationFilter

    @extend_schema(
        summary="List notifications",
        parameters=[
            OpenApiParameter('is_read', OpenApiTypes.BOOL, OpenApiParameter.QUERY),
            OpenApiParameter('type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('severity', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('page', OpenApiTypes.INT, OpenApiParameter.QUERY),
        ],
        responses={200: NotificationSerializer(many=True)},
        tags=['Notifications']
    )
    @requires_scopes('notifications:view')
    def get(self, request):
        queryset = self.filter_queryset(NotificationService.list_for_user(request.tenant, request.user))

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)

        return Response({
            'notifications': NotificationSerializer(page, many=True).data,
            'unread_count': NotificationService.unread_count(request.tenant, request.user),
            'pagination': {
                'count': paginator.page.paginator.count,
                'page': paginator.page.number,
                'num_pages': paginator.page.paginator.num_pages,
                'next': paginator.get_next_link(),
                'previous': paginator.get_previous_link(),
            },
        })

    @extend_schema(
        summary="Create notification",
        description="Omit user_id to broadcast to every member of the tenant.",
        request=NotificationCreateSerializer,
        responses={201: NotificationSerializer, 400: None},
        tags=['Notifications']
    )
    @requires_scopes('events:publish')
    def post(self, request):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        user = None
        user_id = data.pop('user_id', None)
        if user_id:
            membership = TenantUser.objects.for_tenant(request.tenant).filter(
                user_id=user_id, is_active=True
            ).select_related('user').first()
            if membership is None:
                return APIErrorHandler.validation_error(
                    'user_id is not a member of this tenant', field='user_id', request=request
                )
            user = membership.user

        notification = NotificationService.create_notification(tenant=request.tenant, user=user, **data)

        AuditLog.log_action(
            action='notification_created',
            user=request.user,
            tenant=request.tenant,
            target_type='RealTimeNotification',
            target_id=notification.id,
            metadata={'type': notification.type, 'severity': notification.severity,
                      'broadcast': user is None},
            request=request,
        )
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Bulk mark notifications read or unread",
        description="Ids the caller cannot see are skipped and not counted.",
        request=NotificationBulkUpdateSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: None},
        tags=['Notifications']
    )
    @requires_scopes('notifications:view')
    def patch(self, request):
        serializer = NotificationBulkUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data['action']

        updated = NotificationService.bulk_set_read(
            request.tenant, request.user,
            serializer.validated_data['notification_ids'],
            is_read=(action == 'mark_read'),
        )
        return Response({
            'success': True,
            'updated_count': updated,
            'message': f"{updated} notification(s) updated",
        })


class NotificationReadView(APIView):
    """POST /v1/events/notifications/{id}/read"""
    permission_classes = [HasTenantScopes]

    @extend_schema(
        summary="Mark notification read",
        request=None,
        responses={200: NotificationSerializer, 404: None},
        tags=['Notifications']
    )
    @requires_scopes('notifications:view')
    def post(self, request, notification_id):
        notification = NotificationService.mark_read(request.tenant, request.user, notification_id)
        if notification is None:
            return APIErrorHandler.not_found('Notification', request)
        return Response(NotificationSerializer(notification).data)
