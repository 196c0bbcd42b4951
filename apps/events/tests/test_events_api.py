"""
Tests for the event relay and notifications.
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from apps.core.exceptions import ValidationError
from apps.events.models import EventBus, EventCorrelation, EventType, RealTimeNotification
from apps.events.services import EventService, NotificationService
from apps.events.tasks import purge_expired_notifications
from apps.rbac.models import AuditLog


@pytest.mark.django_db
class TestEventService:

    def test_publish_adds_trace_id(self, tenant):
        event = EventService.publish_event(
            'crm.deal.won', EventType.WORKFLOW, payload={'amount': 10}, tenant=tenant
        )

        assert event.status == EventBus.Status.PENDING
        assert len(event.metadata['trace_id']) == 32
        assert event.payload == {'amount': 10}

    def test_correlation_is_shared(self, tenant):
        first = EventService.publish_event(
            'order.placed', EventType.WORKFLOW, metadata={'correlation_id': 'flow-1'}, tenant=tenant
        )
        second = EventService.publish_event(
            'order.paid', EventType.WORKFLOW, metadata={'correlation_id': 'flow-1'}, tenant=tenant
        )

        assert first.correlation_id == second.correlation_id
        assert EventCorrelation.objects.filter(correlation_id='flow-1').count() == 1

    @pytest.mark.parametrize('kwargs,field', [
        ({'event_name': '', 'event_type': EventType.SYSTEM}, 'event_name'),
        ({'event_name': 'x', 'event_type': 'NOT_A_TYPE'}, 'event_type'),
        ({'event_name': 'x', 'event_type': EventType.SYSTEM, 'options': {'priority': 'URGENT'}}, 'priority'),
    ])
    def test_invalid_input(self, tenant, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            EventService.publish_event(tenant=tenant, **kwargs)
        assert exc_info.value.details['field'] == field

    def test_notify_option_creates_notification(self, tenant, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            event = EventService.publish_event(
                'ai.anomaly.detected', EventType.AI_DECISION, tenant=tenant,
                options={'priority': 'HIGH', 'notify': {'title': 'Anomaly', 'message': 'Check it'}},
            )

        notification = RealTimeNotification.objects.get(event=event)
        assert notification.user_id is None
        assert notification.severity == 'HIGH'
        assert notification.data['event_name'] == 'ai.anomaly.detected'
        assert notification.delivered_at is not None

    def test_update_status_stamps_processed_at(self, tenant):
        event = EventService.publish_event('x.y', EventType.SYSTEM, tenant=tenant)

        EventService.update_status(event, EventBus.Status.PROCESSING)
        assert event.processed_at is None

        EventService.update_status(event, EventBus.Status.FAILED, 'boom')
        event.refresh_from_db()
        assert event.processed_at is not None
        assert event.error_message == 'boom'


@pytest.mark.django_db
class TestEventEndpoints:

    def test_publish_and_list(self, owner_client, tenant, other_tenant):
        EventService.publish_event('other.tenant', EventType.SYSTEM, tenant=other_tenant)

        response = owner_client.post('/v1/events', {
            'event_name': 'crm.customer.imported',
            'event_type': 'DATA_CHANGE',
            'payload': {'rows': 12},
            'priority': 'LOW',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        event_id = response.data['event_id']
        assert AuditLog.objects.filter(action='event_published', target_id=event_id).exists()

        response = owner_client.get('/v1/events')
        assert response.status_code == status.HTTP_200_OK
        assert [e['event_name'] for e in response.data['events']] == ['crm.customer.imported']
        assert response.data['pagination'] == {'total': 1, 'limit': 50, 'offset': 0, 'has_more': False}

    def test_list_filters_and_limit(self, owner_client, tenant):
        for name in ('a', 'b', 'c'):
            EventService.publish_event(name, EventType.SYSTEM, tenant=tenant)
        EventService.publish_event('d', EventType.USER_ACTION, tenant=tenant)

        response = owner_client.get('/v1/events?type=SYSTEM&limit=2')

        assert len(response.data['events']) == 2
        assert response.data['pagination']['total'] == 3
        assert response.data['pagination']['has_more'] is True

    @pytest.mark.parametrize('query', [
        'start_date=2024-13-45T00:00:00',
        'end_date=yesterday',
        'type=BOGUS',
        'status=NOPE',
    ])
    def test_malformed_filters_rejected(self, owner_client, query):
        response = owner_client.get(f'/v1/events?{query}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'

    def test_date_range_filter(self, owner_client, tenant):
        old = EventService.publish_event('old', EventType.SYSTEM, tenant=tenant)
        EventBus.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=10))
        EventService.publish_event('new', EventType.SYSTEM, tenant=tenant)
        since = (timezone.now() - timedelta(days=1)).isoformat()

        response = owner_client.get('/v1/events', {'start_date': since})

        assert [e['event_name'] for e in response.data['events']] == ['new']

    def test_unknown_event_type_rejected(self, owner_client):
        response = owner_client.post('/v1/events', {
            'event_name': 'x', 'event_type': 'NOPE', 'payload': {},
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'event_type'
        assert 'SYSTEM' in response.data['details']['allowed']

    def test_payload_required(self, owner_client):
        response = owner_client.post('/v1/events', {'event_name': 'x', 'event_type': 'SYSTEM'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'payload' in response.data['details']['fields']

    def test_viewer_cannot_publish(self, viewer_client):
        response = viewer_client.post('/v1/events', {
            'event_name': 'x', 'event_type': 'SYSTEM', 'payload': {},
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_patch_status(self, owner_client, tenant):
        event = EventService.publish_event('x.y', EventType.SYSTEM, tenant=tenant)

        response = owner_client.patch(f'/v1/events/{event.id}', {'status': 'COMPLETED'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'COMPLETED'
        assert response.data['processed_at'] is not None
        log = AuditLog.objects.get(action='event_updated', target_id=event.id)
        assert log.diff == {'status': {'old': 'PENDING', 'new': 'COMPLETED'}}

    def test_other_tenant_event_is_404(self, owner_client, other_tenant):
        event = EventService.publish_event('x.y', EventType.SYSTEM, tenant=other_tenant)

        assert owner_client.get(f'/v1/events/{event.id}').status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestNotifications:

    def test_visibility_covers_own_and_broadcast(self, tenant, owner, viewer):
        mine = RealTimeNotification.objects.create(tenant=tenant, user=owner.user, title='Mine', message='m')
        broadcast = RealTimeNotification.objects.create(tenant=tenant, title='All', message='m')
        RealTimeNotification.objects.create(tenant=tenant, user=viewer.user, title='Theirs', message='m')
        RealTimeNotification.objects.create(
            tenant=tenant, user=owner.user, title='Old', message='m',
            expires_at=timezone.now() - timedelta(minutes=1),
        )

        visible = set(NotificationService.list_for_user(tenant, owner.user).values_list('id', flat=True))

        assert visible == {mine.id, broadcast.id}
        assert NotificationService.unread_count(tenant, owner.user) == 2

    def test_create_pushes_after_commit(self, owner_client, viewer, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            response = owner_client.post('/v1/events/notifications', {
                'title': 'Welcome', 'message': 'Hello there', 'user_id': str(viewer.user.id),
                'type': 'SUCCESS',
            }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['is_broadcast'] is False
        assert len(callbacks) == 1
        notification = RealTimeNotification.objects.get(id=response.data['id'])
        assert notification.delivered_at is not None
        assert AuditLog.objects.filter(action='notification_created', target_id=notification.id).exists()

    def test_create_for_non_member_rejected(self, owner_client, make_user):
        stranger = make_user('stranger@example.com')

        response = owner_client.post('/v1/events/notifications', {
            'title': 'Hi', 'message': 'x', 'user_id': str(stranger.id),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'user_id'

    def test_invalid_type_rejected(self, owner_client):
        response = owner_client.post('/v1/events/notifications', {
            'title': 'Hi', 'message': 'x', 'type': 'SHOUTY',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_and_mark_read(self, viewer_client, tenant, viewer):
        notification = RealTimeNotification.objects.create(tenant=tenant, user=viewer.user, title='T', message='m')
        RealTimeNotification.objects.create(tenant=tenant, title='Broadcast', message='m')

        response = viewer_client.get('/v1/events/notifications')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['unread_count'] == 2
        assert response.data['pagination']['count'] == 2

        response = viewer_client.post(f'/v1/events/notifications/{notification.id}/read')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_read'] is True
        assert response.data['read_at'] is not None

        response = viewer_client.get('/v1/events/notifications?is_read=false')
        assert [n['title'] for n in response.data['notifications']] == ['Broadcast']
        assert response.data['unread_count'] == 1

    def test_cannot_mark_someone_elses_notification(self, viewer_client, tenant, owner):
        notification = RealTimeNotification.objects.create(tenant=tenant, user=owner.user, title='T', message='m')

        response = viewer_client.post(f'/v1/events/notifications/{notification.id}/read')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        notification.refresh_from_db()
        assert notification.is_read is False

    def test_bulk_mark_read_and_unread(self, viewer_client, tenant, viewer):
        own = RealTimeNotification.objects.create(tenant=tenant, user=viewer.user, title='Own', message='m')
        broadcast = RealTimeNotification.objects.create(tenant=tenant, title='All', message='m')
        ids = [str(own.id), str(broadcast.id)]

        response = viewer_client.patch('/v1/events/notifications', {
            'notification_ids': ids, 'action': 'mark_read',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['success'] is True
        assert response.data['updated_count'] == 2
        own.refresh_from_db()
        assert own.is_read is True
        assert own.read_at is not None

        response = viewer_client.patch('/v1/events/notifications', {
            'notification_ids': [str(own.id)], 'action': 'mark_unread',
        }, format='json')

        assert response.data['updated_count'] == 1
        own.refresh_from_db()
        assert own.is_read is False
        assert own.read_at is None
        assert NotificationService.unread_count(tenant, viewer.user) == 1

    def test_bulk_update_skips_notifications_the_user_cannot_see(self, viewer_client, tenant, owner, other_tenant):
        theirs = RealTimeNotification.objects.create(tenant=tenant, user=owner.user, title='T', message='m')
        foreign = RealTimeNotification.objects.create(tenant=other_tenant, title='F', message='m')

        response = viewer_client.patch('/v1/events/notifications', {
            'notification_ids': [str(theirs.id), str(foreign.id)], 'action': 'mark_read',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['updated_count'] == 0
        theirs.refresh_from_db()
        foreign.refresh_from_db()
        assert theirs.is_read is False
        assert foreign.is_read is False

    @pytest.mark.parametrize('payload', [
        {'notification_ids': [], 'action': 'mark_read'},
        {'notification_ids': ['not-a-uuid'], 'action': 'mark_read'},
        {'notification_ids': ['7f1c5a44-9a55-4f55-9e0e-2d0b6f0e4a10'], 'action': 'archive'},
    ])
    def test_bulk_update_invalid_input(self, viewer_client, payload):
        response = viewer_client.patch('/v1/events/notifications', payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['code'] == 'VALIDATION_ERROR'


@pytest.mark.django_db
class TestNotificationTasks:

    def test_purge_expired_notifications(self, tenant):
        past = timezone.now() - timedelta(hours=1)
        expired = RealTimeNotification.objects.create(tenant=tenant, title='Old', message='m', expires_at=past)
        kept = RealTimeNotification.objects.create(
            tenant=tenant, title='Pinned', message='m', expires_at=past, is_persistent=True
        )
        fresh = RealTimeNotification.objects.create(
            tenant=tenant, title='New', message='m', expires_at=timezone.now() + timedelta(hours=1)
        )

        assert purge_expired_notifications() == 1

        remaining = set(RealTimeNotification.objects.values_list('id', flat=True))
        assert remaining == {kept.id, fresh.id}
        assert RealTimeNotification.objects_with_deleted.get(id=expired.id).deleted_at is not None
