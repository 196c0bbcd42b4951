"""
Serializers for event and notification endpoints.
"""
from rest_framework import serializers

from apps.events.models import EventBus, RealTimeNotification


class EventSerializer(serializers.ModelSerializer):
    correlation_id = serializers.CharField(source='correlation.correlation_id', read_only=True, default=None)
    user_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = EventBus
        fields = [
            'id', 'event_name', 'event_type', 'payload', 'source', 'target',
            'status', 'priority', 'correlation_id', 'metadata', 'user_id',
            'scheduled_at', 'processed_at', 'error_message', 'created_at',
        ]
        read_only_fields = fields


class EventPublishSerializer(serializers.Serializer):
    """
    Input for POST /v1/events.

    event_type is checked by EventService so an unknown type gets the
    platform's own 400 message listing the allowed values.
    """

    event_name = serializers.CharField(max_length=255)
    event_type = serializers.CharField(max_length=20)
    payload = serializers.JSONField()
    metadata = serializers.JSONField(required=False)
    priority = serializers.CharField(max_length=10, required=False)
    source = serializers.CharField(max_length=100, required=False)
    target = serializers.CharField(max_length=255, required=False, allow_blank=True)
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate_metadata(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError('metadata must be an object')
        return value


class EventUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EventBus.Status.choices)
    error_message = serializers.CharField(required=False, allow_blank=True)


class NotificationSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(read_only=True, allow_null=True)
    is_broadcast = serializers.SerializerMethodField()

    class Meta:
        model = RealTimeNotification
        fields = [
            'id', 'user_id', 'is_broadcast', 'title', 'message', 'type', 'severity',
            'channel', 'data', 'is_read', 'read_at', 'is_persistent', 'expires_at',
            'delivered_at', 'created_at',
        ]
        read_only_fields = fields

    def get_is_broadcast(self, obj):
        return obj.user_id is None


class NotificationCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    type = serializers.CharField(max_length=10, required=False)
    severity = serializers.CharField(max_length=10, required=False)
    user_id = serializers.UUIDField(required=False, allow_null=True)
    channel = serializers.CharField(max_length=50, required=False)
    data = serializers.JSONField(required=False)
    is_persistent = serializers.BooleanField(required=False, default=False)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class NotificationBulkUpdateSerializer(serializers.Serializer):
    """Input for PATCH /v1/events/notifications."""

    ACTIONS = ('mark_read', 'mark_unread')

    notification_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=500)
    action = serializers.ChoiceField(choices=ACTIONS)
