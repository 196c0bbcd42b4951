"""
Serializers for the AI endpoints.
"""
from rest_framework import serializers

from apps.ai.models import Anomaly, NLPProcessor, NLPQuery, RLAction, RLAgent, RLEpisode


class NLPProcessRequestSerializer(serializers.Serializer):
    """processing_type is validated by NLPService so unknown types get its 400."""

    text = serializers.CharField()
    processing_type = serializers.CharField(max_length=20)
    options = serializers.DictField(required=False)


class NLPBatchRequestSerializer(serializers.Serializer):
    texts = serializers.ListField(child=serializers.CharField(), min_length=1, max_length=100)
    processing_type = serializers.CharField(max_length=20)
    options = serializers.DictField(required=False)


class NLPQuerySerializer(serializers.ModelSerializer):
    processing_type = serializers.CharField(source='processor.processor_type', read_only=True)

    class Meta:
        model = NLPQuery
        fields = [
            'id', 'processor', 'processing_type', 'input_text', 'result', 'confidence',
            'processing_ms', 'language', 'created_at',
        ]
        read_only_fields = fields


class NLPProcessorSerializer(serializers.ModelSerializer):

    class Meta:
        model = NLPProcessor
        fields = [
            'id', 'name', 'processor_type', 'language', 'configuration', 'is_active',
            'total_queries', 'avg_confidence', 'avg_processing_ms', 'last_used_at', 'created_at',
        ]
        read_only_fields = fields


class AnomalySerializer(serializers.ModelSerializer):

    class Meta:
        model = Anomaly
        fields = [
            'id', 'anomaly_type', 'data_source', 'input_data', 'anomaly_score', 'threshold',
            'severity', 'status', 'description', 'explanation', 'recommendations',
            'detection_method', 'resource_type', 'resource_id', 'acknowledged_at',
            'resolved_at', 'false_positive', 'created_at',
        ]
        read_only_fields = fields


class AnomalyDetectRequestSerializer(serializers.Serializer):
    SOURCE_CHOICES = [('series', 'Series'), ('projects', 'Projects')]

    source = serializers.ChoiceField(choices=SOURCE_CHOICES, default='series')
    data_source = serializers.CharField(max_length=100, required=False)
    anomaly_type = serializers.ChoiceField(choices=Anomaly.AnomalyType.choices, required=False)
    points = serializers.ListField(required=False)

    def validate(self, attrs):
        if attrs['source'] == 'series':
            if not attrs.get('data_source'):
                raise serializers.ValidationError({'data_source': 'data_source is required for series detection'})
            if attrs.get('points') is None:
                raise serializers.ValidationError({'points': 'points is required for series detection'})
        return attrs


class RLAgentSerializer(serializers.ModelSerializer):

    class Meta:
        model = RLAgent
        fields = [
            'id', 'name', 'description', 'agent_type', 'environment', 'policy', 'hyperparameters',
            'exploration_rate', 'learning_rate', 'discount_factor', 'total_episodes',
            'total_reward', 'avg_reward', 'last_trained_at', 'is_active', 'created_at',
        ]
        read_only_fields = fields


class RLHyperparametersSerializer(serializers.Serializer):
    exploration_rate = serializers.FloatField(min_value=0.0, max_value=1.0, required=False)
    learning_rate = serializers.FloatField(min_value=0.0, max_value=1.0, required=False)
    discount_factor = serializers.FloatField(min_value=0.0, max_value=1.0, required=False)


class RLAgentCreateSerializer(serializers.Serializer):
    agent_type = serializers.CharField(max_length=30)
    environment = serializers.CharField(max_length=100)
    name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    hyperparameters = serializers.DictField(required=False)

    def validate_hyperparameters(self, value):
        """Rates must be numbers in [0, 1]; other keys are stored as given."""
        rates = RLHyperparametersSerializer(data=value)
        rates.is_valid(raise_exception=True)
        return {**value, **rates.validated_data}


class RLDecisionRequestSerializer(serializers.Serializer):
    state = serializers.DictField(required=False, default=dict)
    available_actions = serializers.ListField(min_length=1)
    episode_id = serializers.UUIDField(required=False, allow_null=True)


class RLActionSerializer(serializers.ModelSerializer):

    class Meta:
        model = RLAction
        fields = [
            'id', 'agent', 'episode', 'action_type', 'action_data', 'state_hash',
            'q_value', 'probability', 'exploration', 'reward', 'created_at',
        ]
        read_only_fields = fields


class RLRewardRequestSerializer(serializers.Serializer):
    action_id = serializers.UUIDField()
    value = serializers.FloatField()


class RLEpisodeSerializer(serializers.ModelSerializer):

    class Meta:
        model = RLEpisode
        fields = [
            'id', 'agent', 'episode_number', 'started_at', 'ended_at', 'total_steps',
            'total_reward', 'avg_reward', 'is_completed', 'success',
        ]
        read_only_fields = fields


class RLEpisodeEndSerializer(serializers.Serializer):
    success = serializers.BooleanField()
