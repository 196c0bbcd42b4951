"""
Models for the mock AI services.

Nothing here holds trained model weights: processors, agents and anomaly
records only store configuration, counters and the JSON results that the
rule-based services in apps.ai.services produce.
"""
from django.conf import settings
from django.db import models

from apps.core.models import TenantModel


class NLPProcessor(TenantModel):
    """One processor per (tenant, processor_type), created on first use."""

    class ProcessorType(models.TextChoices):
        SENTIMENT = 'SENTIMENT', 'Sentiment'
        ENTITY = 'ENTITY', 'Entity extraction'
        INTENT = 'INTENT', 'Intent classification'
        TOPIC = 'TOPIC', 'Topic extraction'
        TRANSLATION = 'TRANSLATION', 'Translation'

    name = models.CharField(max_length=255)
    processor_type = models.CharField(max_length=20, choices=ProcessorType.choices)
    language = models.CharField(max_length=10, default='en')
    configuration = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    total_queries = models.PositiveIntegerField(default=0)
    avg_confidence = models.FloatField(default=0.0)
    avg_processing_ms = models.FloatField(default=0.0)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'ai_nlp_processors'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'processor_type'], name='unique_nlp_processor_type'),
        ]

    def __str__(self):
        return self.name


class NLPQuery(TenantModel):
    processor = models.ForeignKey(NLPProcessor, on_delete=models.CASCADE, related_name='queries')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    input_text = models.TextField()
    result = models.JSONField(default=dict)
    confidence = models.FloatField(default=0.0)
    processing_ms = models.FloatField(default=0.0)
    language = models.CharField(max_length=10, default='en')

    class Meta(TenantModel.Meta):
        db_table = 'ai_nlp_queries'
        verbose_name_plural = 'NLP queries'


class Anomaly(TenantModel):

    class AnomalyType(models.TextChoices):
        FINANCIAL = 'FINANCIAL', 'Financial'
        PROJECT = 'PROJECT', 'Project'
        CUSTOMER = 'CUSTOMER', 'Customer'
        METRIC = 'METRIC', 'Metric'

    class Severity(models.TextChoices):
        LOW = 'LOW', 'Low'
        MEDIUM = 'MEDIUM', 'Medium'
        HIGH = 'HIGH', 'High'
        CRITICAL = 'CRITICAL', 'Critical'

    class Status(models.TextChoices):
        OPEN = 'OPEN', 'Open'
        ACKNOWLEDGED = 'ACKNOWLEDGED', 'Acknowledged'
        RESOLVED = 'RESOLVED', 'Resolved'
        FALSE_POSITIVE = 'FALSE_POSITIVE', 'False positive'

    anomaly_type = models.CharField(max_length=20, choices=AnomalyType.choices, db_index=True)
    data_source = models.CharField(max_length=100)
    input_data = models.JSONField(default=dict)
    anomaly_score = models.FloatField()
    threshold = models.FloatField()
    severity = models.CharField(max_length=10, choices=Severity.choices, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN, db_index=True)
    description = models.TextField()
    explanation = models.TextField(blank=True)
    recommendations = models.JSONField(default=list, blank=True)
    detection_method = models.CharField(max_length=50)
    resource_type = models.CharField(max_length=50, blank=True)
    resource_id = models.CharField(max_length=64, blank=True)
    handled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    false_positive = models.BooleanField(default=False)

    class Meta(TenantModel.Meta):
        db_table = 'ai_anomalies'
        verbose_name_plural = 'anomalies'
        indexes = [
            models.Index(fields=['tenant', 'status', 'severity'], name='anomaly_tenant_status_sev_idx'),
        ]

    def __str__(self):
        return f"{self.anomaly_type} {self.severity}: {self.description[:50]}"


class RLAgent(TenantModel):

    class AgentType(models.TextChoices):
        Q_LEARNING = 'Q_LEARNING', 'Q-learning'
        MULTI_ARMED_BANDIT = 'MULTI_ARMED_BANDIT', 'Multi-armed bandit'
        UCB = 'UCB', 'Upper confidence bound'
        EPSILON_GREEDY = 'EPSILON_GREEDY', 'Epsilon greedy'

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    agent_type = models.CharField(max_length=30, choices=AgentType.choices)
    environment = models.CharField(max_length=100)
    policy = models.JSONField(default=dict, blank=True)
    hyperparameters = models.JSONField(default=dict, blank=True)
    exploration_rate = models.FloatField(default=0.1)
    learning_rate = models.FloatField(default=0.01)
    discount_factor = models.FloatField(default=0.95)
    total_episodes = models.PositiveIntegerField(default=0)
    total_reward = models.FloatField(default=0.0)
    avg_reward = models.FloatField(default=0.0)
    last_trained_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta(TenantModel.Meta):
        db_table = 'ai_rl_agents'

    def __str__(self):
        return self.name


class RLEpisode(TenantModel):
    agent = models.ForeignKey(RLAgent, on_delete=models.CASCADE, related_name='episodes')
    episode_number = models.PositiveIntegerField()
    started_at = models.DateTimeField(auto_now_add=True)
    ended_at = models.DateTimeField(null=True, blank=True)
    total_steps = models.PositiveIntegerField(default=0)
    total_reward = models.FloatField(default=0.0)
    avg_reward = models.FloatField(default=0.0)
    is_completed = models.BooleanField(default=False)
    success = models.BooleanField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'ai_rl_episodes'
        ordering = ['-episode_number']


class RLAction(TenantModel):
    """A decision taken by an agent; reward is filled in when feedback arrives."""

    agent = models.ForeignKey(RLAgent, on_delete=models.CASCADE, related_name='actions')
    episode = models.ForeignKey(
        RLEpisode, on_delete=models.SET_NULL, null=True, blank=True, related_name='actions'
    )
    action_type = models.CharField(max_length=100)
    action_data = models.JSONField(default=dict, blank=True)
    state = models.JSONField(default=dict, blank=True)
    state_hash = models.CharField(max_length=64, blank=True)
    q_value = models.FloatField(null=True, blank=True)
    probability = models.FloatField(null=True, blank=True)
    exploration = models.BooleanField(default=False)
    reward = models.FloatField(null=True, blank=True)

    class Meta(TenantModel.Meta):
        db_table = 'ai_rl_actions'
