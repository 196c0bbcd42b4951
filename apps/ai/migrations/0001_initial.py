# Generated migration for NLP processors, anomalies and reinforcement learning agents

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='NLPProcessor',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(max_length=255)),
                ('processor_type', models.CharField(choices=[('SENTIMENT', 'Sentiment'), ('ENTITY', 'Entity extraction'), ('INTENT', 'Intent classification'), ('TOPIC', 'Topic extraction'), ('TRANSLATION', 'Translation')], max_length=20)),
                ('language', models.CharField(default='en', max_length=10)),
                ('configuration', models.JSONField(blank=True, default=dict)),
                ('is_active', models.BooleanField(default=True)),
                ('total_queries', models.PositiveIntegerField(default=0)),
                ('avg_confidence', models.FloatField(default=0.0)),
                ('avg_processing_ms', models.FloatField(default=0.0)),
                ('last_used_at', models.DateTimeField(blank=True, null=True)),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_nlpprocessor_set', to='tenants.tenant')),
            ],
            options={
                'db_table': 'ai_nlp_processors',
                'ordering': ['-created_at'],
                'abstract': False,
                'constraints': [models.UniqueConstraint(fields=('tenant', 'processor_type'), name='unique_nlp_processor_type')],
            },
        ),
        migrations.CreateModel(
            name='NLPQuery',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('input_text', models.TextField()),
                ('result', models.JSONField(default=dict)),
                ('confidence', models.FloatField(default=0.0)),
                ('processing_ms', models.FloatField(default=0.0)),
                ('language', models.CharField(default='en', max_length=10)),
                ('processor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='queries', to='ai.nlpprocessor')),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_nlpquery_set', to='tenants.tenant')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ai_nlp_queries',
                'verbose_name_plural': 'NLP queries',
                'ordering': ['-created_at'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Anomaly',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('anomaly_type', models.CharField(choices=[('FINANCIAL', 'Financial'), ('PROJECT', 'Project'), ('CUSTOMER', 'Customer'), ('METRIC', 'Metric')], db_index=True, max_length=20)),
                ('data_source', models.CharField(max_length=100)),
                ('input_data', models.JSONField(default=dict)),
                ('anomaly_score', models.FloatField()),
                ('threshold', models.FloatField()),
                ('severity', models.CharField(choices=[('LOW', 'Low'), ('MEDIUM', 'Medium'), ('HIGH', 'High'), ('CRITICAL', 'Critical')], db_index=True, max_length=10)),
                ('status', models.CharField(choices=[('OPEN', 'Open'), ('ACKNOWLEDGED', 'Acknowledged'), ('RESOLVED', 'Resolved'), ('FALSE_POSITIVE', 'False positive')], db_index=True, default='OPEN', max_length=20)),
                ('description', models.TextField()),
                ('explanation', models.TextField(blank=True)),
                ('recommendations', models.JSONField(blank=True, default=list)),
                ('detection_method', models.CharField(max_length=50)),
                ('resource_type', models.CharField(blank=True, max_length=50)),
                ('resource_id', models.CharField(blank=True, max_length=64)),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('false_positive', models.BooleanField(default=False)),
                ('handled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_anomaly_set', to='tenants.tenant')),
            ],
            options={
                'db_table': 'ai_anomalies',
                'verbose_name_plural': 'anomalies',
                'ordering': ['-created_at'],
                'abstract': False,
                'indexes': [models.Index(fields=['tenant', 'status', 'severity'], name='anomaly_tenant_status_sev_idx')],
            },
        ),
        migrations.CreateModel(
            name='RLAgent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('agent_type', models.CharField(choices=[('Q_LEARNING', 'Q-learning'), ('MULTI_ARMED_BANDIT', 'Multi-armed bandit'), ('UCB', 'Upper confidence bound'), ('EPSILON_GREEDY', 'Epsilon greedy')], max_length=30)),
                ('environment', models.CharField(max_length=100)),
                ('policy', models.JSONField(blank=True, default=dict)),
                ('hyperparameters', models.JSONField(blank=True, default=dict)),
                ('exploration_rate', models.FloatField(default=0.1)),
                ('learning_rate', models.FloatField(default=0.01)),
                ('discount_factor', models.FloatField(default=0.95)),
                ('total_episodes', models.PositiveIntegerField(default=0)),
                ('total_reward', models.FloatField(default=0.0)),
                ('avg_reward', models.FloatField(default=0.0)),
                ('last_trained_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_rlagent_set', to='tenants.tenant')),
            ],
            options={
                'db_table': 'ai_rl_agents',
                'ordering': ['-created_at'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='RLEpisode',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('episode_number', models.PositiveIntegerField()),
                ('started_at', models.DateTimeField(auto_now_add=True)),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('total_steps', models.PositiveIntegerField(default=0)),
                ('total_reward', models.FloatField(default=0.0)),
                ('avg_reward', models.FloatField(default=0.0)),
                ('is_completed', models.BooleanField(default=False)),
                ('success', models.BooleanField(blank=True, null=True)),
                ('agent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='episodes', to='ai.rlagent')),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_rlepisode_set', to='tenants.tenant')),
            ],
            options={
                'db_table': 'ai_rl_episodes',
                'ordering': ['-episode_number'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='RLAction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('action_type', models.CharField(max_length=100)),
                ('action_data', models.JSONField(blank=True, default=dict)),
                ('state', models.JSONField(blank=True, default=dict)),
                ('state_hash', models.CharField(blank=True, max_length=64)),
                ('q_value', models.FloatField(blank=True, null=True)),
                ('probability', models.FloatField(blank=True, null=True)),
                ('exploration', models.BooleanField(default=False)),
                ('reward', models.FloatField(blank=True, null=True)),
                ('agent', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='actions', to='ai.rlagent')),
                ('episode', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='actions', to='ai.rlepisode')),
                ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='ai_rlaction_set', to='tenants.tenant')),
            ],
            options={
                'db_table': 'ai_rl_actions',
                'ordering': ['-created_at'],
                'abstract': False,
            },
        ),
    ]
