"""
URL routing for the AI endpoints.
"""
from django.urls import path

from apps.ai import views

app_name = 'ai'

urlpatterns = [
    # NLP
    path('ai/nlp/process', views.NLPProcessView.as_view(), name='nlp-process'),
    path('ai/nlp/batch', views.NLPBatchView.as_view(), name='nlp-batch'),
    path('ai/nlp/queries', views.NLPQueryListView.as_view(), name='nlp-query-list'),
    path('ai/nlp/processors', views.NLPProcessorListView.as_view(), name='nlp-processor-list'),
    path('ai/nlp/processors/<uuid:processor_id>/performance', views.NLPProcessorPerformanceView.as_view(),
         name='nlp-processor-performance'),

    # Anomalies
    path('ai/anomalies', views.AnomalyListView.as_view(), name='anomaly-list'),
    path('ai/anomalies/detect', views.AnomalyDetectView.as_view(), name='anomaly-detect'),
    path('ai/anomalies/<uuid:anomaly_id>/acknowledge', views.AnomalyActionView.as_view(action='acknowledge'),
         name='anomaly-acknowledge'),
    path('ai/anomalies/<uuid:anomaly_id>/resolve', views.AnomalyActionView.as_view(action='resolve'),
         name='anomaly-resolve'),
    path('ai/anomalies/<uuid:anomaly_id>/false-positive',
         views.AnomalyActionView.as_view(action='false_positive'), name='anomaly-false-positive'),

    # Reinforcement learning
    path('ai/rl/agents', views.RLAgentListView.as_view(), name='rl-agent-list'),
    path('ai/rl/agents/<uuid:agent_id>', views.RLAgentDetailView.as_view(), name='rl-agent-detail'),
    path('ai/rl/agents/<uuid:agent_id>/decisions', views.RLDecisionView.as_view(), name='rl-decision'),
    path('ai/rl/agents/<uuid:agent_id>/rewards', views.RLRewardView.as_view(), name='rl-reward'),
    path('ai/rl/agents/<uuid:agent_id>/episodes', views.RLEpisodeStartView.as_view(), name='rl-episode-start'),
    path('ai/rl/agents/<uuid:agent_id>/episodes/<uuid:episode_id>/end', views.RLEpisodeEndView.as_view(),
         name='rl-episode-end'),
]
