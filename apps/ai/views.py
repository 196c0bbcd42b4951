"""
AI API views.

- /v1/ai/nlp/...        text processing
- /v1/ai/anomalies/...  anomaly detection and lifecycle
- /v1/ai/rl/agents/...  reinforcement learning agents

Every endpoint requires the ai:use scope.
"""
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiParameter
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.ai.models import NLPProcessor, NLPQuery, RLAction, RLAgent, RLEpisode
from apps.ai.serializers import (
    AnomalyDetectRequestSerializer, AnomalySerializer, NLPBatchRequestSerializer,
    NLPProcessorSerializer, NLPProcessRequestSerializer, NLPQuerySerializer,
    RLActionSerializer, RLAgentCreateSerializer, RLAgentSerializer, RLDecisionRequestSerializer,
    RLEpisodeEndSerializer, RLEpisodeSerializer, RLRewardRequestSerializer
)
from apps.ai.services import AnomalyDetectionService, NLPService, ReinforcementLearningService
from apps.core.exceptions import APIErrorHandler
from apps.core.permissions import HasTenantScopes, requires_scopes
from apps.core.pipeline import StandardResultsSetPagination
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class AIView(APIView):
    permission_classes = [HasTenantScopes]
    required_scopes = {'ai:use'}

    def audit(self, action, target_type, target_id, metadata=None, diff=None):
        AuditLog.log_action(
            action=action,
            user=self.request.user,
            tenant=self.request.tenant,
            target_type=target_type,
            target_id=target_id,
            diff=diff,
            metadata=metadata,
            request=self.request,
        )

    def paginate(self, queryset, serializer_class):
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, self.request, view=self)
        return paginator.get_paginated_response(serializer_class(page, many=True).data)


# NLP

class NLPProcessView(AIView):
    """POST /v1/ai/nlp/process"""

    @extend_schema(
        summary="Process text",
        description="processing_type: SENTIMENT, ENTITY, INTENT, TOPIC or TRANSLATION.",
        request=NLPProcessRequestSerializer,
        responses={200: NLPQuerySerializer, 400: None},
        tags=['AI - NLP']
    )
    def post(self, request):
        serializer = NLPProcessRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        query = NLPService.process_text(
            request.tenant, request.user, data['text'], data['processing_type'], data.get('options')
        )
        return Response({'success': True, 'data': NLPQuerySerializer(query).data})


class NLPBatchView(AIView):
    """POST /v1/ai/nlp/batch"""

    @extend_schema(
        summary="Process a batch of texts",
        request=NLPBatchRequestSerializer,
        responses={200: NLPQuerySerializer(many=True), 400: None},
        tags=['AI - NLP']
    )
    def post(self, request):
        serializer = NLPBatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        queries = NLPService.batch_process(
            request.tenant, request.user, data['texts'], data['processing_type'], data.get('options')
        )
        return Response({'success': True, 'data': NLPQuerySerializer(queries, many=True).data})


class NLPQueryListView(AIView):
    """GET /v1/ai/nlp/queries"""

    @extend_schema(
        summary="List NLP queries",
        parameters=[OpenApiParameter('processing_type', OpenApiTypes.STR, OpenApiParameter.QUERY)],
        responses={200: NLPQuerySerializer(many=True)},
        tags=['AI - NLP']
    )
    def get(self, request):
        queryset = NLPQuery.objects.for_tenant(request.tenant).select_related('processor')
        processing_type = request.query_params.get('processing_type')
        if processing_type:
            queryset = queryset.filter(processor__processor_type=processing_type)
        return self.paginate(queryset.order_by('-created_at'), NLPQuerySerializer)


class NLPProcessorListView(AIView):
    """GET /v1/ai/nlp/processors"""

    @extend_schema(summary="List NLP processors", responses={200: NLPProcessorSerializer(many=True)},
                   tags=['AI - NLP'])
    def get(self, request):
        processors = NLPProcessor.objects.for_tenant(request.tenant).order_by('processor_type')
        return Response({'processors': NLPProcessorSerializer(processors, many=True).data})


class NLPProcessorPerformanceView(AIView):
    """GET /v1/ai/nlp/processors/{id}/performance"""

    @extend_schema(summary="NLP processor performance", responses={200: None, 404: None}, tags=['AI - NLP'])
    def get(self, request, processor_id):
        return Response({'success': True, 'data': NLPService.processor_performance(request.tenant, processor_id)})


# Anomalies

class AnomalyListView(AIView):
    """GET /v1/ai/anomalies"""

    @extend_schema(
        summary="List anomalies",
        parameters=[
            OpenApiParameter('anomaly_type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('severity', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('status', OpenApiTypes.STR, OpenApiParameter.QUERY),
        ],
        responses={200: AnomalySerializer(many=True)},
        tags=['AI - Anomalies']
    )
    def get(self, request):
        params = request.query_params
        queryset = AnomalyDetectionService.list(
            request.tenant,
            anomaly_type=params.get('anomaly_type'),
            severity=params.get('severity'),
            status=params.get('status'),
        )
        return self.paginate(queryset, AnomalySerializer)


class AnomalyDetectView(AIView):
    """POST /v1/ai/anomalies/detect"""

    @extend_schema(
        summary="Run anomaly detection",
        description="source=series scores the given points; source=projects checks the tenant's projects.",
        request=AnomalyDetectRequestSerializer,
        responses={201: AnomalySerializer(many=True), 400: None},
        tags=['AI - Anomalies']
    )
    def post(self, request):
        serializer = AnomalyDetectRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['source'] == 'projects':
            anomalies = AnomalyDetectionService.detect_project_anomalies(request.tenant)
        else:
            kwargs = {'anomaly_type': data['anomaly_type']} if data.get('anomaly_type') else {}
            anomalies = AnomalyDetectionService.detect_series(
                request.tenant, data['data_source'], data['points'], **kwargs
            )

        self.audit('anomaly_detection_run', 'Anomaly', None,
                   metadata={'source': data['source'], 'detected': len(anomalies)})
        return Response({
            'success': True,
            'detected': len(anomalies),
            'anomalies': AnomalySerializer(anomalies, many=True).data,
        }, status=status.HTTP_201_CREATED)


class AnomalyActionView(AIView):
    """
    POST /v1/ai/anomalies/{id}/acknowledge
    POST /v1/ai/anomalies/{id}/resolve
    POST /v1/ai/anomalies/{id}/false-positive
    """
    action = None

    ACTIONS = {
        'acknowledge': AnomalyDetectionService.acknowledge,
        'resolve': AnomalyDetectionService.resolve,
        'false_positive': AnomalyDetectionService.mark_false_positive,
    }

    @extend_schema(summary="Change anomaly status", request=None,
                   responses={200: AnomalySerializer, 404: None}, tags=['AI - Anomalies'])
    def post(self, request, anomaly_id):
        anomaly = self.ACTIONS[self.action](request.tenant, anomaly_id, request.user)
        self.audit(f'anomaly_{self.action}', 'Anomaly', anomaly.id, metadata={'status': anomaly.status})
        return Response(AnomalySerializer(anomaly).data)


# Reinforcement learning

class RLAgentListView(AIView):
    """
    GET  /v1/ai/rl/agents
    POST /v1/ai/rl/agents
    """

    @extend_schema(summary="List RL agents", responses={200: RLAgentSerializer(many=True)}, tags=['AI - RL'])
    def get(self, request):
        queryset = RLAgent.objects.for_tenant(request.tenant).order_by('-created_at')
        agent_type = request.query_params.get('agent_type')
        if agent_type:
            queryset = queryset.filter(agent_type=agent_type)
        return self.paginate(queryset, RLAgentSerializer)

    @extend_schema(summary="Create RL agent", request=RLAgentCreateSerializer,
                   responses={201: RLAgentSerializer, 400: None}, tags=['AI - RL'])
    def post(self, request):
        serializer = RLAgentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        agent = ReinforcementLearningService.create_agent(request.tenant, user=request.user,
                                                          **serializer.validated_data)
        self.audit('rl_agent_created', 'RLAgent', agent.id,
                   metadata={'agent_type': agent.agent_type, 'environment': agent.environment})
        return Response(RLAgentSerializer(agent).data, status=status.HTTP_201_CREATED)


class RLAgentMixin:

    def get_agent(self, request, agent_id):
        return RLAgent.objects.for_tenant(request.tenant).filter(id=agent_id).first()


class RLAgentDetailView(RLAgentMixin, AIView):
    """GET /v1/ai/rl/agents/{id} - agent with metrics"""

    @extend_schema(summary="Get RL agent", responses={200: RLAgentSerializer, 404: None}, tags=['AI - RL'])
    def get(self, request, agent_id):
        agent = self.get_agent(request, agent_id)
        if agent is None:
            return APIErrorHandler.not_found('RLAgent', request)
        data = RLAgentSerializer(agent).data
        data['metrics'] = ReinforcementLearningService.agent_metrics(agent)
        return Response(data)


class RLDecisionView(RLAgentMixin, AIView):
    """POST /v1/ai/rl/agents/{id}/decisions"""

    @extend_schema(summary="Request a decision", request=RLDecisionRequestSerializer,
                   responses={200: None, 400: None, 404: None}, tags=['AI - RL'])
    def post(self, request, agent_id):
        agent = self.get_agent(request, agent_id)
        if agent is None:
            return APIErrorHandler.not_found('RLAgent', request)

        serializer = RLDecisionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        episode = None
        if data.get('episode_id'):
            episode = RLEpisode.objects.filter(agent=agent, id=data['episode_id'], is_completed=False).first()
            if episode is None:
                return APIErrorHandler.validation_error('Unknown or finished episode', field='episode_id',
                                                        request=request)

        action, decision = ReinforcementLearningService.make_decision(
            agent, data['state'], data['available_actions'], episode=episode
        )
        return Response({
            'success': True,
            'action_id': str(action.id),
            'decision': decision,
        })


class RLRewardView(RLAgentMixin, AIView):
    """POST /v1/ai/rl/agents/{id}/rewards"""

    @extend_schema(summary="Report a reward", request=RLRewardRequestSerializer,
                   responses={200: RLActionSerializer, 400: None, 404: None, 409: None}, tags=['AI - RL'])
    def post(self, request, agent_id):
        agent = self.get_agent(request, agent_id)
        if agent is None:
            return APIErrorHandler.not_found('RLAgent', request)

        serializer = RLRewardRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        action = RLAction.objects.filter(agent=agent, id=serializer.validated_data['action_id']).first()
        if action is None:
            return APIErrorHandler.not_found('RLAction', request)

        ReinforcementLearningService.process_reward(agent, action, serializer.validated_data['value'])
        return Response({'success': True, 'action': RLActionSerializer(action).data})


class RLEpisodeStartView(RLAgentMixin, AIView):
    """POST /v1/ai/rl/agents/{id}/episodes"""

    @extend_schema(summary="Start an episode", request=None,
                   responses={201: RLEpisodeSerializer, 404: None}, tags=['AI - RL'])
    def post(self, request, agent_id):
        agent = self.get_agent(request, agent_id)
        if agent is None:
            return APIErrorHandler.not_found('RLAgent', request)
        episode = ReinforcementLearningService.start_episode(agent)
        return Response(RLEpisodeSerializer(episode).data, status=status.HTTP_201_CREATED)


class RLEpisodeEndView(RLAgentMixin, AIView):
    """POST /v1/ai/rl/agents/{id}/episodes/{episode_id}/end"""

    @extend_schema(summary="End an episode", request=RLEpisodeEndSerializer,
                   responses={200: RLEpisodeSerializer, 404: None, 409: None}, tags=['AI - RL'])
    def post(self, request, agent_id, episode_id):
        agent = self.get_agent(request, agent_id)
        if agent is None:
            return APIErrorHandler.not_found('RLAgent', request)
        episode = RLEpisode.objects.filter(agent=agent, id=episode_id).first()
        if episode is None:
            return APIErrorHandler.not_found('RLEpisode', request)

        serializer = RLEpisodeEndSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        episode, agent = ReinforcementLearningService.end_episode(episode, serializer.validated_data['success'])
        return Response({
            'episode': RLEpisodeSerializer(episode).data,
            'agent': {
                'total_episodes': agent.total_episodes,
                'avg_reward': agent.avg_reward,
                'exploration_rate': agent.exploration_rate,
            },
        })
