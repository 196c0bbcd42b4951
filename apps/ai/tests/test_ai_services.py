"""
Tests for the NLP, anomaly detection and reinforcement learning services.
"""
import random
from datetime import timedelta

import pytest
from django.utils import timezone
from hypothesis import given, settings, strategies as st

from apps.ai.models import Anomaly, NLPProcessor, NLPQuery, RLAction, RLAgent
from apps.ai.services import AnomalyDetectionService, NLPService, ReinforcementLearningService
from apps.ai.services.anomaly import SEVERITY_ORDER, iqr_bounds, score_series, severity_for
from apps.ai.services.nlp import (
    analyze_sentiment, classify_intent, extract_entities, sentiment_intensity
)
from apps.ai.services.rl import decayed_exploration, hash_state
from apps.core.exceptions import ResourceConflict, ResourceNotFound, ValidationError
from apps.projects.models import Project, Task

POSITIVE_WORDS = ['good', 'great', 'happy', 'love', 'excellent']
NEGATIVE_WORDS = ['bad', 'terrible', 'hate', 'awful', 'sad']
NEUTRAL_WORDS = ['table', 'monday', 'the']


def _rank(severity):
    return -1 if severity is None else SEVERITY_ORDER.index(severity)


class TestSentimentProperties:

    @given(st.lists(st.sampled_from(POSITIVE_WORDS + NEGATIVE_WORDS + NEUTRAL_WORDS), max_size=30))
    @settings(max_examples=100)
    def test_classification_follows_score_sign(self, words):
        result = analyze_sentiment(' '.join(words))

        assert sorted(result['positive']) == sorted(w for w in words if w in POSITIVE_WORDS)
        assert sorted(result['negative']) == sorted(w for w in words if w in NEGATIVE_WORDS)
        if result['score'] > 0:
            assert result['classification'] == 'positive'
        elif result['score'] < 0:
            assert result['classification'] == 'negative'
        else:
            assert result['classification'] == 'neutral'

    def test_scores_come_from_afinn(self):
        result = analyze_sentiment('Great product, but the delivery was TERRIBLE')

        assert result['positive'] == ['great']
        assert result['negative'] == ['terrible']
        assert result['score'] == 0
        assert result['classification'] == 'neutral'
        assert analyze_sentiment('')['score'] == 0

    @given(st.text())
    def test_intensity_is_clamped(self, text):
        assert 0.1 <= sentiment_intensity(text) <= 2.0

    def test_intensifiers_raise_intensity(self):
        assert sentiment_intensity('very very good') == pytest.approx(1.4)
        assert sentiment_intensity('slightly good') == pytest.approx(0.9)

    def test_emotions(self):
        result = analyze_sentiment('I am so happy but also a bit worried')
        assert result['emotions'] == ['joy', 'fear']


class TestEntitiesAndIntent:

    def test_extract_entities(self):
        text = (
            'We spoke with Jane Smith yesterday. She lives in Berlin and works for Acme Ltd. '
            'Reach her at jane@acme.test or 555-123-4567.'
        )

        result = extract_entities(text)

        assert result['people'] == ['Jane Smith']
        assert result['places'] == ['Berlin']
        assert result['organizations'] == ['Acme Ltd']
        assert result['emails'] == ['jane@acme.test']
        assert result['phones'] == ['555-123-4567']

    def test_intent(self):
        result = classify_intent('I want to cancel and get a refund')
        assert result['intent'] == 'cancellation'
        assert result['confidence'] == pytest.approx(0.9)

    def test_unknown_intent(self):
        result = classify_intent('zzz')
        assert (result['intent'], result['confidence'], result['keywords']) == ('unknown', 0.3, [])


class TestAnomalyScoring:

    @given(st.lists(st.integers(min_value=-10_000, max_value=10_000), min_size=1, max_size=50))
    def test_fences_are_ordered(self, values):
        lower, upper = iqr_bounds(values)
        assert lower <= upper

    def test_fences_interpolate_quartiles(self):
        assert iqr_bounds([1, 2, 3, 4]) == (-0.5, 5.5)
        assert iqr_bounds([5, 5, 5]) == (5.0, 5.0)

    @given(st.floats(min_value=0, max_value=10), st.floats(min_value=0, max_value=10), st.booleans())
    def test_severity_is_monotonic_in_z_score(self, a, b, iqr_outlier):
        low, high = sorted([a, b])
        assert _rank(severity_for(low, iqr_outlier)) <= _rank(severity_for(high, iqr_outlier))

    @pytest.mark.parametrize('z_score,iqr_outlier,expected', [
        (4.5, False, 'CRITICAL'),
        (3.5, False, 'HIGH'),
        (2.6, False, 'MEDIUM'),
        (1.0, True, 'LOW'),
        (1.0, False, None),
    ])
    def test_severity_thresholds(self, z_score, iqr_outlier, expected):
        assert severity_for(z_score, iqr_outlier) == expected

    @given(st.lists(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False), max_size=9))
    def test_short_series_flag_nothing(self, values):
        assert score_series(values) == []

    @given(st.lists(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False), min_size=10, max_size=60))
    @settings(max_examples=75)
    def test_flagged_points_are_well_formed(self, values):
        for item in score_series(values):
            assert item['severity'] in SEVERITY_ORDER
            assert 0 < item['score'] <= 1.0
            assert values[item['index']] == item['value']

    def test_constant_series_has_no_outliers(self):
        assert score_series([7.0] * 20) == []

    def test_single_spike(self):
        flagged = score_series([10] * 15 + [100])

        assert len(flagged) == 1
        assert flagged[0]['index'] == 15
        assert flagged[0]['severity'] == 'HIGH'
        assert flagged[0]['score'] == 1.0


@pytest.mark.django_db
class TestNLPService:

    def test_process_text_persists_query_and_usage(self, tenant, owner):
        query = NLPService.process_text(tenant, owner.user, 'I love this, it is great', 'SENTIMENT')

        assert isinstance(query, NLPQuery)
        assert query.result['classification'] == 'positive'
        assert query.confidence == 1.0
        assert query.user_id == owner.user.id

        NLPService.process_text(tenant, owner.user, 'This is terrible', 'SENTIMENT')

        processor = NLPProcessor.objects.get(tenant=tenant, processor_type='SENTIMENT')
        assert processor.total_queries == 2
        assert processor.last_used_at is not None
        assert NLPQuery.objects.for_tenant(tenant).count() == 2

    def test_translation_reports_target_language(self, tenant, owner):
        query = NLPService.process_text(
            tenant, owner.user, 'Hallo Welt', 'TRANSLATION',
            {'source_language': 'de', 'target_language': 'fr'},
        )

        assert query.result['translated_text'] == '[TRANSLATED FROM de TO fr]: Hallo Welt'
        assert query.language == 'fr'

    def test_empty_text_rejected(self, tenant, owner):
        with pytest.raises(ValidationError) as exc_info:
            NLPService.process_text(tenant, owner.user, '   ', 'SENTIMENT')
        assert exc_info.value.details['field'] == 'text'

    def test_unknown_processing_type(self, tenant, owner):
        with pytest.raises(ValidationError) as exc_info:
            NLPService.process_text(tenant, owner.user, 'hello', 'POETRY')

        assert exc_info.value.details['field'] == 'processing_type'
        assert not NLPQuery.objects.exists()

    def test_batch(self, tenant, owner):
        queries = NLPService.batch_process(tenant, owner.user, ['one topic', 'two topics'], 'TOPIC')
        assert len(queries) == 2

        with pytest.raises(ValidationError):
            NLPService.batch_process(tenant, owner.user, [], 'TOPIC')

    def test_processor_performance_is_tenant_scoped(self, tenant, other_tenant, owner):
        NLPService.process_text(tenant, owner.user, 'good', 'SENTIMENT')
        processor = NLPProcessor.objects.get(tenant=tenant)

        performance = NLPService.processor_performance(tenant, processor.id)
        assert performance['total_queries'] == 1
        assert performance['recent_queries'] == 1

        with pytest.raises(ResourceNotFound):
            NLPService.processor_performance(other_tenant, processor.id)


@pytest.mark.django_db
class TestAnomalyDetectionService:

    def test_detect_series_stores_flagged_points(self, tenant):
        points = [{'id': f'p{i}', 'value': 10} for i in range(15)] + [{'id': 'spike', 'value': 100}]

        anomalies = AnomalyDetectionService.detect_series(tenant, 'daily_revenue', points,
                                                          anomaly_type=Anomaly.AnomalyType.FINANCIAL)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.resource_id == 'spike'
        assert anomaly.anomaly_type == 'FINANCIAL'
        assert anomaly.severity == 'HIGH'
        assert anomaly.status == 'OPEN'

    def test_non_numeric_point_rejected(self, tenant):
        with pytest.raises(ValidationError) as exc_info:
            AnomalyDetectionService.detect_series(tenant, 'x', [1, 2, {'value': 'abc'}])
        assert exc_info.value.details['field'] == 'points'

    def test_detect_project_anomalies(self, tenant):
        today = timezone.localdate()
        late = Project.objects.create(tenant=tenant, name='Late', end_date=today - timedelta(days=5))
        Task.objects.create(tenant=tenant, project=late, title='Overdue', due_date=today - timedelta(days=1))
        Task.objects.create(tenant=tenant, project=late, title='Fine')
        Project.objects.create(tenant=tenant, name='Healthy')
        Project.objects.create(tenant=tenant, name='Finished', status='COMPLETED',
                               end_date=today - timedelta(days=30))

        anomalies = AnomalyDetectionService.detect_project_anomalies(tenant)

        assert len(anomalies) == 1
        assert anomalies[0].resource_id == str(late.id)
        assert anomalies[0].severity == 'HIGH'
        assert anomalies[0].anomaly_score == 1.0
        assert anomalies[0].input_data['task_overdue'] == 1

    def test_lifecycle(self, tenant, other_tenant, owner):
        anomaly = AnomalyDetectionService.detect_series(tenant, 'x', [10] * 15 + [100])[0]

        acknowledged = AnomalyDetectionService.acknowledge(tenant, anomaly.id, owner.user)
        assert acknowledged.status == 'ACKNOWLEDGED'
        assert acknowledged.acknowledged_at is not None

        resolved = AnomalyDetectionService.mark_false_positive(tenant, anomaly.id, owner.user)
        assert resolved.status == 'FALSE_POSITIVE'
        assert resolved.false_positive is True

        with pytest.raises(ResourceNotFound):
            AnomalyDetectionService.resolve(other_tenant, anomaly.id, owner.user)

    def test_list_filters(self, tenant):
        AnomalyDetectionService.detect_series(tenant, 'x', [10] * 15 + [100])
        AnomalyDetectionService.detect_series(tenant, 'y', [5] * 20 + [5000])

        assert AnomalyDetectionService.list(tenant).count() == 2
        assert AnomalyDetectionService.list(tenant, severity='CRITICAL').count() == 1
        assert AnomalyDetectionService.list(tenant, status='RESOLVED').count() == 0


class TestRLHelpers:

    def test_hash_state_is_order_independent(self):
        assert hash_state({'a': 1, 'b': 2}) == hash_state({'b': 2, 'a': 1})
        assert hash_state({'hash': 'known'}) == 'known'

    @given(st.floats(min_value=0, max_value=1))
    def test_exploration_decay_has_floor(self, rate):
        decayed = decayed_exploration(rate)
        assert 0.01 <= decayed
        assert decayed <= max(rate, 0.01)


@pytest.mark.django_db
class TestReinforcementLearningService:

    def test_create_agent_defaults(self, tenant, owner):
        agent = ReinforcementLearningService.create_agent(tenant, 'Q_LEARNING', 'pricing', user=owner.user)

        assert agent.name == 'Q_LEARNING_pricing_Agent'
        assert agent.policy == {'q_table': {}}
        assert agent.exploration_rate == 0.1
        assert agent.created_by_id == owner.user.id

    @pytest.mark.parametrize('agent_type,environment,field', [
        ('SARSA', 'pricing', 'agent_type'),
        ('UCB', '', 'environment'),
    ])
    def test_create_agent_validation(self, tenant, agent_type, environment, field):
        with pytest.raises(ValidationError) as exc_info:
            ReinforcementLearningService.create_agent(tenant, agent_type, environment)
        assert exc_info.value.details['field'] == field

    def test_q_learning_exploits_after_reward(self, tenant):
        agent = ReinforcementLearningService.create_agent(
            tenant, 'Q_LEARNING', 'pricing', hyperparameters={'exploration_rate': 0}
        )
        rng = random.Random(0)
        state = {'segment': 'smb'}

        action, decision = ReinforcementLearningService.make_decision(agent, state, ['a', 'b'], rng=rng)
        # Nothing learned yet for this state, so the agent explores
        assert decision['exploration'] is True
        chosen = action.action_type

        agent = ReinforcementLearningService.process_reward(agent, action, 1.0)
        assert agent.policy['q_table'][hash_state(state)][chosen] == pytest.approx(0.1)

        action, decision = ReinforcementLearningService.make_decision(agent, state, ['a', 'b'], rng=rng)
        assert decision['exploration'] is False
        assert decision['action']['type'] == chosen
        assert decision['expected_reward'] == pytest.approx(0.1)

    def test_ucb_plays_untried_arms_first(self, tenant):
        agent = ReinforcementLearningService.create_agent(tenant, 'UCB', 'pricing')

        first, decision = ReinforcementLearningService.make_decision(agent, {}, ['a', 'b'])
        assert first.action_type == 'a'
        assert decision['confidence'] == 1.0
        agent = ReinforcementLearningService.process_reward(agent, first, 1.0)

        second, _ = ReinforcementLearningService.make_decision(agent, {}, ['a', 'b'])
        assert second.action_type == 'b'
        agent = ReinforcementLearningService.process_reward(agent, second, 0.0)

        assert agent.policy['total_plays'] == 2
        third, decision = ReinforcementLearningService.make_decision(agent, {}, ['a', 'b'])
        assert third.action_type == 'a'
        assert decision['exploration'] is True

    def test_bandit_updates_beta_parameters(self, tenant):
        agent = ReinforcementLearningService.create_agent(tenant, 'MULTI_ARMED_BANDIT', 'ads')

        action, decision = ReinforcementLearningService.make_decision(
            agent, {}, [{'type': 'banner', 'parameters': {'size': 'L'}}, 'popup'], rng=random.Random(3)
        )
        assert 0 <= action.probability <= 1
        if action.action_type == 'banner':
            assert action.action_data == {'size': 'L'}

        agent = ReinforcementLearningService.process_reward(agent, action, 0.0)
        assert agent.policy['bandit_stats'][action.action_type] == {'alpha': 1, 'beta': 2, 'count': 1}

    def test_epsilon_greedy_without_exploration_picks_first_best(self, tenant):
        agent = ReinforcementLearningService.create_agent(
            tenant, 'EPSILON_GREEDY', 'routing', hyperparameters={'exploration_rate': 0}
        )

        action, decision = ReinforcementLearningService.make_decision(agent, {}, ['x', 'y'], rng=random.Random(1))

        assert action.action_type == 'x'
        assert decision['confidence'] == 0.7

    def test_invalid_actions(self, tenant):
        agent = ReinforcementLearningService.create_agent(tenant, 'UCB', 'pricing')

        with pytest.raises(ValidationError):
            ReinforcementLearningService.make_decision(agent, {}, [])
        with pytest.raises(ValidationError):
            ReinforcementLearningService.make_decision(agent, {}, [{'parameters': {}}])

    def test_reward_guards(self, tenant):
        agent = ReinforcementLearningService.create_agent(tenant, 'UCB', 'pricing')
        other = ReinforcementLearningService.create_agent(tenant, 'UCB', 'shipping')
        action, _ = ReinforcementLearningService.make_decision(agent, {}, ['a'])

        with pytest.raises(ValidationError):
            ReinforcementLearningService.process_reward(other, action, 1.0)

        ReinforcementLearningService.process_reward(agent, action, 1.0)
        with pytest.raises(ResourceConflict):
            ReinforcementLearningService.process_reward(agent, action, 1.0)

    def test_episode_lifecycle(self, tenant):
        agent = ReinforcementLearningService.create_agent(tenant, 'UCB', 'pricing')
        episode = ReinforcementLearningService.start_episode(agent)
        assert episode.episode_number == 1

        action, _ = ReinforcementLearningService.make_decision(agent, {}, ['a'], episode=episode)
        ReinforcementLearningService.process_reward(agent, action, 2.0)

        episode, agent = ReinforcementLearningService.end_episode(episode, success=True)

        assert episode.is_completed is True
        assert episode.total_steps == 1
        assert episode.total_reward == 2.0
        assert agent.total_episodes == 1
        assert agent.avg_reward == 2.0
        assert agent.exploration_rate == pytest.approx(0.0995)
        assert ReinforcementLearningService.start_episode(agent).episode_number == 2

        with pytest.raises(ResourceConflict):
            ReinforcementLearningService.end_episode(episode, success=False)

        metrics = ReinforcementLearningService.agent_metrics(agent)
        assert metrics['success_rate'] == 1.0
        assert metrics['total_actions'] == 1
        assert metrics['recent_rewards'][0]['reward'] == 2.0
        assert RLAction.objects.filter(agent=agent).count() == 1
        assert RLAgent.objects.get(pk=agent.pk).total_episodes == 1
