"""
Reinforcement learning agents (simulation).

Agents keep their learned values in the JSON policy column:

    Q_LEARNING          {'q_table': {state_hash: {action_type: q}}}
    MULTI_ARMED_BANDIT  {'bandit_stats': {action_type: {'alpha', 'beta', 'count'}}}
    UCB                 {'ucb_stats': {action_type: {'total_reward', 'count'}}, 'total_plays': n}
    EPSILON_GREEDY      {'action_preferences': {action_type: value}}

Every decision is recorded as an RLAction; rewards are attached to the
action they reward and folded into the policy.
"""
import hashlib
import json
import logging
import math
import random

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from apps.ai.models import RLAction, RLAgent, RLEpisode
from apps.core.exceptions import ResourceConflict, ValidationError

logger = logging.getLogger(__name__)

Q_LEARNING_RATE = 0.1
MIN_EXPLORATION_RATE = 0.01
EXPLORATION_DECAY = 0.995


def hash_state(state):
    if isinstance(state, dict) and state.get('hash'):
        return str(state['hash'])[:64]
    encoded = json.dumps(state or {}, sort_keys=True, default=str)
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def initial_policy(agent_type):
    if agent_type == RLAgent.AgentType.Q_LEARNING:
        return {'q_table': {}}
    if agent_type == RLAgent.AgentType.MULTI_ARMED_BANDIT:
        return {'bandit_stats': {}}
    if agent_type == RLAgent.AgentType.UCB:
        return {'ucb_stats': {}, 'total_plays': 0}
    return {'action_preferences': {}}


def decayed_exploration(rate):
    return max(MIN_EXPLORATION_RATE, rate * EXPLORATION_DECAY)


def _best_by(actions, values):
    """First action with the highest value (missing values count as 0)."""
    best = actions[0]
    best_value = values.get(best['type'], 0)
    for action in actions:
        value = values.get(action['type'], 0)
        if value > best_value:
            best, best_value = action, value
    return best, best_value


class ReinforcementLearningService:

    @classmethod
    def create_agent(cls, tenant, agent_type, environment, hyperparameters=None, name=None,
                     description='', user=None):
        if agent_type not in RLAgent.AgentType.values:
            raise ValidationError(
                f"Unsupported agent type '{agent_type}'",
                details={'field': 'agent_type', 'allowed': list(RLAgent.AgentType.values)},
            )
        if not environment:
            raise ValidationError('environment is required', details={'field': 'environment'})

        hyperparameters = hyperparameters or {}
        agent = RLAgent.objects.create(
            tenant=tenant,
            name=name or f'{agent_type}_{environment}_Agent',
            description=description or f'RL agent for {environment} optimization',
            agent_type=agent_type,
            environment=environment,
            policy=initial_policy(agent_type),
            hyperparameters=hyperparameters,
            exploration_rate=float(hyperparameters.get('exploration_rate', 0.1)),
            learning_rate=float(hyperparameters.get('learning_rate', 0.01)),
            discount_factor=float(hyperparameters.get('discount_factor', 0.95)),
            created_by=user if getattr(user, 'is_authenticated', False) else None,
        )
        logger.info(
            "RL agent created",
            extra={'agent_id': str(agent.id), 'agent_type': agent_type, 'tenant_id': str(tenant.id)}
        )
        return agent

    # Decisions

    @classmethod
    def make_decision(cls, agent, state, available_actions, episode=None, rng=None):
        """
        Pick one of available_actions.

        available_actions: list of {'type': str, 'parameters': dict}

        Returns:
            (RLAction, dict with confidence, reasoning, expected_reward, exploration)
        """
        rng = rng or random
        actions = cls._normalise_actions(available_actions)
        state_hash = hash_state(state)

        if agent.agent_type == RLAgent.AgentType.Q_LEARNING:
            decision = cls._q_learning(agent, state_hash, actions, rng)
        elif agent.agent_type == RLAgent.AgentType.MULTI_ARMED_BANDIT:
            decision = cls._bandit(agent, actions, rng)
        elif agent.agent_type == RLAgent.AgentType.UCB:
            decision = cls._ucb(agent, actions)
        else:
            decision = cls._epsilon_greedy(agent, actions, rng)

        action = decision['action']
        record = RLAction.objects.create(
            tenant_id=agent.tenant_id,
            agent=agent,
            episode=episode,
            action_type=action['type'],
            action_data=action.get('parameters') or {},
            state=state or {},
            state_hash=state_hash,
            q_value=decision.get('q_value'),
            probability=decision.get('probability'),
            exploration=decision['exploration'],
        )

        how = 'through exploration' if decision['exploration'] else 'based on learned policy'
        return record, {
            'action': action,
            'confidence': decision['confidence'],
            'exploration': decision['exploration'],
            'expected_reward': decision.get('q_value') or 0.0,
            'reasoning': f"{agent.agent_type} agent selected action \"{action['type']}\" {how}.",
        }

    @staticmethod
    def _normalise_actions(available_actions):
        if not available_actions or not isinstance(available_actions, list):
            raise ValidationError('available_actions must be a non-empty list',
                                  details={'field': 'available_actions'})
        actions = []
        for item in available_actions:
            if isinstance(item, str):
                item = {'type': item}
            if not isinstance(item, dict) or not item.get('type'):
                raise ValidationError('Each action needs a type', details={'field': 'available_actions'})
            actions.append({'type': str(item['type']), 'parameters': item.get('parameters') or {}})
        return actions

    @staticmethod
    def _q_learning(agent, state_hash, actions, rng):
        values = (agent.policy or {}).get('q_table', {}).get(state_hash, {})
        if rng.random() < agent.exploration_rate or not values:
            action = rng.choice(actions)
            return {'action': action, 'q_value': values.get(action['type'], 0.0),
                    'confidence': 0.3, 'exploration': True}

        action, value = _best_by(actions, values)
        return {'action': action, 'q_value': value,
                'confidence': min(0.9, 0.5 + abs(value) * 0.1), 'exploration': False}

    @staticmethod
    def _bandit(agent, actions, rng):
        """Thompson sampling over Beta(alpha, beta) per action."""
        stats = (agent.policy or {}).get('bandit_stats', {})
        best, best_sample = actions[0], -1.0
        for action in actions:
            arm = stats.get(action['type'], {'alpha': 1, 'beta': 1})
            sample = rng.betavariate(arm['alpha'], arm['beta'])
            if sample > best_sample:
                best, best_sample = action, sample
        return {'action': best, 'probability': best_sample,
                'confidence': min(0.95, best_sample), 'exploration': best_sample < 0.7}

    @staticmethod
    def _ucb(agent, actions):
        policy = agent.policy or {}
        stats = policy.get('ucb_stats', {})
        total_plays = policy.get('total_plays', 0)

        best, best_value = None, -math.inf
        for action in actions:
            arm = stats.get(action['type'], {'total_reward': 0.0, 'count': 0})
            if arm['count'] == 0:
                # Untried arms are played first
                return {'action': action, 'q_value': None, 'confidence': 1.0, 'exploration': True}
            value = arm['total_reward'] / arm['count'] + math.sqrt(2 * math.log(total_plays) / arm['count'])
            if value > best_value:
                best, best_value = action, value
        return {'action': best, 'q_value': best_value,
                'confidence': min(0.9, 0.4 + abs(best_value) * 0.1), 'exploration': best_value > 1.0}

    @staticmethod
    def _epsilon_greedy(agent, actions, rng):
        if rng.random() < agent.exploration_rate:
            return {'action': rng.choice(actions), 'confidence': 0.3, 'exploration': True}
        preferences = (agent.policy or {}).get('action_preferences', {})
        action, value = _best_by(actions, preferences)
        return {'action': action, 'q_value': value, 'confidence': 0.7, 'exploration': False}

    # Rewards

    @classmethod
    def process_reward(cls, agent, action, value):
        """Attach a reward to a recorded action and update the agent's policy."""
        if action.agent_id != agent.id:
            raise ValidationError('Action does not belong to this agent', details={'field': 'action_id'})
        if action.reward is not None:
            raise ResourceConflict('Action has already been rewarded', details={'action_id': str(action.id)})
        value = float(value)

        with transaction.atomic():
            agent = RLAgent.objects.select_for_update().get(pk=agent.pk)
            policy = dict(agent.policy or initial_policy(agent.agent_type))
            action_type = action.action_type

            if agent.agent_type == RLAgent.AgentType.Q_LEARNING:
                q_table = policy.setdefault('q_table', {})
                state_values = q_table.setdefault(action.state_hash, {})
                current = state_values.get(action_type, 0.0)
                state_values[action_type] = current + Q_LEARNING_RATE * (value - current)

            elif agent.agent_type == RLAgent.AgentType.MULTI_ARMED_BANDIT:
                arm = policy.setdefault('bandit_stats', {}).setdefault(
                    action_type, {'alpha': 1, 'beta': 1, 'count': 0}
                )
                arm['count'] += 1
                if value > 0:
                    arm['alpha'] += 1
                else:
                    arm['beta'] += 1

            elif agent.agent_type == RLAgent.AgentType.UCB:
                arm = policy.setdefault('ucb_stats', {}).setdefault(
                    action_type, {'total_reward': 0.0, 'count': 0}
                )
                arm['total_reward'] += value
                arm['count'] += 1
                policy['total_plays'] = policy.get('total_plays', 0) + 1

            else:
                preferences = policy.setdefault('action_preferences', {})
                current = preferences.get(action_type, 0.0)
                preferences[action_type] = current + Q_LEARNING_RATE * (value - current)

            agent.policy = policy
            agent.save(update_fields=['policy', 'updated_at'])

            action.reward = value
            action.save(update_fields=['reward', 'updated_at'])

        return agent

    # Episodes

    @staticmethod
    def start_episode(agent):
        return RLEpisode.objects.create(
            tenant_id=agent.tenant_id,
            agent=agent,
            episode_number=agent.total_episodes + 1,
        )

    @classmethod
    def end_episode(cls, episode, success):
        """
        Close an episode: aggregate its rewards and steps, update the agent
        totals and decay the exploration rate.
        """
        if episode.is_completed:
            raise ResourceConflict('Episode has already ended', details={'episode_id': str(episode.id)})

        with transaction.atomic():
            actions = RLAction.objects.filter(episode=episode)
            steps = actions.count()
            total_reward = actions.aggregate(total=Sum('reward'))['total'] or 0.0

            episode.ended_at = timezone.now()
            episode.total_steps = steps
            episode.total_reward = total_reward
            episode.avg_reward = total_reward / steps if steps else 0.0
            episode.is_completed = True
            episode.success = bool(success)
            episode.save()

            agent = RLAgent.objects.select_for_update().get(pk=episode.agent_id)
            agent.total_episodes += 1
            agent.total_reward += total_reward
            agent.avg_reward = agent.total_reward / agent.total_episodes
            agent.exploration_rate = decayed_exploration(agent.exploration_rate)
            agent.last_trained_at = timezone.now()
            agent.save(update_fields=[
                'total_episodes', 'total_reward', 'avg_reward', 'exploration_rate',
                'last_trained_at', 'updated_at',
            ])

        logger.info(
            "RL episode ended",
            extra={'episode_id': str(episode.id), 'agent_id': str(agent.id),
                   'total_reward': total_reward, 'steps': steps, 'success': bool(success)}
        )
        return episode, agent

    @staticmethod
    def agent_metrics(agent):
        episodes = list(agent.episodes.filter(is_completed=True).order_by('-episode_number')[:100])
        successful = sum(1 for e in episodes if e.success)
        recent_actions = agent.actions.exclude(reward__isnull=True).order_by('-created_at')[:100]

        return {
            'agent_id': str(agent.id),
            'agent_type': agent.agent_type,
            'total_episodes': agent.total_episodes,
            'completed_episodes': len(episodes),
            'success_rate': successful / len(episodes) if episodes else 0.0,
            'avg_reward': agent.avg_reward,
            'total_reward': agent.total_reward,
            'exploration_rate': agent.exploration_rate,
            'total_actions': agent.actions.count(),
            'recent_rewards': [
                {'action_type': a.action_type, 'reward': a.reward, 'at': a.created_at.isoformat()}
                for a in recent_actions
            ],
            'learning_progress': [
                {'episode': e.episode_number, 'reward': e.total_reward, 'success': e.success}
                for e in episodes[:20]
            ],
        }
