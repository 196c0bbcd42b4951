"""
Mock AI services: rule-based NLP, statistical anomaly detection and RL agents.
"""
from .anomaly import AnomalyDetectionService
from .nlp import NLPService
from .rl import ReinforcementLearningService

__all__ = [
    'AnomalyDetectionService',
    'NLPService',
    'ReinforcementLearningService',
]
