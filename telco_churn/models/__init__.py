"""Models module for training, evaluation and explanation."""

from .trainer import ModelTrainer, TrainedModel, VoteFractionForest
from .evaluator import ConfusionCounts, EvaluationReport, ModelEvaluator
from .explainer import ImportanceRanking, ModelExplainer

__all__ = [
    "ModelTrainer",
    "TrainedModel",
    "VoteFractionForest",
    "ModelEvaluator",
    "EvaluationReport",
    "ConfusionCounts",
    "ModelExplainer",
    "ImportanceRanking",
]
