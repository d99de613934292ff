"""
Model Explainability Module
===========================

Feature importance for trained churn models.

Permutation importance (drop in AUC after shuffling one column, averaged
over repeated shuffles) works for every model family and is the measure
used to compare families. Impurity importance is only available for the
random forest.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from loguru import logger
from sklearn.inspection import permutation_importance

from config import get_config
from telco_churn.exceptions import DataIntegrityError
from telco_churn.features.feature_engineer import FeatureSet
from telco_churn.models.trainer import TrainedModel


@dataclass(frozen=True)
class ImportanceRanking:
    """Features ordered by descending importance."""

    family: str
    method: str
    entries: Tuple[Tuple[str, float], ...]
    std: Optional[Tuple[Tuple[str, float], ...]] = None

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def features(self) -> List[str]:
        return [name for name, _ in self.entries]

    def to_list(self) -> List[Tuple[str, float]]:
        return list(self.entries)

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.entries, columns=["feature", "importance"])
        if self.std is not None:
            df["importance_std"] = df["feature"].map(dict(self.std))
        return df

    def top(self, n: int = 10) -> List[Tuple[str, float]]:
        return list(self.entries[:n])

    def score_of(self, feature: str) -> float:
        return dict(self.entries)[feature]

    def rank_of(self, feature: str) -> int:
        """1-based rank of ``feature``."""
        return self.features.index(feature) + 1


def _ranked(scores: Iterable[Tuple[str, float]]) -> Tuple[Tuple[str, float], ...]:
    # Stable sort keeps schema order among ties
    return tuple(sorted(((name, float(score)) for name, score in scores), key=lambda p: -p[1]))


class ModelExplainer:
    """Explain trained churn models with feature importance scores."""

    def __init__(self, config: Optional[dict] = None, random_state: Optional[int] = None):
        """
        Initialize ModelExplainer.

        Args:
            config: Configuration dictionary
            random_state: Seed for the column shuffles; defaults to data.random_state
        """
        self.config = config or get_config()
        self.explainer_config = self.config.get("explainer", {})
        self.n_repeats = self.explainer_config.get("n_repeats", 10)
        self.n_jobs = self.explainer_config.get("n_jobs", -1)
        self.scoring = self.explainer_config.get("scoring", "roc_auc")
        if random_state is None:
            random_state = self.config.get("data", {}).get("random_state", 42)
        self.random_state = random_state

    def permutation_importance(
        self,
        model: TrainedModel,
        feature_set: FeatureSet,
        n_repeats: Optional[int] = None
    ) -> ImportanceRanking:
        """
        Rank features by the mean AUC decrease when their values are shuffled.

        Args:
            model: Trained model
            feature_set: Labelled evaluation feature set
            n_repeats: Shuffles per feature

        Returns:
            ImportanceRanking (method ``permutation``)
        """
        n_repeats = self.n_repeats if n_repeats is None else n_repeats
        if n_repeats < 2:
            raise ValueError("Permutation importance needs at least 2 repeats")

        X = model.check_features(feature_set)
        y = feature_set.labels.to_numpy()
        if len(set(y)) < 2:
            raise DataIntegrityError("AUC-based importance needs both classes in the evaluation set")

        logger.info(f"Computing permutation importance for {model.family} ({n_repeats} repeats)...")

        result = permutation_importance(
            model.estimator,
            X,
            y,
            scoring=self.scoring,
            n_repeats=n_repeats,
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

        columns = list(X.columns)
        ranking = ImportanceRanking(
            family=model.family,
            method="permutation",
            entries=_ranked(zip(columns, result.importances_mean)),
            std=tuple((name, float(s)) for name, s in zip(columns, result.importances_std)),
        )

        logger.info(f"{model.family} top features: {ranking.top(3)}")
        return ranking

    def impurity_importance(self, model: TrainedModel) -> ImportanceRanking:
        """
        Rank features by mean impurity decrease (tree ensembles only).

        Raises:
            ValueError: the model family exposes no impurity importance
        """
        if model.impurity_importance is None:
            raise ValueError(f"{model.family} does not expose impurity-based importance")

        return ImportanceRanking(
            family=model.family,
            method="impurity",
            entries=_ranked(model.impurity_importance),
        )

    def explain_all_models(
        self,
        models: Dict[str, TrainedModel],
        feature_set: FeatureSet
    ) -> Dict[str, ImportanceRanking]:
        """Permutation importance for every model on the same feature set."""
        return {name: self.permutation_importance(model, feature_set) for name, model in models.items()}

    @staticmethod
    def compare_rankings(rankings: Dict[str, ImportanceRanking]) -> pd.DataFrame:
        """
        Side-by-side importance scores, one column per model.

        Rows are ordered by the mean score across models.
        """
        if not rankings:
            return pd.DataFrame()
        df = pd.DataFrame({name: dict(ranking.entries) for name, ranking in rankings.items()})
        order = df.mean(axis=1).sort_values(ascending=False).index
        df = df.loc[order]
        df.index.name = "feature"
        return df
