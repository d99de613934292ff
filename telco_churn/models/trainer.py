"""
Model Trainer Module
====================

Fits the two churn classifier families on a training feature set:

* ``logistic_regression`` - unregularized logistic regression over one-hot
  encoded categorical codes and standardized numerics.
* ``random_forest`` - bootstrap ensemble of decision trees whose churn
  probability is the fraction of trees voting churn.

Both are returned as :class:`TrainedModel`, so evaluation and explanation
code is written once against "features in, churn probability out".
"""

import warnings
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import RandomForestClassifier
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler
from sklearn.utils.validation import check_is_fitted

from config import get_config
from telco_churn.exceptions import (
    ChurnModelingError,
    DataIntegrityError,
    FitError,
    SchemaMismatchError,
)
from telco_churn.features.feature_engineer import FeatureSchema, FeatureSet

CHURN = 1


class VoteFractionForest(RandomForestClassifier):
    """Random forest whose probability is the share of trees voting for each class."""

    def predict_proba(self, X):
        check_is_fitted(self)
        X = self._validate_X_predict(X)

        votes = np.zeros((X.shape[0], self.n_classes_))
        rows = np.arange(X.shape[0])
        for tree in self.estimators_:
            # Sub-trees predict class indices
            predicted = tree.predict(X, check_input=False).astype(np.intp)
            votes[rows, predicted] += 1
        return votes / len(self.estimators_)


@dataclass(frozen=True, eq=False)
class TrainedModel:
    """A fitted classifier together with the feature schema it was fit on."""

    family: str
    estimator: Any
    schema: FeatureSchema
    n_train: int
    fitted_at: str
    impurity_importance: Optional[Tuple[Tuple[str, float], ...]] = None
    convergence_warnings: Tuple[str, ...] = ()

    def check_features(self, data: Union[FeatureSet, pd.DataFrame]) -> pd.DataFrame:
        """
        Return the feature frame of ``data`` after verifying it matches this model's schema.

        Raises:
            SchemaMismatchError: on missing/unexpected columns or differing code tables
        """
        if isinstance(data, FeatureSet):
            if data.schema != self.schema:
                self.schema.check_frame(data.features)
                raise SchemaMismatchError(
                    f"{self.family}: feature code tables differ from those used at fit time"
                )
            return data.features
        return self.schema.check_frame(data)

    def predict_proba(self, data: Union[FeatureSet, pd.DataFrame]) -> np.ndarray:
        """Churn probability per row."""
        X = self.check_features(data)
        proba = self.estimator.predict_proba(X)
        churn_col = list(self.estimator.classes_).index(CHURN)
        return proba[:, churn_col]

    def predict(self, data: Union[FeatureSet, pd.DataFrame], threshold: float = 0.5) -> np.ndarray:
        """
        Binary churn prediction at ``threshold``.

        A probability equal to the threshold counts as churn, so a forest tie
        (half the trees voting churn) is a churn prediction at the default 0.5.
        This differs from ``RandomForestClassifier.predict``, whose argmax
        resolves the same tie to no-churn.
        """
        return (self.predict_proba(data) >= threshold).astype(int)


class ModelTrainer:
    """Train the churn classifier families."""

    MODELS = {
        "logistic_regression": LogisticRegression,
        "random_forest": VoteFractionForest,
    }

    def __init__(self, config: Optional[dict] = None, random_state: Optional[int] = None):
        """
        Initialize ModelTrainer.

        Args:
            config: Configuration dictionary
            random_state: Seed for every stochastic estimator; defaults to data.random_state
        """
        self.config = config or get_config()
        self.models_config = self.config.get("models", {})
        if random_state is None:
            random_state = self.config.get("data", {}).get("random_state", 42)
        self.random_state = random_state

        self.trained_models: Dict[str, TrainedModel] = {}
        self.failures: Dict[str, FitError] = {}

    def build_estimator(self, model_name: str, schema: FeatureSchema, params: Optional[dict] = None) -> Any:
        """
        Create an unfitted estimator for a model family.

        Args:
            model_name: Model family
            schema: Feature schema the estimator will be fit on
            params: Parameters overriding the configured ones

        Returns:
            Unfitted scikit-learn estimator
        """
        if model_name not in self.MODELS:
            raise ValueError(f"Unknown model: {model_name}. Available: {list(self.MODELS.keys())}")

        model_params = dict(self.models_config.get(model_name, {}).get("params", {}))
        model_params.update(params or {})
        model_params.setdefault("random_state", self.random_state)

        if model_name == "logistic_regression":
            encoder = OneHotEncoder(
                categories=[list(range(len(schema.levels(col)))) for col in schema.categorical],
                drop="first",
                handle_unknown="error",
                sparse_output=False,
            )
            preprocessor = ColumnTransformer(
                transformers=[
                    ("categorical", encoder, list(schema.categorical)),
                    ("numerical", StandardScaler(), list(schema.numerical)),
                ],
                remainder="drop"
            )
            return Pipeline([
                ("preprocessor", preprocessor),
                ("classifier", LogisticRegression(**model_params)),
            ])

        model_params.setdefault("n_estimators", 500)
        return self.MODELS[model_name](**model_params)

    def train_model(
        self,
        train_set: FeatureSet,
        model_name: str,
        params: Optional[dict] = None,
        schema: Optional[FeatureSchema] = None
    ) -> TrainedModel:
        """
        Train a single model family.

        Args:
            train_set: Labelled training feature set
            model_name: Name of model to train
            params: Model parameters (override config)
            schema: Expected feature schema; the train set must match it

        Returns:
            TrainedModel

        Raises:
            SchemaMismatchError: train set columns disagree with ``schema``
            DataIntegrityError: only one target class observed
            FitError: the estimator failed to fit
        """
        if schema is not None and train_set.schema != schema:
            schema.check_frame(train_set.features)
            raise SchemaMismatchError(f"{model_name}: train set code tables differ from the pipeline schema")

        labels = train_set.labels
        observed = sorted(labels.unique().tolist())
        if len(observed) < 2:
            raise DataIntegrityError(f"{model_name}: degenerate training set, only class {observed} observed")

        estimator = self.build_estimator(model_name, train_set.schema, params)
        logger.info(f"Training {model_name} on {len(train_set)} rows...")

        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", ConvergenceWarning)
                estimator.fit(train_set.features, labels.to_numpy())
        except ChurnModelingError:
            raise
        except Exception as e:
            raise FitError(model_name, f"fit failed: {e}", cause=e) from e

        convergence = tuple(str(w.message) for w in caught if issubclass(w.category, ConvergenceWarning))
        if convergence:
            logger.warning(f"{model_name} did not fully converge: {convergence[0]}")
            if self.models_config.get(model_name, {}).get("strict_convergence", False):
                raise FitError(model_name, f"solver did not converge: {convergence[0]}")

        impurity = None
        if hasattr(estimator, "feature_importances_"):
            pairs = zip(train_set.schema.columns, estimator.feature_importances_)
            impurity = tuple(sorted(((name, float(score)) for name, score in pairs), key=lambda p: -p[1]))

        model = TrainedModel(
            family=model_name,
            estimator=estimator,
            schema=train_set.schema,
            n_train=len(train_set),
            fitted_at=datetime.now().isoformat(timespec="seconds"),
            impurity_importance=impurity,
            convergence_warnings=convergence,
        )

        train_acc = float(np.mean(model.predict(train_set) == labels.to_numpy()))
        logger.info(f"{model_name} - Train Acc: {train_acc:.4f}")

        self.trained_models[model_name] = model
        return model

    def train_logistic_regression(self, train_set: FeatureSet, **params) -> TrainedModel:
        """Fit the linear probabilistic classifier."""
        return self.train_model(train_set, "logistic_regression", params=params or None)

    def train_random_forest(self, train_set: FeatureSet, **params) -> TrainedModel:
        """Fit the ensemble-of-trees classifier."""
        return self.train_model(train_set, "random_forest", params=params or None)

    def train_all_models(
        self,
        train_set: FeatureSet,
        schema: Optional[FeatureSchema] = None
    ) -> Dict[str, TrainedModel]:
        """
        Train all enabled model families.

        A failing family is logged and recorded in ``failures``; the others
        still train.

        Args:
            train_set: Labelled training feature set
            schema: Expected feature schema

        Returns:
            Dictionary of trained models
        """
        logger.info("Training all models...")

        for model_name in self.MODELS:
            model_config = self.models_config.get(model_name, {})
            if not model_config.get("enabled", True):
                logger.info(f"Skipping disabled model: {model_name}")
                continue
            try:
                self.train_model(train_set, model_name, schema=schema)
            except FitError as e:
                logger.error(f"Error training {model_name}: {e}")
                self.failures[model_name] = e

        return self.trained_models
