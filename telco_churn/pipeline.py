"""
Churn Pipeline
==============

Single-pass batch run: raw records -> cleaned records -> feature set ->
stratified split -> per model family {train, evaluate, explain}.

Each stage returns a new value; nothing upstream is mutated. The seed is
passed explicitly to the splitter, the trainer and the explainer. Model
families run independently, so one family failing does not stop the other.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel, ValidationError

from config import get_config
from telco_churn.data import CustomerRecord, DataLoader, DataPreprocessor
from telco_churn.data.preprocessor import CleaningReport
from telco_churn.data.schema import RecordsLike
from telco_churn.exceptions import ChurnModelingError, DataIntegrityError
from telco_churn.features import FeatureEngineer, FeatureSchema
from telco_churn.models import (
    EvaluationReport,
    ImportanceRanking,
    ModelEvaluator,
    ModelExplainer,
    ModelTrainer,
    TrainedModel,
)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Everything one pipeline run produced."""

    cleaning: CleaningReport
    schema: FeatureSchema
    split_sizes: Dict[str, int]
    models: Dict[str, TrainedModel]
    reports: Dict[str, EvaluationReport]
    rankings: Dict[str, ImportanceRanking]
    impurity_rankings: Dict[str, ImportanceRanking]
    failures: Dict[str, str] = field(default_factory=dict)

    def comparison(self) -> pd.DataFrame:
        """Metrics side by side, best AUC first."""
        return ModelEvaluator.compare(self.reports)

    def importance_comparison(self) -> pd.DataFrame:
        """Permutation importance side by side."""
        return ModelExplainer.compare_rankings(self.rankings)

    def summary(self) -> Dict[str, Any]:
        return {
            "cleaning": self.cleaning.to_dict(),
            "split": dict(self.split_sizes),
            "metrics": {name: report.to_dict() for name, report in self.reports.items()},
            "importance": {name: ranking.to_list() for name, ranking in self.rankings.items()},
            "failures": dict(self.failures),
        }


class ChurnPipeline:
    """End-to-end churn modeling run."""

    def __init__(self, config: Optional[dict] = None, random_state: Optional[int] = None):
        """
        Initialize ChurnPipeline.

        Args:
            config: Configuration dictionary
            random_state: Seed for split, model fitting and permutation; defaults to data.random_state
        """
        self.config = config or get_config()
        if random_state is None:
            random_state = self.config.get("data", {}).get("random_state", 42)
        self.random_state = random_state

        self.preprocessor = DataPreprocessor(self.config)
        self.feature_engineer = FeatureEngineer(self.config)
        self.loader = DataLoader(self.config)
        self.trainer = ModelTrainer(self.config, random_state=random_state)
        self.evaluator = ModelEvaluator(self.config)
        self.explainer = ModelExplainer(self.config, random_state=random_state)

        self.result: Optional[PipelineResult] = None

    def run(self, raw: RecordsLike) -> PipelineResult:
        """
        Run every stage on a batch of raw records.

        Args:
            raw: Raw customer records (DataFrame or iterable of mappings)

        Returns:
            PipelineResult
        """
        cleaned = self.preprocessor.clean_data(raw)
        feature_set = self.feature_engineer.fit_transform(cleaned)
        schema = self.feature_engineer.schema
        split = self.loader.get_train_test_split(feature_set, random_state=self.random_state)

        models: Dict[str, TrainedModel] = {}
        reports: Dict[str, EvaluationReport] = {}
        rankings: Dict[str, ImportanceRanking] = {}
        impurity: Dict[str, ImportanceRanking] = {}
        failures: Dict[str, str] = {}

        for family in self.trainer.MODELS:
            if not self.config.get("models", {}).get(family, {}).get("enabled", True):
                logger.info(f"Skipping disabled model: {family}")
                continue
            try:
                model = self.trainer.train_model(split.train, family, schema=schema)
                models[family] = model
                reports[family] = self.evaluator.evaluate_model(model, split.test)
                rankings[family] = self.explainer.permutation_importance(model, split.test)
                if model.impurity_importance is not None:
                    impurity[family] = self.explainer.impurity_importance(model)
            except ChurnModelingError as e:
                logger.error(f"{family} stage aborted: {e}")
                failures[family] = str(e)

        self.result = PipelineResult(
            cleaning=cleaned.report,
            schema=schema,
            split_sizes=split.sizes(),
            models=models,
            reports=reports,
            rankings=rankings,
            impurity_rankings=impurity,
            failures=failures,
        )
        logger.info(f"Pipeline complete: {list(reports)} evaluated, failures={list(failures)}")
        return self.result

    def score(
        self,
        records: Iterable[Union[Mapping[str, Any], BaseModel]],
        family: str
    ) -> np.ndarray:
        """
        Churn probabilities for CustomerRecord-shaped input.

        Args:
            records: Records in the cleaned schema; the target may be absent
            family: Trained model family to score with

        Returns:
            Array of churn probabilities
        """
        if self.result is None or family not in self.result.models:
            raise ValueError(f"No trained model for {family}. Call run first.")

        try:
            validated = [
                r if isinstance(r, CustomerRecord) else CustomerRecord.model_validate(dict(r))
                for r in records
            ]
        except ValidationError as e:
            raise DataIntegrityError(f"Invalid record for scoring: {e}") from e
        if not validated:
            raise DataIntegrityError("No records supplied for scoring")

        feature_set = self.feature_engineer.transform(validated, require_target=False)
        return self.result.models[family].predict_proba(feature_set)
