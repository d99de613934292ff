"""
Model Evaluator Module
======================

Scores trained classifiers on a held-out feature set.

Counts follow the churn event: ``tp`` is a churner predicted to churn.
Sensitivity, specificity and the predictive values are taken relative to an
explicit reference label (``evaluation.reference_label``). The default, 0,
treats non-churn as the reference level, so::

    sensitivity = TN / (TN + FP)
    specificity = TP / (TP + FN)

Setting it to 1 swaps the two interpretations without changing any count.

A row is predicted to churn when its probability is at or above the
threshold; ties go to churn.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats
from sklearn.metrics import confusion_matrix, roc_auc_score, roc_curve

from config import get_config
from telco_churn.exceptions import ChurnModelingError, DataIntegrityError
from telco_churn.features.feature_engineer import FeatureSet
from telco_churn.models.trainer import TrainedModel
from telco_churn.utils.helpers import safe_divide


@dataclass(frozen=True)
class ConfusionCounts:
    """Confusion matrix counts with churn as the event."""

    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    def as_matrix(self) -> np.ndarray:
        """Rows are actual (no churn, churn); columns are predicted."""
        return np.array([[self.tn, self.fp], [self.fn, self.tp]])


@dataclass(frozen=True)
class EvaluationReport:
    """Threshold metrics plus ranking AUC for one model on one feature set."""

    family: str
    threshold: float
    reference_label: int
    n: int
    counts: ConfusionCounts
    accuracy: float
    accuracy_ci: Tuple[float, float]
    no_information_rate: float
    accuracy_p_value: float
    kappa: float
    mcnemar_p_value: float
    sensitivity: float
    specificity: float
    pos_pred_value: float
    neg_pred_value: float
    prevalence: float
    detection_rate: float
    detection_prevalence: float
    balanced_accuracy: float
    auc: float

    def to_dict(self) -> Dict[str, float]:
        """Flat metric name -> value mapping."""
        data = asdict(self)
        counts = data.pop("counts")
        ci_low, ci_high = data.pop("accuracy_ci")
        data.update(counts)
        data["accuracy_ci_lower"] = ci_low
        data["accuracy_ci_upper"] = ci_high
        return data


def _mcnemar_p_value(b: int, c: int) -> float:
    """Continuity-corrected McNemar test on the discordant cells."""
    if b + c == 0:
        return float("nan")
    statistic = (abs(b - c) - 1) ** 2 / (b + c)
    return float(stats.chi2.sf(statistic, df=1))


class ModelEvaluator:
    """Evaluate and compare trained churn models."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize ModelEvaluator.

        Args:
            config: Configuration dictionary
        """
        self.config = config or get_config()
        self.eval_config = self.config.get("evaluation", {})
        self.threshold = self.eval_config.get("threshold", 0.5)
        self.reference_label = int(self.eval_config.get("reference_label", 0))
        self.confidence_level = self.eval_config.get("confidence_level", 0.95)

        if self.reference_label not in (0, 1):
            raise ValueError(f"reference_label must be 0 or 1, got {self.reference_label}")

        self.failures: Dict[str, ChurnModelingError] = {}

    def evaluate_model(
        self,
        model: TrainedModel,
        feature_set: FeatureSet,
        threshold: Optional[float] = None
    ) -> EvaluationReport:
        """
        Evaluate a single model.

        Args:
            model: Trained model
            feature_set: Labelled evaluation feature set
            threshold: Probability cutoff for a churn prediction

        Returns:
            EvaluationReport

        Raises:
            SchemaMismatchError: feature set does not match the model's schema
            DataIntegrityError: empty or single-class evaluation set
        """
        threshold = self.threshold if threshold is None else threshold
        if not 0 <= threshold <= 1:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")

        y_true = feature_set.labels.to_numpy()
        if len(y_true) == 0:
            raise DataIntegrityError("Cannot evaluate on an empty feature set")
        if len(np.unique(y_true)) < 2:
            raise DataIntegrityError("AUC is undefined when the evaluation set holds a single class")

        y_prob = model.predict_proba(feature_set)
        y_pred = (y_prob >= threshold).astype(int)

        tn, fp, fn, tp = (int(v) for v in confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel())
        counts = ConfusionCounts(tp=tp, fp=fp, tn=tn, fn=fn)
        n = counts.total

        if self.reference_label == 0:
            ref_hit, ref_miss, other_hit, false_ref = tn, fp, tp, fn
        else:
            ref_hit, ref_miss, other_hit, false_ref = tp, fn, tn, fp

        sensitivity = safe_divide(ref_hit, ref_hit + ref_miss)
        specificity = safe_divide(other_hit, other_hit + false_ref)

        correct = tp + tn
        accuracy = correct / n
        expected = ((tp + fp) * (tp + fn) + (tn + fn) * (tn + fp)) / n ** 2
        kappa = safe_divide(accuracy - expected, 1 - expected)

        binom = stats.binomtest(correct, n)
        ci = binom.proportion_ci(confidence_level=self.confidence_level, method="exact")
        nir = float(max(np.mean(y_true), 1 - np.mean(y_true)))
        p_value = stats.binomtest(correct, n, p=nir, alternative="greater").pvalue

        report = EvaluationReport(
            family=model.family,
            threshold=float(threshold),
            reference_label=self.reference_label,
            n=n,
            counts=counts,
            accuracy=accuracy,
            accuracy_ci=(float(ci.low), float(ci.high)),
            no_information_rate=nir,
            accuracy_p_value=float(p_value),
            kappa=kappa,
            mcnemar_p_value=_mcnemar_p_value(fp, fn),
            sensitivity=sensitivity,
            specificity=specificity,
            pos_pred_value=safe_divide(ref_hit, ref_hit + false_ref),
            neg_pred_value=safe_divide(other_hit, other_hit + ref_miss),
            prevalence=(ref_hit + ref_miss) / n,
            detection_rate=ref_hit / n,
            detection_prevalence=(ref_hit + false_ref) / n,
            balanced_accuracy=(sensitivity + specificity) / 2,
            auc=float(roc_auc_score(y_true, y_prob)),
        )

        logger.info(
            f"{model.family} - Accuracy: {report.accuracy:.4f}, Kappa: {report.kappa:.4f}, "
            f"Balanced Acc: {report.balanced_accuracy:.4f}, AUC: {report.auc:.4f}"
        )
        return report

    def evaluate_all_models(
        self,
        models: Dict[str, TrainedModel],
        feature_set: FeatureSet
    ) -> Tuple[Dict[str, EvaluationReport], pd.DataFrame]:
        """
        Evaluate multiple models and create a comparison.

        A model that fails evaluation is logged and recorded in ``failures``.

        Args:
            models: Dictionary of trained models
            feature_set: Labelled evaluation feature set

        Returns:
            Tuple of (reports by family, comparison DataFrame sorted by AUC)
        """
        reports = {}
        for name, model in models.items():
            try:
                reports[name] = self.evaluate_model(model, feature_set)
            except ChurnModelingError as e:
                logger.error(f"Error evaluating {name}: {e}")
                self.failures[name] = e

        return reports, self.compare(reports)

    @staticmethod
    def compare(reports: Dict[str, EvaluationReport]) -> pd.DataFrame:
        """One row of metrics per model, best AUC first."""
        if not reports:
            return pd.DataFrame()
        df = pd.DataFrame([report.to_dict() for report in reports.values()]).set_index("family")
        return df.sort_values("auc", ascending=False)

    def roc_points(self, model: TrainedModel, feature_set: FeatureSet) -> pd.DataFrame:
        """
        ROC curve coordinates for external charting.

        Returns:
            DataFrame with fpr, tpr and threshold columns
        """
        fpr, tpr, thresholds = roc_curve(feature_set.labels.to_numpy(), model.predict_proba(feature_set))
        return pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thresholds})

    @staticmethod
    def confusion_frame(report: EvaluationReport) -> pd.DataFrame:
        """Confusion matrix as a labelled DataFrame (rows actual, columns predicted)."""
        labels = ["No Churn", "Churn"]
        return pd.DataFrame(
            report.counts.as_matrix(),
            index=pd.Index(labels, name="actual"),
            columns=pd.Index(labels, name="predicted"),
        )
